# app/models/qr_scan.py
"""
QR scan log — one row per visitor check-in attempt that got past validation.
visitor_id is UNIQUE: at most one scan row per visitor, so two devices scanning
the same badge at once cannot both record a check-in.
A row whose paired visitor update failed is marked status=failed (compensation).
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from app.database import Base


class EntryType:
    QR = "QR"
    MANUAL = "Manual"

    ALL = (QR, MANUAL)


class ScanStatus:
    VISITED = "Visited"
    FAILED = "failed"


class QRScan(Base):
    __tablename__ = "qr_scans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    visitor_id = Column(String(24), unique=True, nullable=False, index=True)
    event_id = Column(String(24))
    registration_id = Column(String(24))
    name = Column(String(200), nullable=False)
    company = Column(String(200))
    event_name = Column(String(200))
    scan_time = Column(DateTime, nullable=False, index=True)
    entry_type = Column(String(10), nullable=False)     # QR | Manual
    status = Column(String(20), nullable=False)         # Visited | failed
    error = Column(Text)
    device_info = Column(String(500))
    scanned_by = Column(String(100))
    location = Column(String(200))
    notes = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<QRScan {self.id} visitor={self.visitor_id} status={self.status}>"
