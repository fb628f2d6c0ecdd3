# app/services/scan_service.py
"""
QR scan log helpers.
Used by the qrscans router and by the SQL scan log store.

At most one scan row exists per visitor (unique visitor_id). A row left in
status=failed by compensation is reclaimed by the next check-in attempt
instead of blocking the visitor forever.
"""

from datetime import datetime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.models.qr_scan import QRScan, EntryType, ScanStatus
from app.utils.logger import get_logger

logger = get_logger(__name__)


class ScanAlreadyRecorded(Exception):
    def __init__(self, existing: QRScan):
        super().__init__(f"Scan already recorded for visitor {existing.visitor_id}")
        self.existing = existing


def get_scan(db: Session, visitor_id: str):
    """Scan record for this visitor in any status. None if never scanned."""
    return db.query(QRScan).filter(QRScan.visitor_id == visitor_id.lower()).first()


def get_successful_scan(db: Session, visitor_id: str):
    return (
        db.query(QRScan)
        .filter(QRScan.visitor_id == visitor_id.lower(), QRScan.status != ScanStatus.FAILED)
        .first()
    )


def list_recent_scans(db: Session, limit: int = 100):
    return db.query(QRScan).order_by(QRScan.scan_time.desc()).limit(limit).all()


def record_scan(db: Session, visitor_id: str, name: str = "Unknown", company: str = "",
                event_name: str = "Unknown Event", event_id: str = None,
                registration_id: str = None, scan_time: datetime = None,
                entry_type: str = EntryType.MANUAL, status: str = ScanStatus.VISITED,
                device_info: str = "Unknown device") -> QRScan:
    """
    Insert the scan row, or reclaim a failed one for the same visitor.
    Raises ScanAlreadyRecorded if a successful scan exists — the unique index
    decides, so two concurrent inserts cannot both succeed.
    """
    visitor_id = visitor_id.lower()
    now = datetime.utcnow()
    values = {
        "event_id": event_id,
        "registration_id": registration_id,
        "name": name,
        "company": company,
        "event_name": event_name,
        "scan_time": scan_time or now,
        "entry_type": entry_type,
        "status": status,
        "device_info": device_info,
        "error": None,
        "updated_at": now,
    }

    reclaimed = (
        db.query(QRScan)
        .filter(QRScan.visitor_id == visitor_id, QRScan.status == ScanStatus.FAILED)
        .update(values, synchronize_session=False)
    )
    if reclaimed:
        db.commit()
        logger.info(f"[SCAN] Reclaimed failed scan record for visitor {visitor_id}")
        return get_scan(db, visitor_id)

    scan = QRScan(visitor_id=visitor_id, created_at=now, **values)
    db.add(scan)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_scan(db, visitor_id)
        if existing is None:
            raise
        raise ScanAlreadyRecorded(existing)
    db.refresh(scan)
    return scan


def mark_scan_failed(db: Session, visitor_id: str, status: str = ScanStatus.FAILED,
                     error: str = None, scan_time: datetime = None):
    """
    Compensation write. Returns the updated row, or None if the visitor has no scan
    (or, when scan_time is given, none written at that time: another attempt owns it).
    """
    scan = get_scan(db, visitor_id)
    if not scan or (scan_time is not None and scan.scan_time != scan_time):
        return None
    scan.status = status
    scan.error = error
    scan.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(scan)
    logger.warning(f"[SCAN] Visitor {scan.visitor_id} scan marked {status}: {error}")
    return scan
