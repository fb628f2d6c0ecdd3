# app/models/visitor.py
"""
Visitors table — one registrant for one event.
Event details are denormalized onto the row (event CRUD lives elsewhere).
Mutated by the check-in workflow: status → Visited, check_in_time set.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from app.database import Base


class VisitorStatus:
    REGISTERED = "registered"
    VISITED = "Visited"          # canonical "arrived" status
    CHECKED_IN = "checked_in"    # legacy — read as arrived, never written
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"

    ALL = (REGISTERED, VISITED, CHECKED_IN, CHECKED_OUT, CANCELLED)
    ARRIVED = (VISITED, CHECKED_IN)


class Visitor(Base):
    __tablename__ = "visitors"

    id = Column(String(24), primary_key=True)          # 24-char lowercase hex
    registration_id = Column(String(24))
    form_id = Column(String(24))
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=False)
    company = Column(String(200))
    age = Column(Integer)
    event_id = Column(String(24), nullable=False)
    event_name = Column(String(200), nullable=False)
    event_location = Column(String(200))
    event_start_date = Column(DateTime)
    event_end_date = Column(DateTime)
    status = Column(String(20), nullable=False, default=VisitorStatus.REGISTERED)
    check_in_time = Column(DateTime)
    check_out_time = Column(DateTime)
    additional_data = Column(JSON)
    created_at = Column(DateTime, index=True)
    updated_at = Column(DateTime)

    __table_args__ = (
        Index("ix_visitors_event_status", "event_id", "status"),
        Index("ix_visitors_email", "email"),
    )

    def __repr__(self):
        return f"<Visitor {self.id} name={self.name} status={self.status}>"
