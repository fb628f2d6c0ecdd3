# app/services/visitor_service.py
"""
Visitor lookup and registration helpers.
Used by the visitors router and by the SQL visitor store.
"""

import re
import secrets
from datetime import datetime
from sqlalchemy.orm import Session
from app.models.visitor import Visitor, VisitorStatus
from app.schemas.visitor import VisitorCreate
from app.utils.logger import get_logger

logger = get_logger(__name__)

VISITOR_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def new_visitor_id() -> str:
    """24 lowercase hex chars — same shape as the IDs printed on existing badges."""
    return secrets.token_hex(12)


def is_valid_visitor_id(value: str) -> bool:
    return bool(value) and VISITOR_ID_PATTERN.match(value) is not None


def get_visitor(db: Session, visitor_id: str):
    """Find a visitor by ID. Returns None if not found."""
    return db.query(Visitor).filter(Visitor.id == visitor_id.lower()).first()


def find_registration(db: Session, event_id: str, email: str):
    return (
        db.query(Visitor)
        .filter(Visitor.event_id == event_id, Visitor.email == email.strip().lower())
        .first()
    )


def register_visitor(db: Session, body: VisitorCreate) -> Visitor:
    now = datetime.utcnow()
    visitor = Visitor(
        id=new_visitor_id(),
        registration_id=body.registration_id,
        form_id=body.form_id,
        name=body.name.strip(),
        email=body.email.strip().lower(),
        phone=body.phone.strip(),
        company=body.company,
        age=body.age,
        event_id=body.event_id,
        event_name=body.event_name.strip(),
        event_location=body.event_location,
        event_start_date=body.event_start_date,
        event_end_date=body.event_end_date,
        status=VisitorStatus.REGISTERED,
        additional_data=body.additional_data,
        created_at=now,
        updated_at=now,
    )
    db.add(visitor)
    db.commit()
    db.refresh(visitor)
    logger.info(f"[VISITOR] Registered {visitor.id} ({visitor.name}) for event {visitor.event_id}")
    return visitor


def mark_checked_in(db: Session, visitor_id: str, check_in_time: datetime,
                    status: str = VisitorStatus.VISITED) -> bool:
    """
    Conditional update: only a visitor who has not arrived yet is changed.
    Returns False when no row matched (unknown visitor or already arrived).
    """
    updated = (
        db.query(Visitor)
        .filter(Visitor.id == visitor_id.lower(), Visitor.status.notin_(VisitorStatus.ARRIVED))
        .update(
            {Visitor.status: status, Visitor.check_in_time: check_in_time,
             Visitor.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1
