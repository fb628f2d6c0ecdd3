# app/routers/stats.py
"""Check-in reporting — visitor totals and scan counts per day."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional
from app.database import get_db
from app.models.qr_scan import QRScan, EntryType, ScanStatus
from app.models.visitor import Visitor, VisitorStatus
from app.schemas.stats import CheckInStatsOut
from datetime import datetime

router = APIRouter()


@router.get("/stats/checkins", response_model=CheckInStatsOut, summary="Check-in summary")
def get_checkin_stats(event_id: Optional[str] = Query(None, alias="eventId"),
                      target_date: Optional[str] = Query(None, alias="targetDate"),
                      db: Session = Depends(get_db)):
    """
    Visitor totals (all time) and scan counts for one day — today by default.
    Optionally scoped to a single event.
    """
    target = target_date or str(datetime.utcnow().date())   # scan times are stored in UTC

    visitors = db.query(func.count(Visitor.id))
    arrived = db.query(func.count(Visitor.id)).filter(Visitor.status.in_(VisitorStatus.ARRIVED))
    cancelled = db.query(func.count(Visitor.id)).filter(Visitor.status == VisitorStatus.CANCELLED)
    scans = db.query(QRScan.entry_type, func.count(QRScan.id)).filter(
        QRScan.status != ScanStatus.FAILED,
        func.date(QRScan.scan_time) == target,
    )
    failed = db.query(func.count(QRScan.id)).filter(QRScan.status == ScanStatus.FAILED)

    if event_id:
        visitors = visitors.filter(Visitor.event_id == event_id)
        arrived = arrived.filter(Visitor.event_id == event_id)
        cancelled = cancelled.filter(Visitor.event_id == event_id)
        scans = scans.filter(QRScan.event_id == event_id)
        failed = failed.filter(QRScan.event_id == event_id)

    total = visitors.scalar() or 0
    checked_in = arrived.scalar() or 0
    by_type = {t: 0 for t in EntryType.ALL}
    for entry_type, count in scans.group_by(QRScan.entry_type).all():
        by_type[entry_type] = count

    return CheckInStatsOut(
        date=target,
        event_id=event_id,
        total_visitors=total,
        checked_in=checked_in,
        pending=max(0, total - checked_in - (cancelled.scalar() or 0)),
        scans_today=sum(by_type.values()),
        scans_by_entry_type=by_type,
        failed_scans=failed.scalar() or 0,
    )
