# app/routers/health.py
"""
Health check for load balancers and scanner stations.
A station shows "offline" unless status is ok; lastScanAt lets the desk see
whether other stations are still writing.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import datetime
from app.config import settings
from app.database import get_db
from app.models.qr_scan import QRScan
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", summary="Backend and database health")
def health_check(db: Session = Depends(get_db)):
    body = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "database": "ok",
        "storeTimeoutSeconds": settings.STORE_TIMEOUT_SECONDS,
        "lastScanAt": None,
    }
    try:
        db.execute(text("SELECT 1"))
        last_scan = db.query(func.max(QRScan.scan_time)).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Health check: database unreachable: {e}")
        body["status"] = "degraded"
        body["database"] = f"error: {e}"
        return body

    body["lastScanAt"] = last_scan.isoformat() if last_scan else None
    return body
