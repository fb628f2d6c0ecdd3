# app/routers/qrscans.py
"""
QR scan log endpoints — consumed by scanner stations.
GET   /qrscans/check-visitor — has this visitor already been checked in?
POST  /qrscans               — record a scan (409 if one already succeeded)
PATCH /qrscans/{visitorId}   — update a scan's status (compensation path)
GET   /qrscans               — most recent scans
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional
from app.config import settings
from app.database import get_db
from app.models.qr_scan import EntryType, ScanStatus
from app.schemas.qr_scan import CheckVisitorOut, QRScanCreate, QRScanOut, QRScanPatch
from app.services import scan_service
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _server_error(action: str, e: Exception) -> JSONResponse:
    logger.error(f"Error {action}: {e}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error", "error": str(e)},
    )


@router.get("/qrscans", response_model=list[QRScanOut], summary="List most recent scans")
def list_scans(limit: int = Query(None, ge=1, le=1000), db: Session = Depends(get_db)):
    return scan_service.list_recent_scans(db, limit or settings.RECENT_SCANS_LIMIT)


@router.get("/qrscans/check-visitor", response_model=CheckVisitorOut,
            summary="Check whether a visitor was already scanned")
def check_visitor(visitor_id: Optional[str] = Query(None, alias="visitorId"),
                  db: Session = Depends(get_db)):
    """Only a successful scan counts; a record marked failed does not block a retry."""
    if not visitor_id:
        return JSONResponse(status_code=400, content={"message": "Visitor ID is required"})
    try:
        scan = scan_service.get_successful_scan(db, visitor_id)
    except SQLAlchemyError as e:
        return _server_error("checking visitor scan status", e)
    if scan:
        return CheckVisitorOut(exists=True, message="Visitor has already been checked in",
                               scan=QRScanOut.model_validate(scan))
    return CheckVisitorOut(exists=False, message="Visitor not found in scan records")


@router.post("/qrscans", status_code=status.HTTP_201_CREATED, summary="Record a scan")
def create_scan(body: QRScanCreate, db: Session = Depends(get_db)):
    if not body.visitor_id:
        return JSONResponse(status_code=400, content={"message": "Missing required field: visitorId"})
    try:
        scan = scan_service.record_scan(
            db,
            visitor_id=body.visitor_id,
            name=body.name or "Unknown",
            company=body.company or "",
            event_name=body.event_name or "Unknown Event",
            event_id=body.event_id,
            registration_id=body.registration_id,
            scan_time=body.scan_time,
            entry_type=body.entry_type or EntryType.MANUAL,
            status=body.status or ScanStatus.VISITED,
            device_info=body.device_info or "Unknown device",
        )
    except scan_service.ScanAlreadyRecorded as e:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=jsonable_encoder({
            "message": "Visitor has already been checked in",
            "scan": QRScanOut.model_validate(e.existing),
        }))
    except SQLAlchemyError as e:
        return _server_error("creating scan record", e)
    return {"message": "Scan record created successfully", "scanId": scan.id,
            "scan": QRScanOut.model_validate(scan)}


@router.patch("/qrscans/{visitor_id}", summary="Update a visitor's scan status")
def update_scan(visitor_id: str, body: QRScanPatch, db: Session = Depends(get_db)):
    if not body.status:
        return JSONResponse(status_code=400, content={"message": "Missing required fields"})
    try:
        scan = scan_service.mark_scan_failed(db, visitor_id, status=body.status, error=body.error,
                                               scan_time=body.scan_time)
    except SQLAlchemyError as e:
        return _server_error("updating scan record", e)
    if not scan:
        return JSONResponse(status_code=404, content={"message": "Scan record not found"})
    return {"message": "Scan record updated successfully", "scan": QRScanOut.model_validate(scan)}
