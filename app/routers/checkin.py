# app/routers/checkin.py
"""
Server-side check-in — one call runs the whole scan → visitor workflow.
"Already checked in" is a 200 with code ALREADY_CHECKED_IN; workflow errors
(CheckInError) are turned into {status, code, message, retryable} in main.py.
"""

from fastapi import APIRouter, Depends, Request
from app.database import get_session_factory
from app.schemas.checkin import CheckInRequest, CheckInResponse, CheckInVisitorOut
from app.services.checkin_service import check_in
from app.services.sql_stores import SqlScanLogStore, SqlVisitorStore

router = APIRouter()


@router.post("/checkin", response_model=CheckInResponse, summary="Check in a visitor by scanned or typed code")
async def check_in_visitor(body: CheckInRequest, request: Request,
                           session_factory=Depends(get_session_factory)):
    result = await check_in(
        body.code,
        body.entry_type,
        visitor_store=SqlVisitorStore(session_factory),
        scan_store=SqlScanLogStore(session_factory),
        device_info=body.device_info or request.headers.get("user-agent") or "Unknown device",
        event_id=body.event_id,
    )

    visitor = CheckInVisitorOut.model_validate(result)
    if result.already_checked_in:
        return CheckInResponse(status="already_checked_in", code=result.code, visitor=visitor,
                               message=f"{result.name} has already been checked in")
    return CheckInResponse(status="checked_in", visitor=visitor,
                           message=f"{result.name} checked in successfully")
