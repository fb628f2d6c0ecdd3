# app/routers/visitors.py
"""Visitor lookup, registration, and the visitor half of a check-in."""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.models.visitor import Visitor, VisitorStatus
from app.schemas.visitor import VisitorCheckInUpdate, VisitorCreate, VisitorOut
from app.services import visitor_service
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/visitors", response_model=list[VisitorOut], summary="List visitors")
def list_visitors(event_id: Optional[str] = Query(None, alias="eventId"),
                  visitor_status: Optional[str] = Query(None, alias="status"),
                  limit: int = Query(100, ge=1, le=1000),
                  db: Session = Depends(get_db)):
    q = db.query(Visitor)
    if event_id:
        q = q.filter(Visitor.event_id == event_id)
    if visitor_status:
        q = q.filter(Visitor.status == visitor_status)
    return q.order_by(Visitor.created_at.desc()).limit(limit).all()


@router.post("/visitors", response_model=VisitorOut, status_code=status.HTTP_201_CREATED,
             summary="Register a visitor for an event")
def register_visitor(body: VisitorCreate, db: Session = Depends(get_db)):
    if visitor_service.find_registration(db, body.event_id, body.email):
        return JSONResponse(status_code=400,
                            content={"message": f"{body.email} is already registered for this event"})
    return visitor_service.register_visitor(db, body)


@router.get("/visitors/{visitor_id}", response_model=VisitorOut, summary="Get one visitor")
def get_visitor(visitor_id: str, db: Session = Depends(get_db)):
    if not visitor_service.is_valid_visitor_id(visitor_id):
        return JSONResponse(status_code=400, content={"message": "Invalid visitor ID"})
    try:
        visitor = visitor_service.get_visitor(db, visitor_id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching visitor {visitor_id}: {e}", exc_info=True)
        return JSONResponse(status_code=500,
                            content={"message": "Internal server error", "error": str(e)})
    if not visitor:
        return JSONResponse(status_code=404, content={"message": "Visitor not found"})
    return visitor


@router.post("/visitors/{visitor_id}/check-in", summary="Mark a visitor as arrived")
def check_in_visitor(visitor_id: str, body: VisitorCheckInUpdate, db: Session = Depends(get_db)):
    """
    Conditional update — refuses (409) a visitor who has already arrived, so two
    desks cannot both flip the same visitor.
    """
    if not body.status or not body.check_in_time:
        return JSONResponse(status_code=400, content={"message": "Missing required fields"})
    if not visitor_service.is_valid_visitor_id(visitor_id):
        return JSONResponse(status_code=400, content={"message": "Invalid visitor ID format"})
    if body.status not in VisitorStatus.ARRIVED:
        return JSONResponse(status_code=400, content={"message": f"Unsupported status: {body.status}"})

    try:
        updated = visitor_service.mark_checked_in(db, visitor_id, body.check_in_time)
        if not updated:
            existing = visitor_service.get_visitor(db, visitor_id)
    except SQLAlchemyError as e:
        logger.error(f"Error updating visitor status {visitor_id}: {e}", exc_info=True)
        return JSONResponse(status_code=500,
                            content={"message": "Internal server error", "error": str(e)})

    if not updated:
        if existing is None:
            return JSONResponse(status_code=404, content={"message": "Visitor not found"})
        return JSONResponse(status_code=409, content={"message": "Visitor has already been checked in"})
    return {"message": "Visitor status updated successfully",
            "status": VisitorStatus.VISITED,
            "checkInTime": body.check_in_time.isoformat()}
