# app/services/sql_stores.py
"""
Database-backed VisitorStore / ScanLogStore for the server-side check-in.

Each call opens its own short session on a worker thread, so concurrent
check-ins share nothing in-process and the event loop is never blocked by
a slow query.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.models.qr_scan import ScanStatus
from app.services import scan_service, visitor_service
from app.services.stores import (
    DuplicateScanError, ScanInfo, StoreError, VisitorInfo, VisitorUpdateError,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


def visitor_to_info(visitor) -> VisitorInfo:
    return VisitorInfo(
        id=visitor.id,
        name=visitor.name,
        status=visitor.status,
        email=visitor.email,
        phone=visitor.phone,
        company=visitor.company,
        event_id=visitor.event_id,
        event_name=visitor.event_name,
        event_location=visitor.event_location,
        registration_id=visitor.registration_id,
        check_in_time=visitor.check_in_time,
    )


def scan_to_info(scan) -> ScanInfo:
    return ScanInfo(
        visitor_id=scan.visitor_id,
        name=scan.name,
        scan_time=scan.scan_time,
        entry_type=scan.entry_type,
        status=scan.status,
        event_id=scan.event_id,
        registration_id=scan.registration_id,
        company=scan.company,
        event_name=scan.event_name,
        device_info=scan.device_info,
        error=scan.error,
    )


class _SqlStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _run(self, fn, *args):
        db = self._session_factory()
        try:
            return fn(db, *args)
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(str(e)) from e
        finally:
            db.close()

    async def _call(self, fn, *args):
        work = asyncio.ensure_future(asyncio.to_thread(self._run, fn, *args))
        try:
            return await asyncio.shield(work)
        except asyncio.CancelledError:
            # A worker thread cannot be interrupted: wait for its commit or rollback
            # so the caller's next step sees settled rows
            await asyncio.wait([work])
            raise


class SqlVisitorStore(_SqlStore):
    async def get(self, visitor_id: str) -> Optional[VisitorInfo]:
        return await self._call(self._get, visitor_id)

    async def mark_checked_in(self, visitor_id: str, check_in_time: datetime) -> VisitorInfo:
        return await self._call(self._mark_checked_in, visitor_id, check_in_time)

    @staticmethod
    def _get(db: Session, visitor_id: str):
        visitor = visitor_service.get_visitor(db, visitor_id)
        return visitor_to_info(visitor) if visitor else None

    @staticmethod
    def _mark_checked_in(db: Session, visitor_id: str, check_in_time: datetime):
        if not visitor_service.mark_checked_in(db, visitor_id, check_in_time):
            raise VisitorUpdateError(f"Visitor {visitor_id} not found or already checked in")
        return visitor_to_info(visitor_service.get_visitor(db, visitor_id))


class SqlScanLogStore(_SqlStore):
    async def find_checked_in(self, visitor_id: str) -> Optional[ScanInfo]:
        return await self._call(self._find_checked_in, visitor_id)

    async def insert(self, scan: ScanInfo) -> ScanInfo:
        return await self._call(self._insert, scan)

    async def mark_failed(self, visitor_id: str, error: str,
                          scan_time: Optional[datetime] = None) -> None:
        await self._call(self._mark_failed, visitor_id, error, scan_time)

    @staticmethod
    def _find_checked_in(db: Session, visitor_id: str):
        scan = scan_service.get_successful_scan(db, visitor_id)
        return scan_to_info(scan) if scan else None

    @staticmethod
    def _insert(db: Session, scan: ScanInfo):
        try:
            row = scan_service.record_scan(
                db,
                visitor_id=scan.visitor_id,
                name=scan.name,
                company=scan.company,
                event_name=scan.event_name,
                event_id=scan.event_id,
                registration_id=scan.registration_id,
                scan_time=scan.scan_time,
                entry_type=scan.entry_type,
                status=scan.status,
                device_info=scan.device_info,
            )
        except scan_service.ScanAlreadyRecorded as e:
            if e.existing.status == ScanStatus.FAILED:
                # Lost a race against another attempt that has since failed
                raise StoreError(f"Concurrent scan write for visitor {scan.visitor_id}") from e
            raise DuplicateScanError(scan_to_info(e.existing)) from e
        return scan_to_info(row)

    @staticmethod
    def _mark_failed(db: Session, visitor_id: str, error: str, scan_time: Optional[datetime]):
        if scan_service.mark_scan_failed(db, visitor_id, error=error, scan_time=scan_time) is None:
            raise StoreError(f"No scan record for visitor {visitor_id}")
