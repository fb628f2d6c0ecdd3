# app/services/checkin_service.py
"""
Visitor check-in workflow — scan / manual entry → checked in.

Order of store calls for one check-in (never reordered, never parallel):
  1. dedup read     scan_store.find_checked_in
  2. visitor read   visitor_store.get
  3. scan insert    scan_store.insert          (unique per visitor)
  4. visitor update visitor_store.mark_checked_in (conditional)
If 4 fails after 3 succeeded, the scan row is marked failed (compensation)
and the caller gets VISITOR_UPDATE_FAILED.

Every store call is bounded by STORE_TIMEOUT_SECONDS. A timeout counts as a
failure of that step, but a timed-out write may still land, so:
  - insert timeout → our scan marked failed (if it landed), SCAN_WRITE_FAILED
  - update timeout → visitor re-read; if arrived the check-in stands,
    otherwise compensation and VISITOR_UPDATE_FAILED
Stores must not return from a cancelled write until it has settled
(see sql_stores._SqlStore._call).

"Already checked in" is a normal result, not an error: staff see a warning
with the original scan time and keep scanning.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from app.config import settings
from app.models.qr_scan import EntryType, ScanStatus
from app.models.visitor import VisitorStatus
from app.services.stores import (
    DuplicateScanError, ScanInfo, ScanLogStore, StoreError, VisitorInfo, VisitorStore,
)
from app.services.visitor_service import VISITOR_ID_PATTERN
from app.utils.logger import get_logger

logger = get_logger(__name__)


class CheckInErrorCode(str, Enum):
    INVALID_CODE = "INVALID_CODE"
    INVALID_CODE_FORMAT = "INVALID_CODE_FORMAT"
    VISITOR_NOT_FOUND = "VISITOR_NOT_FOUND"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"   # result code only, never raised
    SCAN_WRITE_FAILED = "SCAN_WRITE_FAILED"
    VISITOR_UPDATE_FAILED = "VISITOR_UPDATE_FAILED"
    LOOKUP_FAILED = "LOOKUP_FAILED"


class CheckInError(Exception):
    def __init__(self, code: CheckInErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.code in (
            CheckInErrorCode.LOOKUP_FAILED,
            CheckInErrorCode.SCAN_WRITE_FAILED,
            CheckInErrorCode.VISITOR_UPDATE_FAILED,
        )


@dataclass
class CheckInResult:
    already_checked_in: bool
    visitor_id: str
    name: str
    status: str
    scan_time: Optional[datetime] = None
    entry_type: Optional[str] = None
    company: Optional[str] = None
    event_id: Optional[str] = None
    event_name: Optional[str] = None
    device_info: Optional[str] = None

    @property
    def code(self) -> Optional[str]:
        return CheckInErrorCode.ALREADY_CHECKED_IN.value if self.already_checked_in else None

    @classmethod
    def from_scan(cls, scan: ScanInfo, already_checked_in: bool) -> "CheckInResult":
        return cls(
            already_checked_in=already_checked_in,
            visitor_id=scan.visitor_id,
            name=scan.name,
            status=scan.status,
            scan_time=scan.scan_time,
            entry_type=scan.entry_type,
            company=scan.company,
            event_id=scan.event_id,
            event_name=scan.event_name,
            device_info=scan.device_info,
        )

    @classmethod
    def from_visitor(cls, visitor: VisitorInfo) -> "CheckInResult":
        return cls(
            already_checked_in=True,
            visitor_id=visitor.id,
            name=visitor.name,
            status=visitor.status,
            scan_time=visitor.check_in_time,
            company=visitor.company,
            event_id=visitor.event_id,
            event_name=visitor.event_name,
        )


def validate_code(raw_code: Optional[str]) -> str:
    """Trimmed, lowercased visitor ID. Raises CheckInError before any store is touched."""
    code = (raw_code or "").strip()
    if not code:
        raise CheckInError(CheckInErrorCode.INVALID_CODE, "Invalid QR code data")
    if not VISITOR_ID_PATTERN.match(code):
        raise CheckInError(
            CheckInErrorCode.INVALID_CODE_FORMAT,
            "Invalid visitor ID format. Please scan a valid QR code.",
        )
    return code.lower()


async def _bounded(coro, timeout: float):
    return await asyncio.wait_for(coro, timeout=timeout)


async def check_in(raw_code: str, entry_type: str, visitor_store: VisitorStore,
                   scan_store: ScanLogStore, device_info: Optional[str] = None,
                   event_id: Optional[str] = None,
                   timeout: Optional[float] = None) -> CheckInResult:
    if timeout is None:
        timeout = settings.STORE_TIMEOUT_SECONDS
    if entry_type not in EntryType.ALL:
        raise ValueError(f"Unknown entry type: {entry_type}")

    try:
        visitor_id = validate_code(raw_code)
    except CheckInError as e:
        logger.warning(f"[CHECKIN] Rejected code {raw_code!r}: {e.code.value}")
        raise

    # 1. Dedup read
    try:
        existing = await _bounded(scan_store.find_checked_in(visitor_id), timeout)
    except (StoreError, asyncio.TimeoutError) as e:
        logger.error(f"[CHECKIN] Scan lookup failed for {visitor_id}: {e!r}")
        raise CheckInError(CheckInErrorCode.LOOKUP_FAILED,
                           "Failed to check visitor scan status") from e
    if existing:
        logger.info(f"[CHECKIN] {visitor_id} already checked in at {existing.scan_time}")
        return CheckInResult.from_scan(existing, already_checked_in=True)

    # 2. Visitor read
    try:
        visitor = await _bounded(visitor_store.get(visitor_id), timeout)
    except (StoreError, asyncio.TimeoutError) as e:
        logger.error(f"[CHECKIN] Visitor lookup failed for {visitor_id}: {e!r}")
        raise CheckInError(CheckInErrorCode.LOOKUP_FAILED,
                           "Failed to fetch visitor details") from e
    if visitor is None:
        logger.warning(f"[CHECKIN] Visitor {visitor_id} not found")
        raise CheckInError(CheckInErrorCode.VISITOR_NOT_FOUND,
                           "Visitor not found with the provided ID.")
    if visitor.status in VisitorStatus.ARRIVED:
        logger.info(f"[CHECKIN] {visitor_id} already marked {visitor.status} on visitor record")
        return CheckInResult.from_visitor(visitor)
    if visitor.status == VisitorStatus.CANCELLED or (event_id and visitor.event_id != event_id):
        logger.warning(f"[CHECKIN] {visitor_id} not registered for event {event_id or visitor.event_id}")
        raise CheckInError(CheckInErrorCode.VISITOR_NOT_FOUND,
                           "Visitor not found or not registered for this event")

    # 3. Scan insert
    now = datetime.utcnow()
    scan = ScanInfo(
        visitor_id=visitor_id,
        name=visitor.name,
        scan_time=now,
        entry_type=entry_type,
        status=ScanStatus.VISITED,
        event_id=visitor.event_id,
        registration_id=visitor.registration_id,
        company=visitor.company,
        event_name=visitor.event_name,
        device_info=device_info,
    )
    try:
        scan = await _bounded(scan_store.insert(scan), timeout)
    except DuplicateScanError as e:
        # Another device won the race between our dedup read and this insert
        logger.info(f"[CHECKIN] {visitor_id} checked in concurrently at {e.existing.scan_time}")
        return CheckInResult.from_scan(e.existing, already_checked_in=True)
    except StoreError as e:
        logger.error(f"[CHECKIN] Scan write failed for {visitor_id}: {e!r}")
        raise CheckInError(CheckInErrorCode.SCAN_WRITE_FAILED,
                           "Failed to record scan data") from e
    except asyncio.TimeoutError as e:
        # The row may have landed anyway; a failed row never blocks a retry
        logger.error(f"[CHECKIN] Scan write timed out for {visitor_id}")
        await _compensate(scan_store, visitor_id, now, timeout, "Scan write timed out")
        raise CheckInError(CheckInErrorCode.SCAN_WRITE_FAILED,
                           "Failed to record scan data") from e

    # 4. Visitor update
    try:
        visitor = await _bounded(visitor_store.mark_checked_in(visitor_id, now), timeout)
    except StoreError as e:
        logger.error(f"[CHECKIN] Visitor update failed for {visitor_id}: {e!r}")
        await _compensate(scan_store, visitor_id, now, timeout)
        raise CheckInError(CheckInErrorCode.VISITOR_UPDATE_FAILED,
                           "Failed to update visitor status") from e
    except asyncio.TimeoutError as e:
        logger.error(f"[CHECKIN] Visitor update timed out for {visitor_id}")
        visitor = await _arrived_after_timeout(visitor_store, visitor_id, timeout)
        if visitor is None:
            await _compensate(scan_store, visitor_id, now, timeout)
            raise CheckInError(CheckInErrorCode.VISITOR_UPDATE_FAILED,
                               "Failed to update visitor status") from e
        logger.warning(f"[CHECKIN] Late visitor update for {visitor_id} did land, scan kept")

    logger.info(f"[CHECKIN] {visitor_id} ({scan.name}) checked in via {entry_type}")
    result = CheckInResult.from_scan(scan, already_checked_in=False)
    result.status = visitor.status
    return result


async def _arrived_after_timeout(visitor_store: VisitorStore, visitor_id: str,
                                 timeout: float) -> Optional[VisitorInfo]:
    """Re-read a visitor whose update timed out. Returns it only if it is now arrived."""
    try:
        visitor = await _bounded(visitor_store.get(visitor_id), timeout)
    except (StoreError, asyncio.TimeoutError) as e:
        logger.error(f"[CHECKIN] Could not re-read visitor {visitor_id}: {e!r}")
        return None
    if visitor is not None and visitor.status in VisitorStatus.ARRIVED:
        return visitor
    return None


async def _compensate(scan_store: ScanLogStore, visitor_id: str, scan_time: datetime,
                      timeout: float, error: str = "Failed to update visitor status"):
    """
    Mark our scan (the one written at scan_time) failed. Best effort, the
    original error wins. A row some other attempt wrote is left alone.
    """
    try:
        await _bounded(scan_store.mark_failed(visitor_id, error, scan_time=scan_time), timeout)
    except (StoreError, asyncio.TimeoutError) as e:
        logger.error(f"[CHECKIN] Compensation failed for scan of {visitor_id}: {e!r}")
