# app/services/stores.py
"""
Store interfaces used by the check-in workflow.

The workflow only ever talks to a VisitorStore and a ScanLogStore. Two
implementations exist:
  - sql_stores.py  — direct database access (server-side /api/checkin)
  - http_stores.py — the /api/visitors and /api/qrscans endpoints (scanner stations)

Both translate their backend's failures into the exceptions below.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass
class VisitorInfo:
    id: str
    name: str
    status: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    event_id: Optional[str] = None
    event_name: Optional[str] = None
    event_location: Optional[str] = None
    registration_id: Optional[str] = None
    check_in_time: Optional[datetime] = None


@dataclass
class ScanInfo:
    visitor_id: str
    name: str
    scan_time: datetime
    entry_type: str          # QR | Manual
    status: str              # Visited | failed
    event_id: Optional[str] = None
    registration_id: Optional[str] = None
    company: Optional[str] = None
    event_name: Optional[str] = None
    device_info: Optional[str] = None
    error: Optional[str] = None


class StoreError(Exception):
    """A store call failed (connection, query, non-2xx). Transient from the caller's view."""


class VisitorUpdateError(StoreError):
    """The visitor status update matched no row, or was rejected."""


class DuplicateScanError(Exception):
    """A successful scan already exists for this visitor (unique visitor_id)."""

    def __init__(self, existing: ScanInfo):
        super().__init__(f"Visitor {existing.visitor_id} already has a scan record")
        self.existing = existing


class VisitorStore(Protocol):
    async def get(self, visitor_id: str) -> Optional[VisitorInfo]:
        ...

    async def mark_checked_in(self, visitor_id: str, check_in_time: datetime) -> VisitorInfo:
        """
        Set status=Visited unless already arrived. Raises VisitorUpdateError if nothing changed.
        The returned VisitorInfo is guaranteed to carry id, status and check_in_time only;
        stores that cannot read the record back (HTTP) leave the other fields empty.
        """
        ...


class ScanLogStore(Protocol):
    async def find_checked_in(self, visitor_id: str) -> Optional[ScanInfo]:
        """Successful scan for this visitor, ignoring records marked failed."""
        ...

    async def insert(self, scan: ScanInfo) -> ScanInfo:
        """Record a scan. Raises DuplicateScanError if a successful one exists."""
        ...

    async def mark_failed(self, visitor_id: str, error: str,
                          scan_time: Optional[datetime] = None) -> None:
        """Compensation. With scan_time, only a record written at that time is touched."""
        ...
