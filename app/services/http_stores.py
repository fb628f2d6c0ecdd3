# app/services/http_stores.py
"""
HTTP-backed VisitorStore / ScanLogStore for scanner stations.

A check-in desk runs the same workflow as the server but talks to the
Visitrack API instead of the database:

  GET   /api/qrscans/check-visitor?visitorId=   dedup read
  GET   /api/visitors/{id}                      visitor read
  POST  /api/qrscans                            scan insert (409 = duplicate)
  POST  /api/visitors/{id}/check-in             visitor update (409 = already arrived)
  PATCH /api/qrscans/{visitorId}                compensation

The client is owned by the caller so one connection pool serves a whole
scanning session.
"""

from datetime import datetime
from typing import Optional
import httpx
from pydantic import ValidationError
from app.schemas.qr_scan import QRScanOut
from app.schemas.visitor import VisitorEnvelope
from app.services.stores import (
    DuplicateScanError, ScanInfo, StoreError, VisitorInfo, VisitorUpdateError,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("message") or body.get("detail") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"


def _scan_from_payload(payload: dict) -> ScanInfo:
    scan = QRScanOut.model_validate(payload)
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


class _HttpStore:
    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {url}: {e}") from e


class HttpVisitorStore(_HttpStore):
    async def get(self, visitor_id: str) -> Optional[VisitorInfo]:
        response = await self._request("GET", f"/api/visitors/{visitor_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise StoreError(_message(response))
        try:
            visitor = VisitorEnvelope.from_payload(response.json()).visitor
        except (ValueError, ValidationError) as e:
            raise StoreError(f"Malformed visitor response: {e}") from e
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

    async def mark_checked_in(self, visitor_id: str, check_in_time: datetime) -> VisitorInfo:
        """Only id, status and check_in_time are set on the result (the endpoint echoes no record)."""
        response = await self._request(
            "POST", f"/api/visitors/{visitor_id}/check-in",
            json={"status": "Visited", "checkInTime": check_in_time.isoformat()},
        )
        if response.status_code != 200:
            raise VisitorUpdateError(_message(response))
        try:
            status = response.json().get("status") or "Visited"
        except (ValueError, AttributeError):
            status = "Visited"
        return VisitorInfo(id=visitor_id, name="", status=status, check_in_time=check_in_time)


class HttpScanLogStore(_HttpStore):
    async def find_checked_in(self, visitor_id: str) -> Optional[ScanInfo]:
        response = await self._request(
            "GET", "/api/qrscans/check-visitor", params={"visitorId": visitor_id},
        )
        if response.status_code != 200:
            raise StoreError(_message(response))
        try:
            body = response.json()
            if not body.get("exists"):
                return None
            return _scan_from_payload(body["scan"])
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
            raise StoreError(f"Malformed scan check response: {e}") from e

    async def insert(self, scan: ScanInfo) -> ScanInfo:
        response = await self._request("POST", "/api/qrscans", json={
            "visitorId": scan.visitor_id,
            "eventId": scan.event_id,
            "registrationId": scan.registration_id,
            "name": scan.name,
            "company": scan.company,
            "eventName": scan.event_name,
            "scanTime": scan.scan_time.isoformat(),
            "entryType": scan.entry_type,
            "status": scan.status,
            "deviceInfo": scan.device_info,
        })
        if response.status_code == 409:
            try:
                existing = _scan_from_payload(response.json()["scan"])
            except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
                raise StoreError(f"Malformed duplicate scan response: {e}") from e
            raise DuplicateScanError(existing)
        if response.status_code not in (200, 201):
            raise StoreError(_message(response))
        try:
            return _scan_from_payload(response.json()["scan"])
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
            raise StoreError(f"Malformed scan response: {e}") from e

    async def mark_failed(self, visitor_id: str, error: str,
                          scan_time: Optional[datetime] = None) -> None:
        body = {"status": "failed", "error": error}
        if scan_time is not None:
            body["scanTime"] = scan_time.isoformat()
        response = await self._request("PATCH", f"/api/qrscans/{visitor_id}", json=body)
        if response.status_code != 200:
            raise StoreError(_message(response))
