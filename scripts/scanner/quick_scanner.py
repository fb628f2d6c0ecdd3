# scripts/scanner/quick_scanner.py
"""
Continuous check-in station.

Reads one code per line from stdin (a USB/Bluetooth QR scanner in keyboard
mode, or a person typing badge IDs) and checks each one in against the
Visitrack API. Every outcome — success, duplicate, error — is printed and
the station goes straight back to waiting for the next code.

Usage:
  python scripts/scanner/quick_scanner.py --api http://192.168.1.50:8080
  python scripts/scanner/quick_scanner.py --manual --event 65f0c0ffee0000000000e001
"""

import argparse
import asyncio
import platform
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import httpx
from app.config import settings
from app.models.qr_scan import EntryType
from app.services.checkin_service import CheckInError, check_in
from app.services.http_stores import HttpScanLogStore, HttpVisitorStore


def format_outcome(code: str, result=None, error: CheckInError = None) -> str:
    if error is not None:
        hint = " Try again." if error.retryable else ""
        return f"❌ [{error.code.value}] {error.message}{hint} ({code.strip()!r})"
    when = result.scan_time.strftime("%d/%m/%Y %H:%M") if result.scan_time else "unknown time"
    if result.already_checked_in:
        return f"⚠️  {result.name} was already checked in at {when}"
    company = f" ({result.company})" if result.company else ""
    return f"✅ {result.name}{company} checked in — {result.event_name or 'event'} at {when}"


async def run_station(lines, api_url: str, entry_type: str, event_id: str = None,
                      api_key: str = None, out=print, transport=None):
    headers = {"X-API-Key": api_key} if api_key else {}
    device = f"quick-scanner/{platform.node() or 'station'}"
    async with httpx.AsyncClient(base_url=api_url, headers=headers, transport=transport,
                                 timeout=settings.STORE_TIMEOUT_SECONDS) as client:
        visitors = HttpVisitorStore(client)
        scans = HttpScanLogStore(client)
        for line in lines:
            if not line.strip():
                continue
            try:
                result = await check_in(line, entry_type, visitors, scans,
                                        device_info=device, event_id=event_id)
            except CheckInError as e:
                out(format_outcome(line, error=e))
                continue
            out(format_outcome(line, result=result))


def _stdin_lines():
    for line in sys.stdin:
        yield line.rstrip("\n")


def main():
    parser = argparse.ArgumentParser(description="Visitrack continuous check-in station")
    parser.add_argument("--api", default=settings.API_BASE_URL, help="Visitrack API base URL")
    parser.add_argument("--manual", action="store_true", help="Record entries as Manual instead of QR")
    parser.add_argument("--event", default=None, help="Only accept visitors of this event ID")
    parser.add_argument("--api-key", default=settings.API_KEY)
    args = parser.parse_args()

    entry_type = EntryType.MANUAL if args.manual else EntryType.QR
    print(f"📷 Ready — {entry_type} check-in against {args.api}. Ctrl+D to stop.")
    try:
        asyncio.run(run_station(_stdin_lines(), args.api, entry_type, args.event, args.api_key))
    except KeyboardInterrupt:
        pass
    print("👋 Station closed")


if __name__ == "__main__":
    main()
