# app/schemas/qr_scan.py
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional


class QRScanCreate(BaseModel):
    visitor_id: Optional[str] = None       # only required field — checked in the router
    event_id: Optional[str] = None
    registration_id: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    event_name: Optional[str] = None
    scan_time: Optional[datetime] = None
    entry_type: Optional[str] = None
    status: Optional[str] = None
    device_info: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class QRScanOut(BaseModel):
    id: Optional[int] = None
    visitor_id: str
    event_id: Optional[str] = None
    registration_id: Optional[str] = None
    name: str
    company: Optional[str] = None
    event_name: Optional[str] = None
    scan_time: datetime
    entry_type: str
    status: str
    error: Optional[str] = None
    device_info: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class QRScanPatch(BaseModel):
    status: Optional[str] = None
    error: Optional[str] = None
    scan_time: Optional[datetime] = None   # only touch the record written at this time

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CheckVisitorOut(BaseModel):
    exists: bool
    message: str
    scan: Optional[QRScanOut] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
