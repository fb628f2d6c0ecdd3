# app/schemas/checkin.py
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Literal, Optional


class CheckInRequest(BaseModel):
    code: str = ""                               # raw scanner / keyboard text, trimmed by the workflow
    entry_type: Literal["QR", "Manual"] = "QR"
    device_info: Optional[str] = None            # defaults to the User-Agent header
    event_id: Optional[str] = None               # restrict check-ins to one event

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CheckInVisitorOut(BaseModel):
    visitor_id: str
    name: str
    company: Optional[str] = None
    event_id: Optional[str] = None
    event_name: Optional[str] = None
    status: str
    scan_time: Optional[datetime] = None
    entry_type: Optional[str] = None
    device_info: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class CheckInResponse(BaseModel):
    status: Literal["checked_in", "already_checked_in"]
    code: Optional[str] = None
    message: str
    visitor: CheckInVisitorOut
