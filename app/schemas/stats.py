# app/schemas/stats.py
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional


class CheckInStatsOut(BaseModel):
    date: str
    event_id: Optional[str] = None
    total_visitors: int
    checked_in: int
    pending: int
    scans_today: int
    scans_by_entry_type: dict[str, int]
    failed_scans: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True
