# app/schemas/visitor.py
from pydantic import AliasChoices, BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Optional


class VisitorCreate(BaseModel):
    name: str
    email: str
    phone: str
    company: Optional[str] = None
    age: Optional[int] = None
    event_id: str
    event_name: str
    event_location: Optional[str] = None
    event_start_date: Optional[datetime] = None
    event_end_date: Optional[datetime] = None
    registration_id: Optional[str] = None
    form_id: Optional[str] = None
    additional_data: Optional[dict[str, Any]] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class VisitorOut(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    age: Optional[int] = None
    event_id: Optional[str] = None
    event_name: Optional[str] = None
    event_location: Optional[str] = None
    event_start_date: Optional[datetime] = None
    event_end_date: Optional[datetime] = None
    registration_id: Optional[str] = None
    status: str
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class VisitorEnvelope(BaseModel):
    """
    Single typed shape for a visitor lookup response.
    Older deployments return the visitor bare, newer ones as {"visitor": {...}};
    from_payload() accepts both so nothing past the boundary sniffs shapes.
    """
    visitor: VisitorOut

    @classmethod
    def from_payload(cls, payload: Any) -> "VisitorEnvelope":
        if isinstance(payload, dict) and isinstance(payload.get("visitor"), dict):
            return cls.model_validate(payload)
        return cls(visitor=VisitorOut.model_validate(payload))


class VisitorCheckInUpdate(BaseModel):
    # Both optional so a missing field is answered with 400 {message}, like every other error here
    status: Optional[str] = None
    check_in_time: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
