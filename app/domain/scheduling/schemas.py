"""Scheduling domain schemas - Pydantic models for the public booking page"""

from typing import Optional, Union

from pydantic import BaseModel, field_validator


class AvailabilityRequest(BaseModel):
    """Either a client token or raw coordinates with a duration"""

    token: Optional[str] = None
    block: Optional[str] = None
    rangeDays: Optional[int] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    durationMinutes: Optional[Union[int, float, str]] = None
    timePreference: Optional[str] = None
    city: Optional[str] = None

    @field_validator("token")
    @classmethod
    def strip_token(cls, v):
        if v is None:
            return v
        return v.strip() or None


class SlotResponse(BaseModel):
    startTime: str
    endTime: str


class DayResponse(BaseModel):
    date: str
    label: str
    slots: list[SlotResponse]


class AvailabilityResponse(BaseModel):
    days: list[DayResponse]


class AppointmentRequest(BaseModel):
    """Client's final pick; required fields are checked by the service (400, not 422)"""

    token: Optional[str] = None
    date: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    block: Optional[str] = None


class TokenRequest(BaseModel):
    token: Optional[str] = None
