"""Admin domain schemas - Pydantic models for the back-office panel"""

from typing import Optional

from pydantic import BaseModel, Field


class HomeServeConfigUpdate(BaseModel):
    """Credentials for the HomeServe provider portal"""

    user: Optional[str] = None
    pass_: Optional[str] = Field(default=None, alias="pass")


class HomeServeConfigResponse(BaseModel):
    user: str = ""
    hasPass: bool = False
    lastChange: Optional[str] = None


class RenderConfig(BaseModel):
    """Deployment settings of the scraper service"""

    apiUrl: str = ""
    serviceId: str = ""
    apiKey: str = ""


class ExternalServiceUpdate(BaseModel):
    client: Optional[str] = None
    address: Optional[str] = None


class BatchDeleteRequest(BaseModel):
    ids: list[str]


class CalendarBlockCreate(BaseModel):
    """
    Calendar block created from the panel.

    All-day blocks accept plain dates ("YYYY-MM-DD") for start and end, both
    inclusive. Timed blocks take ISO datetimes; naive values are local time.
    """

    start: str
    end: Optional[str] = None
    allDay: bool = False
    city: Optional[str] = None
    reason: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True
    id: Optional[str] = None
