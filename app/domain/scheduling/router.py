"""Scheduling router - public endpoints used by the client booking page"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ...database import get_db
from ...services.geo_service import GeoService, get_geo_service
from ...utils.serialization import serialize_document
from .availability_service import AvailabilityService
from .repository import SchedulingRepository
from .request_service import ChangeRequestService
from .schemas import AppointmentRequest, AvailabilityRequest, AvailabilityResponse, TokenRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


def get_availability_service(
    db=Depends(get_db), geo: GeoService = Depends(get_geo_service)
) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db, geo)


def get_change_request_service(db=Depends(get_db)) -> ChangeRequestService:
    """Dependency injection for ChangeRequestService"""
    return ChangeRequestService(db)


@router.post("/availability-smart", response_model=AvailabilityResponse)
@router.post("/availability", response_model=AvailabilityResponse)
async def availability(
    data: AvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Suggested days and one-hour windows for a client token (or raw coordinates)"""
    logger.info(f"🔎 availability block received: {data.block or data.timePreference!r}")
    return await service.find_availability(data)


@router.post("/appointment-request")
async def appointment_request(
    data: AppointmentRequest,
    service: ChangeRequestService = Depends(get_change_request_service),
):
    """Record the client's chosen window as a pending change request"""
    return service.submit(data)


@router.post("/client-from-token")
async def client_from_token(data: TokenRequest, db=Depends(get_db)):
    """Service request fields for the booking page header"""
    if not data.token or not data.token.strip():
        raise HTTPException(status_code=400, detail="Falta token")

    try:
        doc = SchedulingRepository.get_service_request(db, data.token.strip())
    except Exception as e:
        logger.error(f"❌ Failed to load client for token: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    if doc is None:
        return JSONResponse(status_code=404, content={})
    return serialize_document(doc)
