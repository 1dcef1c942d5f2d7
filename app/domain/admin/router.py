"""Admin router - back-office endpoints, Firebase ID token required"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import get_current_user
from ...database import get_db
from .schemas import (
    BatchDeleteRequest,
    CalendarBlockCreate,
    ExternalServiceUpdate,
    HomeServeConfigResponse,
    HomeServeConfigUpdate,
    RenderConfig,
    SuccessResponse,
)
from .service import AdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def get_admin_service(db=Depends(get_db)) -> AdminService:
    """Dependency injection for AdminService"""
    return AdminService(db)


# ============================================================================
# SETTINGS
# ============================================================================


@router.get("/config/homeserve", response_model=HomeServeConfigResponse)
async def get_homeserve_config(
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    """HomeServe portal user; the password itself is never returned"""
    return service.get_homeserve_config()


@router.post("/config/homeserve", response_model=SuccessResponse, response_model_exclude_none=True)
async def save_homeserve_config(
    data: HomeServeConfigUpdate,
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    return service.save_homeserve_config(data, current_user["uid"])


@router.get("/config/render", response_model=RenderConfig)
async def get_render_config(
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    return service.get_render_config()


@router.post("/config/render", response_model=SuccessResponse, response_model_exclude_none=True)
async def save_render_config(
    data: RenderConfig,
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    return service.save_render_config(data, current_user["uid"])


# ============================================================================
# HOMESERVE SERVICES
# ============================================================================


@router.get("/services/homeserve")
async def list_homeserve_services(
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    return service.list_homeserve_services()


@router.put("/services/homeserve/{service_id}", response_model=SuccessResponse, response_model_exclude_none=True)
async def update_homeserve_service(
    service_id: str,
    data: ExternalServiceUpdate,
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    return service.update_homeserve_service(service_id, data)


@router.post("/services/homeserve/delete", response_model=SuccessResponse, response_model_exclude_none=True)
async def delete_homeserve_services(
    data: BatchDeleteRequest,
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    """Delete several services atomically"""
    return service.delete_homeserve_services(data)


# ============================================================================
# CALENDAR BLOCKS
# ============================================================================


@router.get("/blocks")
async def list_blocks(
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    """Blocks touching the given days (YYYY-MM-DD, inclusive)"""
    return service.list_blocks(from_date, to_date)


@router.post("/blocks", response_model=SuccessResponse)
async def create_block(
    data: CalendarBlockCreate,
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    return service.create_block(data, current_user["uid"])


@router.delete("/blocks/{block_id}", response_model=SuccessResponse)
async def delete_block(
    block_id: str,
    current_user: dict = Depends(get_current_user),
    service: AdminService = Depends(get_admin_service),
):
    return service.delete_block(block_id)
