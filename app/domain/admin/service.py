"""Admin service - Business logic for the back-office panel"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import HTTPException

from ...config import DEFAULT_RANGE_DAYS, MAX_RANGE_DAYS
from ...utils.serialization import serialize_document
from ..scheduling.occupancy import coerce_datetime, normalize_block
from ..scheduling.repository import SchedulingRepository
from ..scheduling.time_calculator import (
    at_local,
    day_key,
    day_keys_between,
    iter_days,
    local_now,
    parse_day_key,
)
from .repository import HOMESERVE_SETTINGS_DOC, RENDER_SETTINGS_DOC, AdminRepository
from .schemas import (
    BatchDeleteRequest,
    CalendarBlockCreate,
    ExternalServiceUpdate,
    HomeServeConfigResponse,
    HomeServeConfigUpdate,
    RenderConfig,
)

logger = logging.getLogger(__name__)


def _store_call(action: str, func, *args):
    """Run a store operation, turning unexpected failures into 500s"""
    try:
        return func(*args)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Failed to {action}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e


class AdminService:
    """Service layer for settings, external services and calendar blocks"""

    def __init__(self, db):
        self.db = db
        self.repo = AdminRepository()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_homeserve_config(self) -> HomeServeConfigResponse:
        data = _store_call("load HomeServe config", self.repo.get_settings, self.db, HOMESERVE_SETTINGS_DOC)
        if data is None:
            return HomeServeConfigResponse()
        last_change = data.get("lastChange")
        return HomeServeConfigResponse(
            user=data.get("user") or "",
            hasPass=bool(data.get("pass")),
            lastChange=last_change.isoformat() if isinstance(last_change, datetime) else None,
        )

    def save_homeserve_config(self, data: HomeServeConfigUpdate, uid: str) -> dict:
        # An omitted password keeps the stored one
        payload = {k: v for k, v in {"user": data.user, "pass": data.pass_}.items() if v is not None}
        _store_call(
            "save HomeServe config",
            lambda: self.repo.merge_settings(self.db, HOMESERVE_SETTINGS_DOC, payload, touch=True),
        )
        logger.info(f"🔐 HomeServe credentials updated by {uid}")
        return {"success": True}

    def get_render_config(self) -> RenderConfig:
        data = _store_call("load render config", self.repo.get_settings, self.db, RENDER_SETTINGS_DOC)
        return RenderConfig(**(data or {}))

    def save_render_config(self, data: RenderConfig, uid: str) -> dict:
        _store_call(
            "save render config",
            self.repo.replace_settings,
            self.db,
            RENDER_SETTINGS_DOC,
            data.model_dump(),
        )
        logger.info(f"⚙️ Render config updated by {uid}")
        return {"success": True}

    # ------------------------------------------------------------------
    # External services
    # ------------------------------------------------------------------

    def list_homeserve_services(self) -> list[dict]:
        services = _store_call("list HomeServe services", self.repo.list_external_services, self.db)
        return serialize_document(services)

    def update_homeserve_service(self, service_id: str, data: ExternalServiceUpdate) -> dict:
        # Omitted fields keep their stored value
        updates = data.model_dump(exclude_none=True)
        if not updates:
            raise HTTPException(status_code=400, detail="Nothing to update")
        _store_call(
            f"update service {service_id}",
            self.repo.update_external_service,
            self.db,
            service_id,
            updates,
        )
        return {"success": True}

    def delete_homeserve_services(self, data: BatchDeleteRequest) -> dict:
        ids = [i for i in data.ids if i]
        if not ids:
            raise HTTPException(status_code=400, detail="No ids provided")
        _store_call("delete HomeServe services", self.repo.delete_external_services, self.db, ids)
        logger.info(f"🗑️ Deleted {len(ids)} HomeServe services")
        return {"success": True}

    # ------------------------------------------------------------------
    # Calendar blocks
    # ------------------------------------------------------------------

    def list_blocks(self, from_date: Optional[str], to_date: Optional[str]) -> list[dict]:
        """Blocks touching [from, to], both inclusive; defaults to the next two weeks"""
        start = self._parse_day(from_date, "from") if from_date else local_now().date()
        end = self._parse_day(to_date, "to") if to_date else start + timedelta(days=DEFAULT_RANGE_DAYS - 1)
        if end < start:
            raise HTTPException(status_code=400, detail="'to' must not be before 'from'")
        count = (end - start).days + 1
        if count > MAX_RANGE_DAYS:
            raise HTTPException(status_code=400, detail=f"Range limited to {MAX_RANGE_DAYS} days")

        keys = [day_key(d) for d in iter_days(start, count)]
        documents = _store_call(
            "list calendar blocks", SchedulingRepository.get_blocks_for_days, self.db, keys
        )

        blocks = []
        for doc_id, raw in documents:
            block = normalize_block(doc_id, raw)
            if block is None:
                continue
            blocks.append(
                {
                    "id": block.id,
                    "start": block.start,
                    "end": block.end,
                    "allDay": block.all_day,
                    "city": block.city,
                    "reason": block.reason,
                    "dayKeys": block.day_keys,
                }
            )
        blocks.sort(key=lambda b: b["start"])
        return serialize_document(blocks)

    def create_block(self, data: CalendarBlockCreate, uid: str) -> dict:
        if data.allDay:
            first = self._parse_day(data.start, "start")
            last = self._parse_day(data.end, "end") if data.end else first
            if last < first:
                raise HTTPException(status_code=400, detail="End day must not be before start day")
            start = at_local(first, time(0, 0))
            end = at_local(last + timedelta(days=1), time(0, 0))
        else:
            start = self._parse_instant(data.start, "start")
            end = self._parse_instant(data.end, "end")
            if end <= start:
                raise HTTPException(status_code=400, detail="End must be after start")

        payload = {
            "start": start,
            "end": end,
            "allDay": data.allDay,
            "city": (data.city or "").strip(),
            "reason": (data.reason or "").strip(),
            "dayKeys": day_keys_between(start, end),
            "createdBy": uid,
        }
        block_id = _store_call("create calendar block", self.repo.create_block, self.db, payload)
        logger.info(f"🚫 Calendar block {block_id} created for {', '.join(payload['dayKeys'])}")
        return {"success": True, "id": block_id}

    def delete_block(self, block_id: str) -> dict:
        existing = _store_call("load calendar block", self.repo.get_block, self.db, block_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Block not found")
        _store_call("delete calendar block", self.repo.delete_block, self.db, block_id)
        logger.info(f"🗑️ Calendar block {block_id} deleted")
        return {"success": True, "id": block_id}

    @staticmethod
    def _parse_day(value: Optional[str], name: str) -> date:
        day = parse_day_key((value or "")[:10])
        if day is None:
            raise HTTPException(status_code=400, detail=f"Invalid '{name}' date, expected YYYY-MM-DD")
        return day

    @staticmethod
    def _parse_instant(value: Optional[str], name: str) -> datetime:
        instant = coerce_datetime(value) if value and len(value.strip()) > 10 else None
        if instant is None:
            raise HTTPException(status_code=400, detail=f"Invalid '{name}', expected an ISO datetime")
        return instant
