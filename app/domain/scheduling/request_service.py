"""Change request service - records the slot a client picked for manual approval"""

import logging
from typing import Optional

from fastapi import HTTPException

from ...config import CHANGE_REQUEST_MODE
from .occupancy import service_request_from_doc
from .repository import SchedulingRepository
from .schemas import AppointmentRequest
from .time_calculator import at_local, block_for, day_key, normalize_block, parse_day_key, parse_hhmm

logger = logging.getLogger(__name__)


class ChangeRequestService:
    """Service layer for appointment change requests"""

    def __init__(self, db, mode: Optional[str] = None):
        self.db = db
        self.mode = (mode or CHANGE_REQUEST_MODE).lower()
        self.repo = SchedulingRepository()

    def submit(self, data: AppointmentRequest) -> dict:
        token = (data.token or "").strip()
        if not token or not data.date or not data.startTime or not data.endTime:
            raise HTTPException(status_code=400, detail="Faltan datos: token, fecha u hora")

        day = parse_day_key(data.date)
        start = parse_hhmm(data.startTime)
        end = parse_hhmm(data.endTime)
        if day is None:
            raise HTTPException(status_code=400, detail="Fecha inválida, se espera YYYY-MM-DD")
        if start is None or end is None:
            raise HTTPException(status_code=400, detail="Hora inválida, se espera HH:MM")
        if end <= start:
            raise HTTPException(status_code=400, detail="La hora de fin debe ser posterior al inicio")

        try:
            doc = self.repo.get_service_request(self.db, token)
        except Exception as e:
            logger.error(f"❌ Failed to load service request {token}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e)) from e
        if doc is None:
            raise HTTPException(status_code=404, detail="Solicitud no encontrada")

        request = service_request_from_doc(token, doc)
        block = normalize_block(data.block) or block_for(at_local(day, start))

        payload = {
            "token": token,
            "requestedDate": day_key(day),
            "requestedBlock": block,
            "requestedStart": start.strftime("%H:%M"),
            "requestedEnd": end.strftime("%H:%M"),
            "clientName": request.client_name,
            "phone": request.phone,
            "address": request.address,
            "city": request.city,
            "postalCode": request.postal_code,
            "originalDate": request.original_date.isoformat() if request.original_date else None,
            "status": "pending",
        }

        try:
            existing_id = None
            if self.mode == "upsert":
                existing_id = self.repo.find_pending_change_request(self.db, token)

            if existing_id:
                self.repo.update_change_request(self.db, existing_id, payload)
                logger.info(f"📝 Updated pending change request {existing_id} for {token}")
            else:
                request_id = self.repo.create_change_request(self.db, payload)
                logger.info(f"📅 Change request {request_id} created for {token} on {payload['requestedDate']}")
        except Exception as e:
            logger.error(f"❌ Failed to save change request for {token}: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e)) from e

        return {"success": True}
