"""
Availability service

Turns a service request plus the current calendar into the list of days and
one-hour windows a client may pick from. Two policies decide whether a visit
fits on a day that already has work:

- distance: every known booking of the day must lie within MAX_DISTANCE_KM
  of the new address, otherwise the whole day is skipped
- route: a full vehicle route (home -> stops -> ...) is replayed for each
  candidate window, see route_planner.py
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException

from ...config import (
    AVAILABILITY_POLICY,
    AVAILABILITY_TIMEOUT_SECONDS,
    DEFAULT_RANGE_DAYS,
    HOME_LAT,
    HOME_LNG,
    MAX_DISTANCE_KM,
    MAX_RANGE_DAYS,
    ROUTE_DEPARTURE,
    ROUTE_MARGIN_MINUTES,
    ROUTE_MAX_HOP_MINUTES,
    ROUTE_REQUIRE_RETURN_HOME,
    SLOT_DISPLAY_MINUTES,
    SLOT_STEP_MINUTES,
    UNKNOWN_LOCATION_POLICY,
)
from ...services.geo_service import GeoPoint, GeoService, distance_km
from .models import Booking, CandidateSlot, DayBlock, Occupancy, ServiceRequest
from .occupancy import OccupancyLoader, normalize_city, service_request_from_doc
from .repository import SchedulingRepository
from .route_planner import RoutePlanner, Stop
from .schemas import AvailabilityRequest
from .time_calculator import (
    blocks_for,
    day_key,
    day_label,
    day_window,
    format_hhmm,
    generate_grid,
    is_weekend,
    iter_days,
    local_now,
    normalize_block,
    overlaps,
    parse_duration,
    parse_hhmm,
)

logger = logging.getLogger(__name__)

POLICY_DISTANCE = "distance"
POLICY_ROUTE = "route"

# Day ordering: same-city work first, then free days, then days elsewhere
RANK_SAME_CITY = 0
RANK_EMPTY = 1
RANK_OTHER_CITY = 2


@dataclass
class AvailabilitySettings:
    policy: str = AVAILABILITY_POLICY
    unknown_location_policy: str = UNKNOWN_LOCATION_POLICY
    max_distance_km: float = MAX_DISTANCE_KM
    step_minutes: int = SLOT_STEP_MINUTES
    display_minutes: int = SLOT_DISPLAY_MINUTES
    home: GeoPoint = field(default_factory=lambda: GeoPoint(HOME_LAT, HOME_LNG))
    departure: str = ROUTE_DEPARTURE
    margin_minutes: int = ROUTE_MARGIN_MINUTES
    max_hop_minutes: int = ROUTE_MAX_HOP_MINUTES
    require_return_home: bool = ROUTE_REQUIRE_RETURN_HOME
    timeout_seconds: float = AVAILABILITY_TIMEOUT_SECONDS

    @property
    def conservative(self) -> bool:
        return self.unknown_location_policy != "optimistic"


class AvailabilityEngine:
    """Slot generation and feasibility checks over an already loaded Occupancy"""

    def __init__(self, geo: GeoService, settings: Optional[AvailabilitySettings] = None):
        self.geo = geo
        self.settings = settings or AvailabilitySettings()
        departure = parse_hhmm(self.settings.departure)
        if departure is None:
            raise ValueError(f"Invalid route departure time: {self.settings.departure!r}")
        self.planner = RoutePlanner(
            geo,
            home=self.settings.home,
            departure=departure,
            margin_minutes=self.settings.margin_minutes,
            max_hop_minutes=self.settings.max_hop_minutes,
            require_return_home=self.settings.require_return_home,
        )

    async def compute(
        self,
        target: ServiceRequest,
        occupancy: Occupancy,
        start_day: date,
        days: int,
        block: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[dict]:
        now = now or local_now()
        target_city = normalize_city(target.city or (target.location.city if target.location else ""))

        ranked = []
        for day in iter_days(start_day, days):
            if is_weekend(day):
                continue
            key = day_key(day)
            day_blocks = [b for b in occupancy.blocks_on(key) if self._block_applies(b, target_city)]
            if any(b.all_day for b in day_blocks):
                continue

            bookings = occupancy.bookings_on(key)
            if bookings and not self._locations_usable(target, bookings):
                logger.debug(f"{key}: busy day with unknown locations, not offered")
                continue
            if self.settings.policy != POLICY_ROUTE and self._too_far(target, bookings):
                logger.debug(f"{key}: existing visit beyond {self.settings.max_distance_km} km")
                continue

            slots = await self._slots_for_day(day, target, bookings, day_blocks, block, now)
            if slots:
                ranked.append((self._rank(bookings, target_city), day, slots))

        ranked.sort(key=lambda item: (item[0], item[1]))
        return [
            {
                "date": day_key(day),
                "label": day_label(day),
                "slots": [
                    {"startTime": format_hhmm(s.start), "endTime": format_hhmm(s.end)}
                    for s in slots
                ],
            }
            for _, day, slots in ranked
        ]

    async def _slots_for_day(
        self,
        day: date,
        target: ServiceRequest,
        bookings: list[Booking],
        day_blocks: list[DayBlock],
        block: Optional[str],
        now: datetime,
    ) -> list[CandidateSlot]:
        duration = timedelta(minutes=target.duration_minutes)
        display = timedelta(minutes=self.settings.display_minutes)
        slots = []

        for block_name in blocks_for(block):
            window = day_window(day, block_name)
            grid = generate_grid(window, self.settings.step_minutes, self.settings.display_minutes)
            for start in grid:
                service_end = start + duration
                display_end = start + display
                if start <= now or service_end > window[1]:
                    continue
                covered_end = max(service_end, display_end)
                if any(overlaps(start, covered_end, b.start, b.end) for b in day_blocks):
                    continue

                if self.settings.policy == POLICY_ROUTE:
                    candidate = Stop(start, service_end, target.location, is_new=True)
                    if not await self.planner.is_feasible(day, candidate, bookings):
                        continue
                elif any(overlaps(start, service_end, b.start, b.end) for b in bookings):
                    continue

                slots.append(CandidateSlot(start, display_end, day_key(day), block_name))

        slots.sort(key=lambda s: s.start)
        return slots

    @staticmethod
    def _block_applies(block: DayBlock, target_city: str) -> bool:
        # Without a known city every scoped block is honoured
        return block.is_global or not target_city or normalize_city(block.city) == target_city

    def _locations_usable(self, target: ServiceRequest, bookings: list[Booking]) -> bool:
        if not self.settings.conservative:
            return True
        return target.location is not None and all(b.location is not None for b in bookings)

    def _too_far(self, target: ServiceRequest, bookings: list[Booking]) -> bool:
        if target.location is None:
            return False
        return any(
            b.location is not None
            and distance_km(target.location, b.location) > self.settings.max_distance_km
            for b in bookings
        )

    @staticmethod
    def _rank(bookings: list[Booking], target_city: str) -> int:
        if not bookings:
            return RANK_EMPTY
        if target_city and any(normalize_city(b.city) == target_city for b in bookings):
            return RANK_SAME_CITY
        return RANK_OTHER_CITY


class AvailabilityService:
    """Service layer for the public availability endpoint"""

    def __init__(self, db, geo: GeoService, settings: Optional[AvailabilitySettings] = None):
        self.db = db
        self.geo = geo
        self.settings = settings or AvailabilitySettings()
        self.repo = SchedulingRepository()
        self.engine = AvailabilityEngine(geo, self.settings)
        self.loader = OccupancyLoader(db, geo)

    async def find_availability(self, data: AvailabilityRequest, now: Optional[datetime] = None) -> dict:
        """Days and windows for a request; any unexpected failure yields no days"""
        if not data.token and (data.lat is None or data.lng is None):
            raise HTTPException(status_code=400, detail="Falta token o coordenadas")

        try:
            days = await asyncio.wait_for(self._find(data, now), self.settings.timeout_seconds)
        except HTTPException:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ Availability timed out after {self.settings.timeout_seconds}s")
            return {"days": []}
        except Exception as e:
            logger.error(f"❌ Availability computation failed: {type(e).__name__}: {str(e)}")
            return {"days": []}

        return {"days": days}

    async def _find(self, data: AvailabilityRequest, now: Optional[datetime]) -> list[dict]:
        now = now or local_now()
        target = await self.resolve_target(data)
        block = normalize_block(data.block or data.timePreference)
        range_days = max(1, min(int(data.rangeDays or DEFAULT_RANGE_DAYS), MAX_RANGE_DAYS))
        start_day = now.date()

        logger.info(
            f"🔎 Availability for {target.token or 'coordinates'}: block={block or 'both'}, "
            f"days={range_days}, duration={target.duration_minutes}m, policy={self.settings.policy}"
        )

        exclude = {target.token} if target.token else set()
        occupancy = await self.loader.load(start_day, range_days, exclude_ids=exclude)
        return await self.engine.compute(target, occupancy, start_day, range_days, block, now)

    async def resolve_target(self, data: AvailabilityRequest) -> ServiceRequest:
        if data.token:
            doc = await asyncio.to_thread(self.repo.get_service_request, self.db, data.token)
            if doc is None:
                raise HTTPException(status_code=404, detail="Solicitud no encontrada")
            target = service_request_from_doc(data.token, doc)
            if data.durationMinutes is not None:
                target.duration_minutes = parse_duration(data.durationMinutes)
        else:
            target = ServiceRequest(
                token="",
                city=(data.city or "").strip(),
                duration_minutes=parse_duration(data.durationMinutes),
                location=GeoPoint(float(data.lat), float(data.lng)),
            )

        if target.location is None and target.full_address:
            target.location = await self.geo.geocode(target.full_address)
        if target.location is not None and not target.city:
            target.city = target.location.city or ""
        return target
