"""Single-vehicle route feasibility for a candidate visit"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from ...services.geo_service import GeoPoint, GeoService
from .models import Booking
from .time_calculator import AFTERNOON, MORNING, at_local, day_window, overlaps

logger = logging.getLogger(__name__)


@dataclass
class Stop:
    start: datetime
    end: datetime
    location: Optional[GeoPoint]
    is_new: bool = False


class RoutePlanner:
    """
    Replays a working day as one vehicle leaving home at a fixed hour and
    visiting every stop in start order.

    A candidate is rejected when any two stops overlap, when a hop between
    consecutive stops is longer than ``max_hop_minutes`` (no zig-zagging
    across the region), or when the van cannot arrive at a stop, travel plus
    margin included, before the stop starts.
    """

    def __init__(
        self,
        geo: GeoService,
        home: GeoPoint,
        departure: time,
        margin_minutes: int,
        max_hop_minutes: int,
        require_return_home: bool = False,
    ):
        self.geo = geo
        self.home = home
        self.departure = departure
        self.margin = timedelta(minutes=margin_minutes)
        self.max_hop_minutes = max_hop_minutes
        self.require_return_home = require_return_home

    async def is_feasible(self, day: date, candidate: Stop, bookings: list[Booking]) -> bool:
        stops = [Stop(b.start, b.end, b.location) for b in bookings] + [candidate]
        stops.sort(key=lambda s: s.start)

        for previous, following in zip(stops, stops[1:]):
            if overlaps(previous.start, previous.end, following.start, following.end):
                return False

        clock = at_local(day, self.departure)
        here: Optional[GeoPoint] = self.home

        for index, stop in enumerate(stops):
            travel = await self.geo.travel_minutes(here, stop.location)
            if index > 0 and travel > self.max_hop_minutes:
                logger.debug(f"Hop of {travel} min before {stop.start:%H:%M} exceeds limit")
                return False
            arrival = clock + timedelta(minutes=travel) + self.margin
            if arrival > stop.start:
                logger.debug(f"Arrival {arrival:%H:%M} too late for stop at {stop.start:%H:%M}")
                return False
            clock = stop.end
            here = stop.location

        if self.require_return_home:
            back = await self.geo.travel_minutes(here, self.home)
            # The day closes with the first block that is still open when the last visit ends
            closing = day_window(day, MORNING)[1]
            if stops[-1].end > closing:
                closing = day_window(day, AFTERNOON)[1]
            if clock + timedelta(minutes=back) > closing:
                return False

        return True
