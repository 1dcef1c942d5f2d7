"""Scheduling value objects shared by the loader, the engine and the recorder"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...services.geo_service import GeoPoint


@dataclass
class ServiceRequest:
    token: str
    address: str = ""
    city: str = ""
    postal_code: str = ""
    client_name: str = ""
    phone: str = ""
    duration_minutes: int = 60
    location: Optional[GeoPoint] = None
    original_date: Optional[datetime] = None

    @property
    def full_address(self) -> str:
        parts = [self.address, self.postal_code, self.city]
        return ", ".join(p for p in parts if p)


@dataclass
class Booking:
    id: str
    start: datetime
    end: datetime
    city: str = ""
    address: str = ""
    location: Optional[GeoPoint] = None

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass
class DayBlock:
    id: str
    start: datetime
    end: datetime
    all_day: bool = False
    city: str = ""
    reason: str = ""
    day_keys: list[str] = field(default_factory=list)

    @property
    def is_global(self) -> bool:
        return not self.city


@dataclass
class CandidateSlot:
    start: datetime
    end: datetime
    day_key: str
    block: str


@dataclass
class Occupancy:
    """Busy state for a date range, bucketed by local day key"""

    bookings: dict[str, list[Booking]] = field(default_factory=lambda: defaultdict(list))
    blocks: dict[str, list[DayBlock]] = field(default_factory=lambda: defaultdict(list))

    def bookings_on(self, key: str) -> list[Booking]:
        return sorted(self.bookings.get(key, []), key=lambda b: b.start)

    def blocks_on(self, key: str) -> list[DayBlock]:
        return list(self.blocks.get(key, []))
