"""
Occupancy loading

Stored bookings and calendar blocks were written by several generations of
the booking tools, so dates, durations and locations come in many shapes.
Everything here funnels those shapes into Booking / DayBlock values in the
business timezone, and buckets them per local day.
"""

import asyncio
import logging
import unicodedata
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from ...config import OCCUPANCY_FALLBACK_SCAN_LIMIT
from ...services.geo_service import GeoPoint, GeoService
from .models import Booking, DayBlock, Occupancy, ServiceRequest
from .repository import SchedulingRepository
from .time_calculator import (
    at_local,
    day_key,
    day_keys_between,
    iter_days,
    parse_day_key,
    parse_duration,
    parse_hhmm,
    to_local,
)

logger = logging.getLogger(__name__)

START_FIELDS = ("start", "startAt", "date", "fecha", "scheduledDate", "scheduledAt")
END_FIELDS = ("end", "endAt")
TIME_FIELDS = ("startTime", "time", "hora", "start_time")
END_TIME_FIELDS = ("endTime", "horaFin", "end_time")
DURATION_FIELDS = ("durationMinutes", "duration", "estimatedDuration", "duracion", "duration_minutes")
LOCATION_FIELDS = ("location", "coords", "coordinates", "geo", "position", "geopoint")
STATUS_FIELDS = ("status", "estado", "state")
CANCELLED_FLAGS = ("cancelled", "canceled", "archived", "isCancelled", "deleted")
CANCELLED_STATUSES = {
    "cancelled",
    "canceled",
    "cancelado",
    "cancelada",
    "anulado",
    "anulada",
    "archived",
    "archivado",
    "archivada",
    "deleted",
    "rejected",
    "rechazado",
}


def _first(data: dict, names) -> Any:
    for name in names:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return None


def _text(data: dict, *names) -> str:
    value = _first(data, names)
    return str(value).strip() if value is not None else ""


def normalize_city(value: Optional[str]) -> str:
    """Case and accent insensitive city key ("Algeciras " == "algeciras")"""
    text = unicodedata.normalize("NFKD", str(value or ""))
    text = "".join(c for c in text if not unicodedata.combining(c))
    return " ".join(text.casefold().split())


def coerce_datetime(value) -> Optional[datetime]:
    """
    Stored instant -> aware local datetime.

    Accepts Firestore timestamps (datetime subclasses), exported timestamp
    dicts ({"seconds": ...} / {"_seconds": ...}), epoch numbers and ISO
    strings. A bare "YYYY-MM-DD" string gives local midnight.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return to_local(value)
    if isinstance(value, date):
        return at_local(value, time(0, 0))
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        return to_local(datetime.fromtimestamp(float(seconds), tz=timezone.utc))
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        return to_local(datetime.fromtimestamp(seconds, tz=timezone.utc))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return to_local(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
        day = parse_day_key(text[:10])
        if day is not None:
            return at_local(day, time(0, 0))
    return None


def _has_clock(value) -> bool:
    """True when the raw value carries a time of day, not just a date"""
    if isinstance(value, str):
        return len(value.strip()) > 10
    return isinstance(value, (datetime, dict, int, float)) and not isinstance(value, bool)


def _point(value) -> Optional[GeoPoint]:
    if value is None:
        return None
    if isinstance(value, dict):
        lat = _first(value, ("lat", "latitude", "_latitude"))
        lng = _first(value, ("lng", "lon", "longitude", "_longitude"))
    else:
        lat = getattr(value, "latitude", None)
        lng = getattr(value, "longitude", None)
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180) or (lat == 0 and lng == 0):
        return None
    return GeoPoint(lat, lng)


def extract_location(data: dict) -> Optional[GeoPoint]:
    """Coordinates from flat lat/lng fields, a nested object or a GeoPoint"""
    flat = _point(data)
    if flat is not None:
        return flat
    for name in LOCATION_FIELDS:
        nested = _point(data.get(name))
        if nested is not None:
            return nested
    return None


def is_cancelled(data: dict) -> bool:
    for flag in CANCELLED_FLAGS:
        if data.get(flag) is True:
            return True
    for name in STATUS_FIELDS:
        status = data.get(name)
        if isinstance(status, str) and status.strip().lower() in CANCELLED_STATUSES:
            return True
    return False


def booking_start(data: dict) -> Optional[datetime]:
    raw = _first(data, START_FIELDS)
    start = coerce_datetime(raw)
    if start is None:
        return None
    clock = parse_hhmm(_text(data, *TIME_FIELDS))
    if clock is not None:
        return at_local(start.date(), clock)
    if not _has_clock(raw):
        # A day without a time of day cannot be placed on the grid
        return None
    return start


def booking_end(data: dict, start: datetime) -> datetime:
    end = coerce_datetime(_first(data, END_FIELDS))
    if end is None:
        clock = parse_hhmm(_text(data, *END_TIME_FIELDS))
        if clock is not None:
            end = at_local(start.date(), clock)
    if end is not None and end > start:
        return end
    return start + timedelta(minutes=parse_duration(_first(data, DURATION_FIELDS)))


def address_of(data: dict) -> str:
    parts = [
        _text(data, "address", "direccion", "street"),
        _text(data, "postalCode", "zip", "cp", "postal_code"),
        _text(data, "city", "ciudad", "localidad"),
    ]
    return ", ".join(p for p in parts if p)


def normalize_booking(doc_id: str, data: dict) -> Optional[Booking]:
    start = booking_start(data)
    if start is None:
        logger.warning(f"⚠️ Booking {doc_id} has no usable start, ignored")
        return None
    return Booking(
        id=doc_id,
        start=start,
        end=booking_end(data, start),
        city=_text(data, "city", "ciudad", "localidad"),
        address=address_of(data),
        location=extract_location(data),
    )


def normalize_block(doc_id: str, data: dict) -> Optional[DayBlock]:
    all_day = bool(data.get("allDay") or data.get("all_day") or data.get("fullDay"))
    day_keys = [k for k in (data.get("dayKeys") or []) if parse_day_key(str(k))]
    start = coerce_datetime(data.get("start"))
    end = coerce_datetime(data.get("end"))

    if all_day and day_keys and (start is None or end is None):
        days = sorted(parse_day_key(k) for k in day_keys)
        start = at_local(days[0], time(0, 0))
        end = at_local(days[-1] + timedelta(days=1), time(0, 0))

    if start is None or end is None or end <= start:
        logger.warning(f"⚠️ Calendar block {doc_id} has no usable start/end, ignored")
        return None

    if not day_keys:
        day_keys = day_keys_between(start, end)

    return DayBlock(
        id=doc_id,
        start=start,
        end=end,
        all_day=all_day,
        city=str(data.get("city") or "").strip(),
        reason=str(data.get("reason") or ""),
        day_keys=day_keys,
    )


def service_request_from_doc(token: str, data: dict) -> ServiceRequest:
    return ServiceRequest(
        token=token,
        address=_text(data, "address", "direccion", "street"),
        city=_text(data, "city", "ciudad", "localidad"),
        postal_code=_text(data, "postalCode", "zip", "cp", "postal_code"),
        client_name=_text(data, "clientName", "name", "client", "nombre"),
        phone=_text(data, "phone", "telefono", "clientPhone"),
        duration_minutes=parse_duration(_first(data, DURATION_FIELDS)),
        location=extract_location(data),
        original_date=coerce_datetime(_first(data, ("date", "scheduledDate"))),
    )


class OccupancyLoader:
    """Loads bookings and calendar blocks for a date range"""

    def __init__(self, db, geo: GeoService, fallback_scan_limit: int = OCCUPANCY_FALLBACK_SCAN_LIMIT):
        self.db = db
        self.geo = geo
        self.repo = SchedulingRepository()
        self.fallback_scan_limit = fallback_scan_limit

    async def load(
        self, start_day: date, days: int, exclude_ids: Optional[set[str]] = None
    ) -> Occupancy:
        exclude_ids = exclude_ids or set()
        end_day = start_day + timedelta(days=days)
        range_start = at_local(start_day, time(0, 0))
        range_end = at_local(end_day, time(0, 0))

        occupancy = Occupancy()

        for booking in await self._load_bookings(range_start, range_end, exclude_ids):
            occupancy.bookings[day_key(booking.start)].append(booking)

        wanted_keys = [day_key(d) for d in iter_days(start_day, days)]
        wanted = set(wanted_keys)
        blocks = await asyncio.to_thread(self.repo.get_blocks_for_days, self.db, wanted_keys)
        for doc_id, data in blocks:
            block = normalize_block(doc_id, data)
            if block is None:
                continue
            for key in block.day_keys:
                if key in wanted:
                    occupancy.blocks[key].append(block)

        logger.debug(
            f"Occupancy {day_key(start_day)}+{days}d: "
            f"{sum(len(v) for v in occupancy.bookings.values())} bookings, "
            f"{sum(len(v) for v in occupancy.blocks.values())} block-days"
        )
        return occupancy

    async def _load_bookings(
        self, range_start: datetime, range_end: datetime, exclude_ids: set[str]
    ) -> list[Booking]:
        try:
            documents = await asyncio.to_thread(
                self.repo.get_bookings_between,
                self.db,
                range_start,
                range_end,
                day_key(range_start),
                day_key(range_end),
            )
        except Exception as e:
            logger.warning(
                f"⚠️ Date range query failed ({e}), scanning last {self.fallback_scan_limit} bookings"
            )
            documents = await asyncio.to_thread(self.repo.scan_bookings, self.db, self.fallback_scan_limit)

        bookings = []
        for doc_id, data in documents:
            if doc_id in exclude_ids or is_cancelled(data):
                continue
            booking = normalize_booking(doc_id, data)
            if booking is None or not (range_start <= booking.start < range_end):
                continue
            if booking.location is None and booking.address:
                resolved = await self.geo.geocode(booking.address)
                if resolved is not None:
                    booking.location = resolved
                    booking.city = booking.city or (resolved.city or "")
            bookings.append(booking)
        return bookings
