"""Time parsing and calendar arithmetic in the business timezone"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from ...config import (
    AFTERNOON_END,
    AFTERNOON_START,
    BUSINESS_TIMEZONE,
    MORNING_END,
    MORNING_START,
    SLOT_DISPLAY_MINUTES,
    SLOT_STEP_MINUTES,
)

logger = logging.getLogger(__name__)

BUSINESS_TZ = ZoneInfo(BUSINESS_TIMEZONE)

MORNING = "morning"
AFTERNOON = "afternoon"
BLOCK_ORDER = (MORNING, AFTERNOON)

DEFAULT_DURATION_MINUTES = 60

WEEKDAYS_ES = ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"]
MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

_HHMM_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$")


def parse_hhmm(value: str) -> Optional[time]:
    """Parse "HH:MM" (seconds tolerated) into a time, None if malformed"""
    if not isinstance(value, str):
        return None
    match = _HHMM_RE.match(value)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def _required_hhmm(value: str, name: str) -> time:
    parsed = parse_hhmm(value)
    if parsed is None:
        raise ValueError(f"Invalid HH:MM value for {name}: {value!r}")
    return parsed


BLOCK_HOURS = {
    MORNING: (_required_hhmm(MORNING_START, "MORNING_START"), _required_hhmm(MORNING_END, "MORNING_END")),
    AFTERNOON: (
        _required_hhmm(AFTERNOON_START, "AFTERNOON_START"),
        _required_hhmm(AFTERNOON_END, "AFTERNOON_END"),
    ),
}


def local_now() -> datetime:
    """Current instant in the business timezone"""
    return datetime.now(BUSINESS_TZ)


def to_local(value: datetime) -> datetime:
    """Express a datetime in the business timezone; naive values are taken as local"""
    if value.tzinfo is None:
        return value.replace(tzinfo=BUSINESS_TZ)
    return value.astimezone(BUSINESS_TZ)


def at_local(day: date, clock: time) -> datetime:
    return datetime.combine(day, clock, tzinfo=BUSINESS_TZ)


def day_window(day: date, block: str) -> tuple[datetime, datetime]:
    """Absolute start/end of a named block on a calendar day"""
    if block not in BLOCK_HOURS:
        raise ValueError(f"Unknown block: {block!r}")
    start, end = BLOCK_HOURS[block]
    return at_local(day, start), at_local(day, end)


def block_for(instant: datetime) -> str:
    """Block a local instant belongs to; anything from the afternoon start on is afternoon"""
    afternoon_start = BLOCK_HOURS[AFTERNOON][0]
    return AFTERNOON if to_local(instant).time() >= afternoon_start else MORNING


class SlotGrid:
    """
    Window starts from ``start`` advancing by ``step_minutes`` while
    start + display_minutes still fits before ``end``.

    Iterating again starts over, so the grid can be walked several times.
    """

    def __init__(
        self,
        start: datetime,
        end: datetime,
        step_minutes: int = SLOT_STEP_MINUTES,
        display_minutes: int = SLOT_DISPLAY_MINUTES,
    ):
        if step_minutes <= 0:
            raise ValueError("step_minutes must be > 0")
        self.start = start
        self.end = end
        self.step = timedelta(minutes=step_minutes)
        self.display = timedelta(minutes=display_minutes)

    def __iter__(self) -> Iterator[datetime]:
        current = self.start
        while current + self.display <= self.end:
            yield current
            current += self.step


def generate_grid(
    window: tuple[datetime, datetime],
    step_minutes: int = SLOT_STEP_MINUTES,
    display_minutes: int = SLOT_DISPLAY_MINUTES,
) -> SlotGrid:
    start, end = window
    return SlotGrid(start, end, step_minutes, display_minutes)


def is_weekend(day) -> bool:
    """Saturday or Sunday in local civil time"""
    if isinstance(day, datetime):
        day = to_local(day).date()
    return day.weekday() >= 5


def parse_duration(value) -> int:
    """
    Normalize a stored duration to minutes.

    Numbers are minutes, except values above 1000 which are seconds.
    Strings may be numeric or "HH:MM". Anything unusable becomes 60.
    """
    minutes: Optional[float] = None

    if isinstance(value, bool):
        minutes = None
    elif isinstance(value, (int, float)):
        minutes = float(value)
    elif isinstance(value, str):
        text = value.strip()
        clock = _HHMM_RE.match(text)
        if clock:
            minutes = int(clock.group(1)) * 60 + int(clock.group(2))
        else:
            try:
                minutes = float(text.replace(",", "."))
            except ValueError:
                minutes = None

    if minutes is None or minutes != minutes or minutes <= 0:
        return DEFAULT_DURATION_MINUTES
    if minutes > 1000:
        minutes = minutes / 60
    return max(1, int(round(minutes)))


def normalize_block(raw) -> Optional[str]:
    """
    Map the block sent by the web form to "morning"/"afternoon".
    Empty means both blocks (None). Unrecognized text falls back to morning.
    """
    text = str(raw or "").lower().strip()
    if not text or text in ("any", "both", "all", "todos", "cualquiera"):
        return None
    if text == AFTERNOON:
        return AFTERNOON
    if text == MORNING:
        return MORNING
    if "tard" in text or "after" in text:
        return AFTERNOON
    if "mañ" in text or "mana" in text or "morn" in text:
        return MORNING
    logger.debug(f"Unrecognized block {raw!r}, using morning")
    return MORNING


def blocks_for(block: Optional[str]) -> tuple[str, ...]:
    return BLOCK_ORDER if block is None else (block,)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Open-interval overlap: touching edges do not overlap"""
    return a_start < b_end and b_start < a_end


def day_key(value) -> str:
    if isinstance(value, datetime):
        value = to_local(value).date()
    return value.strftime("%Y-%m-%d")


def parse_day_key(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError):
        return None


def format_hhmm(value: datetime) -> str:
    return to_local(value).strftime("%H:%M")


def day_label(day: date) -> str:
    """Human label shown by the booking page, e.g. "Lunes 19 de octubre" """
    return f"{WEEKDAYS_ES[day.weekday()]} {day.day} de {MONTHS_ES[day.month - 1]}"


def iter_days(start: date, count: int) -> Iterator[date]:
    for offset in range(count):
        yield start + timedelta(days=offset)


def day_keys_between(start: datetime, end: datetime) -> list[str]:
    """Local day keys touched by [start, end)"""
    start, end = to_local(start), to_local(end)
    last = (end - timedelta(microseconds=1)).date()
    count = max(1, (last - start.date()).days + 1)
    return [day_key(d) for d in iter_days(start.date(), count)]
