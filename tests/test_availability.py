import asyncio
import time
from datetime import date, timedelta

from app.domain.scheduling.availability_service import (
    AvailabilityEngine,
    AvailabilityService,
    AvailabilitySettings,
)
from app.domain.scheduling.models import Booking, DayBlock, Occupancy, ServiceRequest
from app.domain.scheduling.schemas import AvailabilityRequest
from app.domain.scheduling.time_calculator import day_key, is_weekend
from app.services.geo_service import GeoPoint
from conftest import (
    ALGECIRAS,
    ALGECIRAS_CENTRE,
    LA_LINEA,
    MONDAY,
    TARIFA,
    TARIFA_PORT,
    FakeFirestore,
    local,
)

TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)
THURSDAY = MONDAY + timedelta(days=3)

MORNING_90 = [
    {"startTime": "09:00", "endTime": "10:00"},
    {"startTime": "10:00", "endTime": "11:00"},
    {"startTime": "11:00", "endTime": "12:00"},
    {"startTime": "12:00", "endTime": "13:00"},
]


def target(duration=90, location=ALGECIRAS, city="Algeciras"):
    return ServiceRequest(token="tok", city=city, duration_minutes=duration, location=location)


def booking(booking_id, day: date, hour: int, minutes=60, location=ALGECIRAS_CENTRE, city="Algeciras"):
    start = local(day, hour)
    return Booking(booking_id, start, start + timedelta(minutes=minutes), city=city, location=location)


def occupancy_with(*bookings, blocks=()):
    occupancy = Occupancy()
    for b in bookings:
        occupancy.bookings[day_key(b.start)].append(b)
    for block in blocks:
        for key in block.day_keys:
            occupancy.blocks[key].append(block)
    return occupancy


def compute(geo, request, occupancy, days=7, block="morning", now=None, **settings):
    engine = AvailabilityEngine(geo, AvailabilitySettings(**settings))
    now = now or local(MONDAY, 8)
    return asyncio.run(engine.compute(request, occupancy, MONDAY, days, block, now))


def by_date(days):
    return {d["date"]: d for d in days}


def test_ninety_minute_visit_on_empty_morning(geo):
    days = compute(geo, target(), Occupancy(), days=1)

    assert days == [{"date": "2026-10-19", "label": "Lunes 19 de octubre", "slots": MORNING_90}]


def test_both_blocks_when_no_preference(geo):
    days = compute(geo, target(), Occupancy(), days=1, block=None)

    starts = [s["startTime"] for s in days[0]["slots"]]
    assert starts == ["09:00", "10:00", "11:00", "12:00", "17:00", "18:00"]


def test_weekends_are_never_offered(geo):
    days = compute(geo, target(), Occupancy(), days=14)

    assert len(days) == 10
    assert not any(is_weekend(date.fromisoformat(d["date"])) for d in days)


def test_past_slots_are_not_offered_today(geo):
    days = compute(geo, target(), Occupancy(), days=2, now=local(MONDAY, 10, 30))

    found = by_date(days)
    assert [s["startTime"] for s in found["2026-10-19"]["slots"]] == ["11:00", "12:00"]
    assert found["2026-10-20"]["slots"] == MORNING_90


def test_all_day_block_empties_the_day(geo):
    holiday = DayBlock("h", local(TUESDAY, 0), local(WEDNESDAY, 0), all_day=True, day_keys=["2026-10-20"])

    days = compute(geo, target(), occupancy_with(blocks=[holiday]), days=3)

    assert "2026-10-20" not in by_date(days)
    assert {"2026-10-19", "2026-10-21"} <= set(by_date(days))


def test_timed_block_removes_overlapping_windows(geo):
    errand = DayBlock("e", local(WEDNESDAY, 10), local(WEDNESDAY, 11), day_keys=["2026-10-21"])

    days = compute(geo, target(), occupancy_with(blocks=[errand]), days=3)

    assert [s["startTime"] for s in by_date(days)["2026-10-21"]["slots"]] == ["11:00", "12:00"]


def test_city_scoped_block_only_applies_to_that_city(geo):
    scoped = DayBlock("s", local(MONDAY, 0), local(TUESDAY, 0), all_day=True, city="Tarifa", day_keys=["2026-10-19"])

    days = compute(geo, target(), occupancy_with(blocks=[scoped]), days=1)
    assert by_date(days)["2026-10-19"]["slots"] == MORNING_90

    days = compute(geo, target(city="Tarifa"), occupancy_with(blocks=[scoped]), days=1)
    assert days == []


def test_slots_never_overlap_existing_bookings(geo):
    existing = booking("b1", MONDAY, 11)

    days = compute(geo, target(), occupancy_with(existing), days=1)

    # 10:00 would run until 11:30 and 11:00 is taken
    assert [s["startTime"] for s in days[0]["slots"]] == ["09:00", "12:00"]


def test_day_with_booking_beyond_radius_is_excluded(geo):
    far = booking("b1", MONDAY, 9, location=LA_LINEA, city="La Línea")

    days = compute(geo, target(), occupancy_with(far), days=2)

    assert "2026-10-19" not in by_date(days)
    assert "2026-10-20" in by_date(days)


def test_radius_is_configurable(geo):
    far = booking("b1", MONDAY, 9, location=LA_LINEA, city="La Línea")

    days = compute(geo, target(), occupancy_with(far), days=1, max_distance_km=15)

    assert [s["startTime"] for s in days[0]["slots"]] == ["10:00", "11:00", "12:00"]


def test_unknown_booking_location_without_api_key_excludes_the_day(geo):
    unknown = booking("b1", MONDAY, 9, location=None)

    days = compute(geo, target(), occupancy_with(unknown), days=2)
    assert [d["date"] for d in days] == ["2026-10-20"]

    optimistic = compute(geo, target(), occupancy_with(unknown), days=2, unknown_location_policy="optimistic")
    assert "2026-10-19" in by_date(optimistic)


def test_unknown_target_location_only_offers_free_days(geo):
    busy = booking("b1", MONDAY, 9)

    days = compute(geo, target(location=None), occupancy_with(busy), days=2)

    assert [d["date"] for d in days] == ["2026-10-20"]


def test_days_are_ranked_same_city_then_free_then_elsewhere(geo):
    same_city = booking("b1", THURSDAY, 9)
    other_city = booking("b2", TUESDAY, 9, location=ALGECIRAS_CENTRE, city="Los Barrios")

    days = compute(geo, target(), occupancy_with(same_city, other_city), days=5)

    assert [d["date"] for d in days] == [
        "2026-10-22",
        "2026-10-19",
        "2026-10-21",
        "2026-10-23",
        "2026-10-20",
    ]


def test_computation_is_idempotent(geo):
    occupancy = occupancy_with(booking("b1", MONDAY, 11), booking("b2", WEDNESDAY, 9))

    first = compute(geo, target(), occupancy, days=7, block=None)
    second = compute(geo, target(), occupancy, days=7, block=None)

    assert first == second


def test_route_policy_rejects_zig_zag(line_geo):
    tarifa_visit = booking("b1", MONDAY, 10, location=TARIFA, city="Tarifa")
    occupancy = occupancy_with(tarifa_visit)

    across_the_bay = compute(line_geo, target(location=LA_LINEA, city="La Línea"), occupancy, days=1, policy="route")
    assert across_the_bay == []

    next_door = compute(line_geo, target(location=TARIFA_PORT, city="Tarifa"), occupancy, days=1, policy="route")
    # 11:00 leaves no room for the margin after the 10:00 visit
    assert [s["startTime"] for s in next_door[0]["slots"]] == ["12:00"]


def seed_request(db, **extra):
    data = {
        "address": "Calle Real 1",
        "city": "Algeciras",
        "durationMinutes": 90,
        "location": {"lat": ALGECIRAS.lat, "lng": ALGECIRAS.lng},
        "date": local(MONDAY, 9),
    }
    data.update(extra)
    db.seed("appointments", "tok", data)


def test_service_excludes_the_clients_own_visit_and_loads_bookings(geo):
    db = FakeFirestore()
    seed_request(db)
    db.seed("appointments", "b1", {"date": local(MONDAY, 11), "city": "Algeciras", "location": {"lat": 36.132, "lng": -5.454}})

    service = AvailabilityService(db, geo)
    result = asyncio.run(service.find_availability(AvailabilityRequest(token="tok", block="morning", rangeDays=1), now=local(MONDAY, 7)))

    assert result == {
        "days": [
            {
                "date": "2026-10-19",
                "label": "Lunes 19 de octubre",
                "slots": [{"startTime": "09:00", "endTime": "10:00"}, {"startTime": "12:00", "endTime": "13:00"}],
            }
        ]
    }


def test_service_accepts_raw_coordinates(geo):
    service = AvailabilityService(FakeFirestore(), geo)
    request = AvailabilityRequest(lat=ALGECIRAS.lat, lng=ALGECIRAS.lng, durationMinutes="90", timePreference="tarde", rangeDays=1)

    result = asyncio.run(service.find_availability(request, now=local(MONDAY, 7)))

    assert [s["startTime"] for s in result["days"][0]["slots"]] == ["17:00", "18:00"]


def test_duration_override_from_request(geo):
    db = FakeFirestore()
    seed_request(db)

    service = AvailabilityService(db, geo)
    request = AvailabilityRequest(token="tok", block="morning", rangeDays=1, durationMinutes=240)
    result = asyncio.run(service.find_availability(request, now=local(MONDAY, 7)))

    assert [s["startTime"] for s in result["days"][0]["slots"]] == ["09:00", "10:00"]


def test_store_failure_yields_no_days(geo):
    db = FakeFirestore(fail_on={"get"})

    result = asyncio.run(AvailabilityService(db, geo).find_availability(AvailabilityRequest(token="tok")))

    assert result == {"days": []}


def test_timeout_yields_no_days():
    class SlowGeo:
        async def geocode(self, address):
            await asyncio.sleep(1)
            return None

        async def travel_minutes(self, origin, destination):
            return 0

    db = FakeFirestore()
    seed_request(db, location=None)

    service = AvailabilityService(db, SlowGeo(), AvailabilitySettings(timeout_seconds=0.05))
    result = asyncio.run(service.find_availability(AvailabilityRequest(token="tok")))

    assert result == {"days": []}


def test_slow_store_does_not_outlast_the_timeout(geo):
    db = FakeFirestore(latency=0.5)
    seed_request(db)
    service = AvailabilityService(db, geo, AvailabilitySettings(timeout_seconds=0.05))

    async def timed():
        started = time.monotonic()
        result = await service.find_availability(AvailabilityRequest(token="tok", rangeDays=1), now=local(MONDAY, 7))
        return result, time.monotonic() - started

    result, elapsed = asyncio.run(timed())

    assert result == {"days": []}
    assert elapsed < 0.5


def test_target_city_is_filled_from_geocoding():
    class CityGeo:
        async def geocode(self, address):
            return GeoPoint(36.13, -5.45, "Algeciras")

    db = FakeFirestore()
    seed_request(db, location=None, city="")

    service = AvailabilityService(db, CityGeo())
    resolved = asyncio.run(service.resolve_target(AvailabilityRequest(token="tok")))

    assert resolved.location == GeoPoint(36.13, -5.45, "Algeciras")
    assert resolved.city == "Algeciras"
