"""
Geo Service

Address -> coordinates (Google Geocoding API), great-circle distances and
driving times (Google Distance Matrix API).

Every external lookup fails soft: missing API key, network errors, non-OK
statuses or empty results become "unknown" (None) for geocoding and a fixed
conservative estimate for travel time. Callers decide how to treat unknowns.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import httpx

from ..cache import Cache, build_geocode_key
from ..cache import cache as default_cache
from ..config import (
    GEOCODE_CACHE_SECONDS,
    GOOGLE_MAPS_API_KEY,
    GOOGLE_MAPS_TIMEOUT_SECONDS,
    TRAVEL_FALLBACK_MINUTES,
)

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float
    city: Optional[str] = None

    def same_place(self, other: "GeoPoint") -> bool:
        return abs(self.lat - other.lat) < 1e-6 and abs(self.lng - other.lng) < 1e-6

    def key(self) -> str:
        return f"{self.lat:.6f},{self.lng:.6f}"


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine great-circle distance in kilometres"""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class GeoCache:
    """
    In-process memo for geocoding and travel-time lookups.

    Entries live for the life of the process (no eviction). Geocodes are also
    written through to the durable Redis cache so restarts do not pay for them
    again.
    """

    def __init__(self, durable: Optional[Cache] = None, durable_ttl: int = GEOCODE_CACHE_SECONDS):
        self.durable = durable
        self.durable_ttl = durable_ttl
        self._geocodes: dict[str, Optional[GeoPoint]] = {}
        self._travel: dict[str, int] = {}

    def has_geocode(self, address: str) -> bool:
        return address in self._geocodes

    def get_geocode(self, address: str) -> Optional[GeoPoint]:
        if address in self._geocodes:
            return self._geocodes[address]
        if self.durable is None:
            return None
        stored = self.durable.get(build_geocode_key(address))
        if not stored:
            return None
        point = GeoPoint(float(stored["lat"]), float(stored["lng"]), stored.get("city"))
        self._geocodes[address] = point
        return point

    def put_geocode(self, address: str, point: Optional[GeoPoint]) -> None:
        self._geocodes[address] = point
        if point is not None and self.durable is not None:
            self.durable.set(
                build_geocode_key(address),
                {"lat": point.lat, "lng": point.lng, "city": point.city},
                self.durable_ttl,
            )

    def get_travel(self, key: str) -> Optional[int]:
        return self._travel.get(key)

    def put_travel(self, key: str, minutes: int) -> None:
        self._travel[key] = minutes


def _city_from_components(components: list[dict]) -> Optional[str]:
    for wanted in ("locality", "postal_town", "administrative_area_level_3"):
        for component in components or []:
            if wanted in component.get("types", []):
                return component.get("long_name")
    return None


class GeoService:
    """Geocoding and travel-time lookups with memoized caching"""

    def __init__(
        self,
        api_key: Optional[str] = GOOGLE_MAPS_API_KEY,
        geo_cache: Optional[GeoCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = GOOGLE_MAPS_TIMEOUT_SECONDS,
        travel_fallback_minutes: int = TRAVEL_FALLBACK_MINUTES,
    ):
        self.api_key = api_key or ""
        self.cache = geo_cache if geo_cache is not None else GeoCache()
        self.transport = transport
        self.timeout = timeout
        self.travel_fallback_minutes = travel_fallback_minutes

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def geocode(self, address: Optional[str]) -> Optional[GeoPoint]:
        """Resolve an address, None when it cannot be resolved"""
        address = " ".join((address or "").split())
        if not address:
            return None

        cached = self.cache.get_geocode(address)
        if cached is not None or self.cache.has_geocode(address):
            return cached

        if not self.enabled:
            logger.debug("No Google Maps API key, location unknown")
            return None

        try:
            async with self._client() as client:
                response = await client.get(
                    GEOCODE_URL,
                    params={"address": address, "key": self.api_key, "region": "es"},
                )
            if response.status_code != 200:
                logger.warning(f"⚠️ Geocoding HTTP {response.status_code} for '{address}'")
                return None
            data = response.json()
        except Exception as e:
            logger.warning(f"⚠️ Geocoding failed for '{address}': {e}")
            return None

        status = data.get("status")
        results = data.get("results") or []
        if status == "ZERO_RESULTS" or (status == "OK" and not results):
            logger.info(f"Address not resolvable: '{address}'")
            self.cache.put_geocode(address, None)
            return None
        if status != "OK":
            logger.warning(f"⚠️ Geocoding status {status} for '{address}'")
            return None

        first = results[0]
        location = (first.get("geometry") or {}).get("location") or {}
        try:
            point = GeoPoint(
                float(location["lat"]),
                float(location["lng"]),
                _city_from_components(first.get("address_components")),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning(f"⚠️ Geocoding result without coordinates for '{address}'")
            return None

        self.cache.put_geocode(address, point)
        return point

    async def travel_minutes(
        self, origin: Optional[GeoPoint], destination: Optional[GeoPoint]
    ) -> int:
        """Expected driving minutes; fixed estimate when the lookup is impossible"""
        if origin is None or destination is None:
            return self.travel_fallback_minutes
        if origin.same_place(destination):
            return 0

        key = f"{origin.key()}|{destination.key()}"
        cached = self.cache.get_travel(key)
        if cached is not None:
            return cached

        if not self.enabled:
            return self.travel_fallback_minutes

        try:
            async with self._client() as client:
                response = await client.get(
                    DISTANCE_MATRIX_URL,
                    params={
                        "origins": origin.key(),
                        "destinations": destination.key(),
                        "mode": "driving",
                        "key": self.api_key,
                    },
                )
            if response.status_code != 200:
                logger.warning(f"⚠️ Distance Matrix HTTP {response.status_code}")
                return self.travel_fallback_minutes
            data = response.json()
            if data.get("status") != "OK":
                logger.warning(f"⚠️ Distance Matrix status {data.get('status')}")
                return self.travel_fallback_minutes
            element = data["rows"][0]["elements"][0]
            if element.get("status") != "OK":
                logger.warning(f"⚠️ Distance Matrix element status {element.get('status')}")
                return self.travel_fallback_minutes
            seconds = element["duration"]["value"]
        except Exception as e:
            logger.warning(f"⚠️ Travel time lookup failed: {e}")
            return self.travel_fallback_minutes

        minutes = int(math.ceil(seconds / 60))
        self.cache.put_travel(key, minutes)
        return minutes


# Process-wide geo cache, shared by every request
geo_cache = GeoCache(durable=default_cache)


def get_geo_service() -> GeoService:
    """Dependency injection for GeoService"""
    return GeoService(geo_cache=geo_cache)
