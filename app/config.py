import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Firebase Configuration (service account fields, Firestore + Auth)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
FIREBASE_CLIENT_EMAIL = os.getenv("FIREBASE_CLIENT_EMAIL")
FIREBASE_PRIVATE_KEY = os.getenv("FIREBASE_PRIVATE_KEY")

# Firestore collections
SERVICE_REQUESTS_COLLECTION = os.getenv("SERVICE_REQUESTS_COLLECTION", "appointments")
BOOKINGS_COLLECTION = os.getenv("BOOKINGS_COLLECTION", "appointments")
BLOCKS_COLLECTION = os.getenv("BLOCKS_COLLECTION", "calendarBlocks")
CHANGE_REQUESTS_COLLECTION = os.getenv("CHANGE_REQUESTS_COLLECTION", "changeRequests")
SETTINGS_COLLECTION = os.getenv("SETTINGS_COLLECTION", "settings")
EXTERNAL_SERVICES_COLLECTION = os.getenv("EXTERNAL_SERVICES_COLLECTION", "externalServices")

# Google Maps (geocoding + distance matrix). Empty key = no lookups, degrade softly.
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
GOOGLE_MAPS_TIMEOUT_SECONDS = float(os.getenv("GOOGLE_MAPS_TIMEOUT_SECONDS", "6.0"))
GEOCODE_CACHE_SECONDS = int(os.getenv("GEOCODE_CACHE_SECONDS", str(30 * 24 * 3600)))

# Business calendar
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Europe/Madrid")
MORNING_START = os.getenv("MORNING_START", "09:00")
MORNING_END = os.getenv("MORNING_END", "14:00")
AFTERNOON_START = os.getenv("AFTERNOON_START", "17:00")
AFTERNOON_END = os.getenv("AFTERNOON_END", "20:00")
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "60"))
SLOT_DISPLAY_MINUTES = int(os.getenv("SLOT_DISPLAY_MINUTES", "60"))
DEFAULT_RANGE_DAYS = int(os.getenv("DEFAULT_RANGE_DAYS", "14"))
MAX_RANGE_DAYS = int(os.getenv("MAX_RANGE_DAYS", "60"))

# Availability policy: "distance" (same-day radius gate) or "route" (vehicle simulation)
AVAILABILITY_POLICY = os.getenv("AVAILABILITY_POLICY", "distance").lower()
# "conservative" = never offer a busy day whose locations cannot be measured
UNKNOWN_LOCATION_POLICY = os.getenv("UNKNOWN_LOCATION_POLICY", "conservative").lower()
MAX_DISTANCE_KM = float(os.getenv("MAX_DISTANCE_KM", "5"))
AVAILABILITY_TIMEOUT_SECONDS = float(os.getenv("AVAILABILITY_TIMEOUT_SECONDS", "20"))

# Route simulation
HOME_LAT = float(os.getenv("HOME_LAT", "36.1408"))
HOME_LNG = float(os.getenv("HOME_LNG", "-5.4562"))
ROUTE_DEPARTURE = os.getenv("ROUTE_DEPARTURE", "08:00")
ROUTE_MARGIN_MINUTES = int(os.getenv("ROUTE_MARGIN_MINUTES", "15"))
ROUTE_MAX_HOP_MINUTES = int(os.getenv("ROUTE_MAX_HOP_MINUTES", "35"))
ROUTE_REQUIRE_RETURN_HOME = os.getenv("ROUTE_REQUIRE_RETURN_HOME", "false").lower() == "true"
TRAVEL_FALLBACK_MINUTES = int(os.getenv("TRAVEL_FALLBACK_MINUTES", "20"))

# Occupancy loading
OCCUPANCY_FALLBACK_SCAN_LIMIT = int(os.getenv("OCCUPANCY_FALLBACK_SCAN_LIMIT", "500"))

# "upsert" updates an open pending request for the same token, "append" always creates
CHANGE_REQUEST_MODE = os.getenv("CHANGE_REQUEST_MODE", "upsert").lower()

# CORS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]
