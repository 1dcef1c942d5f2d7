"""
Scheduling Domain

Suggests visit windows to clients and records the one they pick.

STRUCTURE:
```
app/domain/scheduling/
├── __init__.py
├── schemas.py              # Request/response models for the booking page
├── models.py               # ServiceRequest, Booking, DayBlock, Occupancy values
├── repository.py           # Firestore queries (requests, bookings, blocks, change requests)
├── time_calculator.py      # Timezone, business blocks, slot grid, duration parsing
├── occupancy.py            # Normalizes stored bookings/blocks into busy intervals
├── availability_service.py # Slot generation, distance gate, day ranking
├── route_planner.py        # Vehicle route simulation (route policy)
├── request_service.py      # Pending change requests
└── router.py               # Public endpoints
```

ENDPOINTS:
- POST /availability-smart (alias /availability) - Suggested days and windows
- POST /appointment-request - Submit chosen window (pending approval)
- POST /client-from-token - Service request details

POLICIES (see app/config.py):
- AVAILABILITY_POLICY: "distance" (default) or "route"
- UNKNOWN_LOCATION_POLICY: "conservative" (default) or "optimistic"
- CHANGE_REQUEST_MODE: "upsert" (default) or "append"
"""

from .router import router

__all__ = ["router"]
