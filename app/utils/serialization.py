from datetime import date, datetime
from typing import Any


def serialize_document(data: Any) -> Any:
    """
    Make a stored document JSON-safe without altering its text.

    Timestamps become ISO strings and Firestore GeoPoints become
    {"lat", "lng"} objects. Nested dicts and lists are walked recursively.
    Strings are returned as stored so that values read by the panel can be
    written back unchanged.
    """
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, dict):
        return {key: serialize_document(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [serialize_document(item) for item in data]
    if hasattr(data, "latitude") and hasattr(data, "longitude"):
        return {"lat": data.latitude, "lng": data.longitude}
    return data
