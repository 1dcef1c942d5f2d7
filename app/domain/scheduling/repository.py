"""Scheduling repository - Firestore operations for requests, bookings and blocks"""

from datetime import datetime
from typing import Optional

from google.cloud.firestore import SERVER_TIMESTAMP, FieldFilter, Query

from ...config import (
    BLOCKS_COLLECTION,
    BOOKINGS_COLLECTION,
    CHANGE_REQUESTS_COLLECTION,
    SERVICE_REQUESTS_COLLECTION,
)

# Firestore caps array-contains-any at 30 values per query
ARRAY_QUERY_CHUNK = 30

Document = tuple[str, dict]


class SchedulingRepository:
    """Repository for scheduling document store operations"""

    @staticmethod
    def get_service_request(db, token: str) -> Optional[dict]:
        """Get a service request by its token (document id)"""
        snapshot = db.collection(SERVICE_REQUESTS_COLLECTION).document(token).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    @staticmethod
    def get_bookings_between(
        db, start: datetime, end: datetime, start_key: str, end_key: str
    ) -> list[Document]:
        """
        Bookings whose `date` falls in [start, end).

        Timestamps and "YYYY-MM-DD..." strings sort in separate type groups in
        Firestore, so both encodings are queried and merged by id.
        """
        collection = db.collection(BOOKINGS_COLLECTION)
        by_timestamp = (
            collection.where(filter=FieldFilter("date", ">=", start))
            .where(filter=FieldFilter("date", "<", end))
            .stream()
        )
        by_string = (
            collection.where(filter=FieldFilter("date", ">=", start_key))
            .where(filter=FieldFilter("date", "<", end_key))
            .stream()
        )

        documents: dict[str, dict] = {}
        for snapshot in list(by_timestamp) + list(by_string):
            documents[snapshot.id] = snapshot.to_dict() or {}
        return list(documents.items())

    @staticmethod
    def scan_bookings(db, limit: int) -> list[Document]:
        """
        Bounded scan used when the date range query is not serviceable.

        Reads the `limit` bookings with the latest `date` (single-field index
        only), so the upcoming window is covered before older history.
        """
        snapshots = (
            db.collection(BOOKINGS_COLLECTION)
            .order_by("date", direction=Query.DESCENDING)
            .limit(limit)
            .stream()
        )
        return [(s.id, s.to_dict() or {}) for s in snapshots]

    @staticmethod
    def get_blocks_for_days(db, day_keys: list[str]) -> list[Document]:
        """Calendar blocks whose denormalized dayKeys intersect the given days"""
        documents: dict[str, dict] = {}
        for i in range(0, len(day_keys), ARRAY_QUERY_CHUNK):
            chunk = day_keys[i : i + ARRAY_QUERY_CHUNK]
            snapshots = (
                db.collection(BLOCKS_COLLECTION)
                .where(filter=FieldFilter("dayKeys", "array_contains_any", chunk))
                .stream()
            )
            for snapshot in snapshots:
                documents[snapshot.id] = snapshot.to_dict() or {}
        return list(documents.items())

    @staticmethod
    def find_pending_change_request(db, token: str) -> Optional[str]:
        """Id of the open pending change request for a token, if any"""
        snapshots = (
            db.collection(CHANGE_REQUESTS_COLLECTION)
            .where(filter=FieldFilter("token", "==", token))
            .where(filter=FieldFilter("status", "==", "pending"))
            .limit(1)
            .stream()
        )
        for snapshot in snapshots:
            return snapshot.id
        return None

    @staticmethod
    def create_change_request(db, data: dict) -> str:
        """Create a change request and return its id"""
        payload = {**data, "createdAt": SERVER_TIMESTAMP}
        _, ref = db.collection(CHANGE_REQUESTS_COLLECTION).add(payload)
        return ref.id

    @staticmethod
    def update_change_request(db, request_id: str, data: dict) -> None:
        """Update a pending change request in place"""
        payload = {**data, "updatedAt": SERVER_TIMESTAMP}
        db.collection(CHANGE_REQUESTS_COLLECTION).document(request_id).update(payload)
