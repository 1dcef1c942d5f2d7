import copy
import itertools
import time as clock
from datetime import date, datetime, time, timezone

import pytest
from google.api_core.exceptions import NotFound
from google.cloud.firestore import SERVER_TIMESTAMP

from app.domain.scheduling.time_calculator import BUSINESS_TZ
from app.services.geo_service import GeoCache, GeoPoint, GeoService, distance_km

# Monday
MONDAY = date(2026, 10, 19)

ALGECIRAS = GeoPoint(36.1300, -5.4500)
ALGECIRAS_CENTRE = GeoPoint(36.1320, -5.4540)
LA_LINEA = GeoPoint(36.1680, -5.3480)
TARIFA = GeoPoint(36.0128, -5.6055)
TARIFA_PORT = GeoPoint(36.0200, -5.6000)
HOME = GeoPoint(36.1408, -5.4562)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=BUSINESS_TZ)


# ---------------------------------------------------------------------------
# In-memory Firestore
# ---------------------------------------------------------------------------


def _resolve(value):
    if value is SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, dict):
        return {k: _resolve(v) for k, v in value.items()}
    return value


def _comparable(a, b) -> bool:
    # Firestore orders values inside their own type group only
    if isinstance(a, datetime) and isinstance(b, datetime):
        return True
    if isinstance(a, str) and isinstance(b, str):
        return True
    numbers = (int, float)
    return isinstance(a, numbers) and isinstance(b, numbers) and not isinstance(a, bool)


def _matches(data: dict, field_path: str, op: str, value) -> bool:
    if field_path not in data:
        return False
    current = data[field_path]
    if op == "==":
        return current == value
    if op == "array_contains_any":
        return isinstance(current, list) and any(v in current for v in value)
    if op == "array_contains":
        return isinstance(current, list) and value in current
    if not _comparable(current, value):
        return False
    if op == ">=":
        return current >= value
    if op == ">":
        return current > value
    if op == "<":
        return current < value
    if op == "<=":
        return current <= value
    raise ValueError(f"Unsupported operator {op}")


class FakeSnapshot:
    def __init__(self, doc_id: str, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, db, collection: str, doc_id: str):
        self._db = db
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> dict:
        return self._db.data.setdefault(self._collection, {})

    def get(self):
        self._db.check_failure("get")
        return FakeSnapshot(self.id, self._docs.get(self.id))

    def set(self, data: dict, merge: bool = False):
        self._db.check_failure("set")
        data = _resolve(copy.deepcopy(data))
        if merge and self.id in self._docs:
            self._docs[self.id].update(data)
        else:
            self._docs[self.id] = data

    def update(self, data: dict):
        self._db.check_failure("update")
        if self.id not in self._docs:
            raise NotFound(f"No document to update: {self._collection}/{self.id}")
        self._docs[self.id].update(_resolve(copy.deepcopy(data)))

    def delete(self):
        self._db.check_failure("delete")
        self._docs.pop(self.id, None)


def _order_key(value):
    # Firestore type order: numbers, then timestamps, then strings
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    if isinstance(value, datetime):
        return (1, value.timestamp())
    if isinstance(value, str):
        return (2, value)
    return (3, repr(value))


class FakeQuery:
    def __init__(self, db, collection: str, filters=(), limit=None, order=None):
        self._db = db
        self._collection = collection
        self._filters = tuple(filters)
        self._limit = limit
        self._order = order

    def _copy(self, **changes):
        state = {"filters": self._filters, "limit": self._limit, "order": self._order, **changes}
        return FakeQuery(self._db, self._collection, **state)

    def where(self, field_path=None, op_string=None, value=None, *, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return self._copy(filters=self._filters + ((field_path, op_string, value),))

    def order_by(self, field_path: str, direction: str = "ASCENDING"):
        return self._copy(order=(field_path, direction))

    def limit(self, count: int):
        return self._copy(limit=count)

    def stream(self):
        self._db.check_failure("query", self._filters)
        docs = self._db.data.get(self._collection, {})
        matched = [
            (doc_id, data)
            for doc_id, data in docs.items()
            if all(_matches(data, f, op, v) for f, op, v in self._filters)
        ]
        if self._order is not None:
            field_path, direction = self._order
            # Documents without the field are left out of ordered queries
            matched = [(i, d) for i, d in matched if field_path in d]
            matched.sort(key=lambda item: _order_key(item[1][field_path]), reverse=direction == "DESCENDING")
        if self._limit is not None:
            matched = matched[: self._limit]
        return iter(FakeSnapshot(doc_id, copy.deepcopy(data)) for doc_id, data in matched)


class FakeCollection(FakeQuery):
    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = self._db.new_id()
        return FakeDocumentRef(self._db, self._collection, doc_id)

    def add(self, data: dict):
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref


class FakeBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def delete(self, ref):
        self._ops.append(ref.delete)

    def commit(self):
        self._db.check_failure("commit")
        for op in self._ops:
            op()
        self._ops = []


class FakeFirestore:
    """Just enough of google.cloud.firestore.Client for the repositories"""

    def __init__(self, fail_range_queries: bool = False, fail_on=(), latency: float = 0.0):
        self.data: dict[str, dict[str, dict]] = {}
        self.latency = latency
        self.fail_range_queries = fail_range_queries
        self.fail_on = set(fail_on)
        self._ids = itertools.count(1)

    def new_id(self) -> str:
        return f"auto{next(self._ids)}"

    def check_failure(self, op: str, filters=()):
        if self.latency:
            clock.sleep(self.latency)
        if op in self.fail_on:
            raise RuntimeError(f"store unavailable ({op})")
        if self.fail_range_queries and any(f[1] in (">=", "<") for f in filters):
            raise RuntimeError("The query requires an index")

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    # helpers for tests
    def seed(self, collection: str, doc_id: str, data: dict):
        self.data.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def docs(self, collection: str) -> dict:
        return self.data.get(collection, {})


# ---------------------------------------------------------------------------
# Geo doubles
# ---------------------------------------------------------------------------


class StraightLineGeo:
    """Travel times from straight-line distance at 40 km/h, no network"""

    def __init__(self, fallback: int = 20):
        self.fallback = fallback
        self.calls = 0

    async def geocode(self, address):
        return None

    async def travel_minutes(self, origin, destination):
        self.calls += 1
        if origin is None or destination is None:
            return self.fallback
        return int(-(-distance_km(origin, destination) * 60 // 40))


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def geo():
    """Geo service with no API key: lookups degrade to unknown"""
    return GeoService(api_key="", geo_cache=GeoCache())


@pytest.fixture
def line_geo():
    return StraightLineGeo()
