"""
Pytest configuration and fixtures.

Firestore, Google Sheets and Twilio are replaced with in-memory fakes and
wired into the FastAPI app through dependency overrides, so tests never
reach a managed service.
"""
import uuid
from datetime import timedelta
from typing import Any, Optional

import pytest
from google.api_core.exceptions import AlreadyExists, FailedPrecondition, NotFound
from httpx import ASGITransport, AsyncClient

from receptionist.booking_store import BookingStore
from receptionist.core.config import Settings, get_settings
from receptionist.dependencies import get_booking_store, get_notifier, get_sheet_mirror
from receptionist.models import BookingRecord, BookingStatus, business_today
from receptionist.rate_limiter import get_rate_limiter


# ============================================================================
# FIRESTORE FAKE
# ============================================================================

class FakeSnapshot:
    def __init__(self, doc_id: str, data: Optional[dict], update_time: Optional[int] = None):
        self.id = doc_id
        self._data = data
        self.update_time = update_time

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[dict]:
        return dict(self._data) if self._data is not None else None


class FakeWriteOption:
    def __init__(self, last_update_time: Optional[int]):
        self.last_update_time = last_update_time


class FakeDocument:
    def __init__(self, client: "FakeFirestoreClient", docs: dict, versions: dict, doc_id: str):
        self.client = client
        self.docs = docs
        self.versions = versions
        self.id = doc_id

    def get(self) -> FakeSnapshot:
        snapshot = FakeSnapshot(self.id, self.docs.get(self.id), self.versions.get(self.id))
        if self.client.after_get is not None:
            hook, self.client.after_get = self.client.after_get, None
            hook(self)
        return snapshot

    def _write(self, data: dict) -> None:
        self.docs[self.id] = dict(data)
        self.versions[self.id] = self.versions.get(self.id, 0) + 1

    def create(self, data: dict) -> None:
        if self.id in self.docs:
            raise AlreadyExists(f"Document already exists: {self.id}")
        self._write(data)

    def set(self, data: dict) -> None:
        self._write(data)

    def update(self, data: dict, option: Optional[FakeWriteOption] = None) -> None:
        if self.id not in self.docs:
            raise NotFound(f"No document to update: {self.id}")
        if option is not None and option.last_update_time != self.versions.get(self.id):
            raise FailedPrecondition(f"Document changed since read: {self.id}")
        self._write({**self.docs[self.id], **data})


class FakeQuery:
    def __init__(self, docs: dict, filters=(), order=None, max_results=None):
        self.docs = docs
        self.filters = filters
        self.order = order
        self.max_results = max_results

    def where(self, filter=None):
        return FakeQuery(self.docs, self.filters + (filter,), self.order, self.max_results)

    def order_by(self, field_path: str, direction: str = "ASCENDING"):
        return FakeQuery(self.docs, self.filters, (field_path, direction), self.max_results)

    def limit(self, count: int):
        return FakeQuery(self.docs, self.filters, self.order, count)

    def stream(self):
        items = list(self.docs.items())
        for field_filter in self.filters:
            assert field_filter.op_string == "=="
            items = [
                (doc_id, data) for doc_id, data in items
                if data.get(field_filter.field_path) == field_filter.value
            ]
        if self.order:
            field_path, direction = self.order
            items.sort(key=lambda item: item[1].get(field_path) or "", reverse=direction == "DESCENDING")
        if self.max_results is not None:
            items = items[: self.max_results]
        for doc_id, data in items:
            yield FakeSnapshot(doc_id, data)


class FakeCollection(FakeQuery):
    def __init__(self, client: "FakeFirestoreClient", docs: dict, versions: dict):
        super().__init__(docs)
        self.client = client
        self.versions = versions

    def document(self, doc_id: Optional[str] = None) -> FakeDocument:
        return FakeDocument(self.client, self.docs, self.versions, doc_id or uuid.uuid4().hex[:20])


class FakeFirestoreClient:
    def __init__(self):
        self.collections: dict[str, dict] = {}
        self.versions: dict[str, dict] = {}
        # Called once with the document after its next read, to stage a concurrent write
        self.after_get = None

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(
            self,
            self.collections.setdefault(name, {}),
            self.versions.setdefault(name, {}),
        )

    def write_option(self, last_update_time=None) -> FakeWriteOption:
        return FakeWriteOption(last_update_time)


# ============================================================================
# SHEETS / SMS FAKES
# ============================================================================

class FakeSheetMirror:
    def __init__(self):
        self.rows: list[list[str]] = [["Name", "Phone", "Service", "Date", "Time", "Status"]]
        self.fail_append = False

    def append_booking_row(self, record: BookingRecord) -> None:
        if self.fail_append:
            raise RuntimeError("Sheets API quota exceeded")
        self.rows.append([
            record.name, record.phone, record.service or "",
            record.date or "", record.time or "", record.status.value,
        ])

    def find_slot_row(self, date: str, time: str) -> Optional[list[str]]:
        for row in self.rows[1:]:
            if row[3] == date and row[4] == time and row[5] != "cancelled":
                return row
        return None


class FakeNotifier:
    def __init__(self):
        self.owner_messages: list[BookingRecord] = []
        self.customer_messages: list[BookingRecord] = []

    async def notify_owner(self, record: BookingRecord) -> bool:
        self.owner_messages.append(record)
        return True

    async def notify_customer(self, record: BookingRecord) -> bool:
        if record.status != BookingStatus.BOOKED:
            return False
        self.customer_messages.append(record)
        return True


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def future_date() -> str:
    return (business_today() + timedelta(days=7)).isoformat()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        business_name="Demo Barbershop",
        default_business_id="demo-barbershop",
        owner_phone_number="+61400999888",
        intake_rate_limit_per_minute=1000,
        vapi_secret="",
        sheets_conflict_check=False,
    )


@pytest.fixture
def firestore_client() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture
def store(firestore_client: FakeFirestoreClient) -> BookingStore:
    return BookingStore(firestore_client, "bookings")


@pytest.fixture
def mirror() -> FakeSheetMirror:
    return FakeSheetMirror()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def app(settings, store, mirror, notifier):
    from receptionist.main import app

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_booking_store] = lambda: store
    app.dependency_overrides[get_sheet_mirror] = lambda: mirror
    app.dependency_overrides[get_notifier] = lambda: notifier
    get_rate_limiter().clear()

    yield app

    app.dependency_overrides.clear()
    get_rate_limiter().clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def make_payload(future_date):
    def _make(**overrides: Any) -> dict:
        payload = {
            "businessId": "demo-barbershop",
            "name": "Jane Citizen",
            "phone": "0400 111 222",
            "service": "Haircut",
            "preferredDate": future_date,
            "preferredTime": "15:00",
        }
        payload.update(overrides)
        return payload
    return _make
