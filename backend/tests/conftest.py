"""Shared test fixtures: in-memory repositories, queue and payload store.

The fakes mirror the repository contracts (COALESCE upserts, JSON merges,
(source_system, external_id) event upserts) so services and processors can
be exercised end to end without Postgres, S3 or SQS.
"""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from supporter360.core.exceptions import MembershipNotFoundError
from supporter360.db.models.event import Event
from supporter360.db.models.membership import Membership
from supporter360.db.models.supporter import Supporter
from supporter360.storage.payload_store import StoredPayload, build_key
from supporter360.webhooks.messages import QueueMessage

_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


class FakeSupporterRepository:
    def __init__(self):
        self.rows: dict[uuid.UUID, Supporter] = {}
        self.aliases: set[tuple[str, uuid.UUID]] = set()
        self.clicks: dict[uuid.UUID, dict] = {}
        self._seq = 0

    def add(self, **fields) -> Supporter:
        """Seed a supporter directly; later calls get later created_at values."""
        self._seq += 1
        values = {
            "supporter_id": uuid.uuid4(),
            "name": None,
            "primary_email": None,
            "phone": None,
            "supporter_type": "Unknown",
            "supporter_type_source": "auto",
            "linked_ids": {},
            "flags": {},
            "created_at": _EPOCH + timedelta(seconds=self._seq),
        }
        values.update(fields)
        if values["primary_email"]:
            values["primary_email"] = values["primary_email"].lower()
        supporter = Supporter(**values)
        self.rows[supporter.supporter_id] = supporter
        return supporter

    async def find_by_id(self, supporter_id):
        return self.rows.get(supporter_id)

    async def find_by_email(self, email):
        normalized = email.strip().lower()
        alias_owners = {sid for alias, sid in self.aliases if alias == normalized}
        matches = [
            s
            for s in self.rows.values()
            if (s.primary_email or "").lower() == normalized or s.supporter_id in alias_owners
        ]
        return sorted(matches, key=lambda s: (s.created_at, str(s.supporter_id)))

    async def find_by_linked_id(self, provider, customer_id):
        matches = [s for s in self.rows.values() if (s.linked_ids or {}).get(provider) == str(customer_id)]
        matches.sort(key=lambda s: (s.created_at, str(s.supporter_id)))
        return matches[0] if matches else None

    async def create(self, **fields):
        return self.add(**fields)

    async def update(self, supporter_id, **fields):
        supporter = self.rows.get(supporter_id)
        if supporter is None:
            return None
        for key, value in fields.items():
            setattr(supporter, key, value)
        return supporter

    async def update_linked_ids(self, supporter_id, linked_ids):
        supporter = self.rows.get(supporter_id)
        if supporter is None:
            return None
        supporter.linked_ids = {**(supporter.linked_ids or {}), **linked_ids}
        return supporter

    async def set_flags(self, supporter_id, flags):
        supporter = self.rows.get(supporter_id)
        if supporter is None:
            return None
        supporter.flags = {**(supporter.flags or {}), **flags}
        return supporter

    async def add_email_alias(self, supporter_id, email, is_shared=False):
        self.aliases.add((email.strip().lower(), supporter_id))

    async def increment_click_count(self, supporter_id, clicked_at):
        aggregate = self.clicks.setdefault(supporter_id, {"click_count": 0, "last_click_date": None})
        aggregate["click_count"] += 1
        if aggregate["last_click_date"] is None or clicked_at > aggregate["last_click_date"]:
            aggregate["last_click_date"] = clicked_at


class FakeEventRepository:
    def __init__(self):
        self.rows: dict[tuple[str, str], Event] = {}

    async def find_by_external_id(self, source_system, external_id):
        return self.rows.get((source_system, external_id))

    async def create(self, *, supporter_id, source_system, event_type, event_time, external_id,
                     amount=None, currency=None, metadata=None, raw_payload_ref=None):
        key = (source_system, external_id)
        existing = self.rows.get(key)
        if existing is not None:
            existing.metadata_ = metadata or {}
            existing.raw_payload_ref = raw_payload_ref
            return existing
        event = Event(
            event_id=uuid.uuid4(),
            supporter_id=supporter_id,
            source_system=source_system,
            event_type=event_type,
            event_time=event_time,
            external_id=external_id,
            amount=amount,
            currency=currency,
            metadata_=metadata or {},
            raw_payload_ref=raw_payload_ref,
        )
        self.rows[key] = event
        return event

    def for_supporter(self, supporter_id) -> list[Event]:
        return [e for e in self.rows.values() if e.supporter_id == supporter_id]


class FakeMembershipRepository:
    def __init__(self):
        self.rows: dict[uuid.UUID, Membership] = {}

    def add(self, supporter_id, **fields) -> Membership:
        values = {
            "id": uuid.uuid4(),
            "supporter_id": supporter_id,
            "status": "Unknown",
            "tier": None,
            "cadence": None,
            "billing_method": None,
            "last_payment_date": None,
        }
        values.update(fields)
        membership = Membership(**values)
        self.rows[supporter_id] = membership
        return membership

    async def find_by_supporter_id(self, supporter_id):
        return self.rows.get(supporter_id)

    async def upsert(self, supporter_id, *, status, billing_method=None, tier=None, cadence=None,
                     last_payment_date=None):
        current = self.rows.get(supporter_id)
        if current is None:
            return self.add(
                supporter_id,
                status=status,
                billing_method=billing_method,
                tier=tier,
                cadence=cadence,
                last_payment_date=last_payment_date,
            )
        current.status = status
        current.billing_method = billing_method if billing_method is not None else current.billing_method
        current.tier = tier if tier is not None else current.tier
        current.cadence = cadence if cadence is not None else current.cadence
        if last_payment_date is not None:
            current.last_payment_date = last_payment_date
        return current

    async def update_last_payment_date(self, supporter_id, paid_at):
        return self._update(supporter_id, last_payment_date=paid_at)

    async def mark_active(self, supporter_id):
        return self._update(supporter_id, status="Active")

    async def mark_past_due(self, supporter_id):
        return self._update(supporter_id, status="Past Due")

    async def cancel(self, supporter_id):
        return self._update(supporter_id, status="Cancelled")

    def _update(self, supporter_id, **values):
        membership = self.rows.get(supporter_id)
        if membership is None:
            raise MembershipNotFoundError(supporter_id)
        for key, value in values.items():
            setattr(membership, key, value)
        return membership


class FakeProductMappingRepository:
    def __init__(self, by_product=None, by_category=None):
        self.by_product = dict(by_product or {})
        self.by_category = dict(by_category or {})

    async def find_meaning(self, product_id, category_id):
        if product_id and str(product_id) in self.by_product:
            return self.by_product[str(product_id)]
        if category_id and str(category_id) in self.by_category:
            return self.by_category[str(category_id)]
        return None


class FakeCheckpointRepository:
    def __init__(self, values=None):
        self.values = dict(values or {})

    async def get(self, name):
        return self.values.get(name)

    async def set(self, name, value):
        self.values[name] = value


class FakeQueue:
    queue_url = "https://sqs.eu-west-1.amazonaws.com/000000000000/test-queue"

    def __init__(self, inbox=None):
        self.sent: list[QueueMessage] = []
        self.inbox = list(inbox or [])
        self.deleted: list[str] = []

    async def send(self, message):
        self.sent.append(message)
        return f"msg-{len(self.sent)}"

    async def receive(self, max_messages=10, wait_seconds=20):
        batch, self.inbox = self.inbox[:max_messages], self.inbox[max_messages:]
        return batch

    async def delete(self, receipt_handle):
        self.deleted.append(receipt_handle)


class FakeStore:
    def __init__(self, error: Exception | None = None):
        self.puts: list[dict] = []
        self.error = error

    async def put(self, provider, payload, headers, *, payload_id=None, received_at=None):
        if self.error is not None:
            raise self.error
        received_at = received_at or datetime.now(UTC)
        key = build_key(provider, payload_id, received_at)
        self.puts.append({"provider": provider, "payload": payload, "headers": headers, "key": key})
        return StoredPayload(key=key, payload_id=payload_id)


@pytest.fixture
def supporters():
    return FakeSupporterRepository()


@pytest.fixture
def events():
    return FakeEventRepository()


@pytest.fixture
def memberships():
    return FakeMembershipRepository()


@pytest.fixture
def product_mappings():
    return FakeProductMappingRepository()


@pytest.fixture
def checkpoints():
    return FakeCheckpointRepository()


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def make_record():
    """Build a Lambda-style SQS record carrying a QueueMessage body."""

    def _make(event: dict, s3_key: str | None = "test/2024-01-01/payload.json", message_id: str = "m-1") -> dict:
        body = QueueMessage(event=event, s3_key=s3_key, payload_id="payload-1").to_body()
        return {"messageId": message_id, "body": body}

    return _make
