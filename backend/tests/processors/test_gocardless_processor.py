"""Tests for the GoCardless processor."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from supporter360.core.exceptions import ApiErrorKind, ProviderApiError
from supporter360.processors.gocardless import GoCardlessProcessor

pytestmark = pytest.mark.unit

CUSTOMER = {"id": "CU001", "email": "new@example.com", "given_name": "Pat", "family_name": "Murphy"}
PAYMENT = {
    "id": "PM001",
    "amount": 1500,
    "currency": "EUR",
    "status": "confirmed",
    "charge_date": "2024-03-01",
    "links": {"mandate": "MD001", "customer": "CU001"},
}


def _payment_event(action: str = "confirmed", event_id: str = "EV001") -> dict:
    return {
        "id": event_id,
        "created_at": "2024-03-01T09:00:00.000Z",
        "resource_type": "payments",
        "action": action,
        "links": {"payment": "PM001"},
    }


@pytest.fixture
def client():
    client = MagicMock()
    client.get_payment = AsyncMock(return_value=dict(PAYMENT))
    client.get_customer = AsyncMock(return_value=dict(CUSTOMER))
    client.get_mandate = AsyncMock(return_value={"id": "MD001", "links": {"customer": "CU001"}})
    client.get_subscription = AsyncMock(return_value=None)
    return client


@pytest.fixture
def processor(supporters, events, memberships, client):
    return GoCardlessProcessor(supporters, events, memberships, client=client)


class TestPaymentConfirmed:
    async def test_new_customer_end_to_end(self, processor, supporters, events, memberships, make_record):
        await processor.process_record(make_record(_payment_event()))

        assert len(supporters.rows) == 1
        supporter = next(iter(supporters.rows.values()))
        assert supporter.primary_email == "new@example.com"
        assert supporter.linked_ids == {"gocardless": "CU001"}
        assert supporter.name == "Pat Murphy"
        assert supporter.supporter_type == "Member"

        event = events.rows[("gocardless", "gocardless-payment-PM001")]
        assert event.event_type == "MembershipEvent"
        assert event.amount == Decimal("15.00")
        assert event.currency == "EUR"
        assert event.metadata_["action"] == "confirmed"
        assert event.raw_payload_ref == "test/2024-01-01/payload.json"

        membership = memberships.rows[supporter.supporter_id]
        assert membership.status == "Active"
        assert membership.billing_method == "gocardless"
        assert membership.last_payment_date == event.event_time

    async def test_redelivery_is_a_no_op(self, processor, events, client, make_record):
        record = make_record(_payment_event())
        await processor.process_record(record)
        await processor.process_record(record)

        assert len(events.rows) == 1
        client.get_payment.assert_awaited_once()

    async def test_customer_found_through_mandate(self, processor, supporters, client, make_record):
        client.get_payment.return_value = {**PAYMENT, "links": {"mandate": "MD001"}}

        await processor.process_record(make_record(_payment_event()))

        client.get_mandate.assert_awaited_once_with("MD001")
        assert next(iter(supporters.rows.values())).linked_ids == {"gocardless": "CU001"}

    async def test_missing_payment_link_is_skipped(self, processor, events, client, make_record):
        event = _payment_event()
        event["links"] = {}

        await processor.process_record(make_record(event))

        client.get_payment.assert_not_awaited()
        assert events.rows == {}

    async def test_customer_without_email_is_skipped(self, processor, supporters, events, client, make_record):
        client.get_customer.return_value = {"id": "CU001", "email": None}

        await processor.process_record(make_record(_payment_event()))

        assert supporters.rows == {}
        assert events.rows == {}


class TestPaymentLifecycle:
    async def test_later_action_on_recorded_payment_is_skipped(self, processor, memberships, events, client, make_record):
        await processor.process_record(make_record(_payment_event("confirmed")))
        client.get_payment.return_value = {**PAYMENT, "status": "failed"}

        await processor.process_record(make_record(_payment_event("failed", event_id="EV002")))

        supporter_id = next(iter(memberships.rows))
        assert memberships.rows[supporter_id].status == "Active"
        assert len(events.rows) == 1
        assert events.rows[("gocardless", "gocardless-payment-PM001")].metadata_["action"] == "confirmed"
        client.get_payment.assert_awaited_once()

    async def test_out_of_order_redelivery_writes_once(self, processor, memberships, events, client, make_record):
        events.create = AsyncMock(wraps=events.create)
        confirmed = make_record(_payment_event("confirmed", event_id="EV000"), message_id="m-0")
        failed = make_record(_payment_event("failed", event_id="EV001"), message_id="m-1")
        confirmed_again = make_record(_payment_event("confirmed", event_id="EV002"), message_id="m-2")

        for record in (confirmed, failed, confirmed_again, failed):
            await processor.process_record(record)

        assert events.create.await_count == 1
        assert len(events.rows) == 1
        supporter_id = next(iter(memberships.rows))
        assert memberships.rows[supporter_id].status == "Active"

    async def test_failed_first_payment_records_payment_event_without_membership(
        self, processor, memberships, events, client, make_record
    ):
        client.get_payment.return_value = {**PAYMENT, "status": "failed"}

        await processor.process_record(make_record(_payment_event("failed")))

        assert events.rows[("gocardless", "gocardless-payment-PM001")].event_type == "PaymentEvent"
        assert memberships.rows == {}


class TestMandatesAndSubscriptions:
    async def test_mandate_cancelled_cancels_membership(self, processor, supporters, memberships, make_record):
        supporter = supporters.add(primary_email="new@example.com", linked_ids={"gocardless": "CU001"})
        memberships.add(supporter.supporter_id, status="Active", billing_method="gocardless")

        await processor.process_record(
            make_record({"id": "EV3", "resource_type": "mandates", "action": "cancelled", "links": {"mandate": "MD001"}})
        )

        assert memberships.rows[supporter.supporter_id].status == "Cancelled"

    async def test_mandate_active_ensures_membership(self, processor, memberships, make_record):
        await processor.process_record(
            make_record({"id": "EV4", "resource_type": "mandates", "action": "active", "links": {"mandate": "MD001"}})
        )

        membership = next(iter(memberships.rows.values()))
        assert membership.status == "Active"
        assert membership.last_payment_date is None

    async def test_subscription_created_sets_cadence(self, processor, memberships, client, make_record):
        client.get_subscription.return_value = {
            "id": "SB1",
            "status": "active",
            "interval_unit": "yearly",
            "links": {"mandate": "MD001"},
        }

        await processor.process_record(
            make_record({"id": "EV5", "resource_type": "subscriptions", "action": "created", "links": {"subscription": "SB1"}})
        )

        membership = next(iter(memberships.rows.values()))
        assert membership.status == "Active"
        assert membership.cadence == "Annual"

    async def test_subscription_paused_is_past_due(self, processor, supporters, memberships, client, make_record):
        supporter = supporters.add(primary_email="new@example.com", linked_ids={"gocardless": "CU001"})
        memberships.add(supporter.supporter_id, status="Active", billing_method="gocardless")
        client.get_subscription.return_value = {"id": "SB1", "status": "paused", "links": {"customer": "CU001"}}

        await processor.process_record(
            make_record({"id": "EV6", "resource_type": "subscriptions", "action": "paused", "links": {"subscription": "SB1"}})
        )

        assert memberships.rows[supporter.supporter_id].status == "Past Due"


class TestErrors:
    async def test_unknown_resource_type_is_acknowledged(self, processor, events, make_record):
        await processor.process_record(make_record({"id": "EV7", "resource_type": "refunds", "action": "created"}))
        assert events.rows == {}

    async def test_api_failure_propagates(self, processor, client, make_record):
        client.get_payment.side_effect = ProviderApiError("gocardless", ApiErrorKind.EXHAUSTED, 503)

        with pytest.raises(ProviderApiError):
            await processor.process_record(make_record(_payment_event()))
