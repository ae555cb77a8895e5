"""Stripe event processor.

Handled event types:
- payment_intent.succeeded / charge.succeeded -> PaymentEvent
- invoice.payment_succeeded -> MembershipEvent + successful payment
- invoice.payment_failed -> MembershipEvent (status=payment_failed) + failed payment
- customer.created / customer.updated -> identity resolution only
- customer.subscription.created|updated|deleted -> membership from subscription state
"""

from __future__ import annotations

from enum import Enum
from typing import Any, assert_never

import structlog

from supporter360.db.models.supporter import Supporter
from supporter360.domain.membership import cadence_from_interval
from supporter360.domain.types import (
    BillingMethod,
    Cadence,
    EventType,
    MembershipStatus,
    SourceSystem,
    Tier,
    parse_enum,
)
from supporter360.integrations.stripe import StripeClient
from supporter360.processors.base import EventProcessor, minor_units_to_decimal, parse_timestamp, upper_currency
from supporter360.services.identity import CandidateLinkage
from supporter360.webhooks.messages import QueueMessage

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "EUR"


class StripeEventType(str, Enum):
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    CHARGE_SUCCEEDED = "charge.succeeded"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_UPDATED = "customer.updated"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


SUBSCRIPTION_STATUSES: dict[str, MembershipStatus] = {
    "active": MembershipStatus.ACTIVE,
    "trialing": MembershipStatus.ACTIVE,
    "past_due": MembershipStatus.PAST_DUE,
    "unpaid": MembershipStatus.PAST_DUE,
    "paused": MembershipStatus.PAST_DUE,
    "canceled": MembershipStatus.CANCELLED,
    "incomplete_expired": MembershipStatus.CANCELLED,
}


def payment_email(obj: dict[str, Any]) -> str | None:
    details = obj.get("customer_details") or {}
    billing = obj.get("billing_details") or {}
    return obj.get("receipt_email") or details.get("email") or billing.get("email")


def is_membership_payment(metadata: dict[str, Any]) -> bool:
    return bool(
        metadata.get("membership_tier")
        or metadata.get("membership_type")
        or str(metadata.get("is_membership", "")).lower() == "true"
    )


def subscription_interval(obj: dict[str, Any]) -> str | None:
    """Recurring interval of the first line/item (``month``/``year``)."""
    for container in ("lines", "items"):
        entries = (obj.get(container) or {}).get("data") or []
        if not entries:
            continue
        first = entries[0]
        price = first.get("price") or {}
        recurring = price.get("recurring") or {}
        interval = recurring.get("interval") or (first.get("plan") or {}).get("interval")
        if interval:
            return interval
    return (obj.get("plan") or {}).get("interval")


class StripeProcessor(EventProcessor):
    provider = SourceSystem.STRIPE

    def __init__(self, supporters, events, memberships, client: StripeClient | None = None) -> None:
        super().__init__(supporters, events, memberships)
        self.client = client

    async def handle(self, message: QueueMessage) -> None:
        event = message.event
        event_type = parse_enum(StripeEventType, event.get("type"))
        if event_type is None:
            logger.warning("stripe_event_type_unhandled", event_type=event.get("type"))
            return

        obj = (event.get("data") or {}).get("object") or {}
        s3_key = message.s3_key

        match event_type:
            case StripeEventType.PAYMENT_INTENT_SUCCEEDED:
                await self._payment_intent_succeeded(obj, s3_key)
            case StripeEventType.CHARGE_SUCCEEDED:
                await self._charge_succeeded(obj, s3_key)
            case StripeEventType.INVOICE_PAYMENT_SUCCEEDED:
                await self._invoice_payment_succeeded(obj, s3_key)
            case StripeEventType.INVOICE_PAYMENT_FAILED:
                await self._invoice_payment_failed(obj, s3_key)
            case StripeEventType.CUSTOMER_CREATED | StripeEventType.CUSTOMER_UPDATED:
                await self._customer_upserted(obj)
            case (
                StripeEventType.SUBSCRIPTION_CREATED
                | StripeEventType.SUBSCRIPTION_UPDATED
                | StripeEventType.SUBSCRIPTION_DELETED
            ):
                await self._subscription_changed(obj, deleted=event_type is StripeEventType.SUBSCRIPTION_DELETED)
            case _:
                assert_never(event_type)

    # ── Payments ────────────────────────────────────────────────────

    async def _supporter_for_payment(self, obj: dict[str, Any], kind: str) -> Supporter | None:
        email = payment_email(obj)
        if not email:
            logger.warning("stripe_payment_without_email", kind=kind, object_id=obj.get("id"))
            return None
        details = obj.get("customer_details") or obj.get("billing_details") or {}
        customer_id = obj.get("customer")
        return await self.identity.resolve(
            email,
            CandidateLinkage(
                provider=self.provider.value,
                customer_id=str(customer_id) if customer_id else None,
                name=details.get("name"),
                phone=details.get("phone"),
            ),
        )

    async def _payment_intent_succeeded(self, intent: dict[str, Any], s3_key: str | None) -> None:
        supporter = await self._supporter_for_payment(intent, "payment_intent")
        if supporter is None:
            return

        external_id = f"stripe-pi-{intent['id']}"
        if not await self.guard.is_new(self.provider.value, external_id, "Payment intent"):
            return

        event_time = parse_timestamp(intent.get("created"))
        metadata = intent.get("metadata") or {}
        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=EventType.PAYMENT_EVENT.value,
            event_time=event_time,
            external_id=external_id,
            amount=minor_units_to_decimal(intent.get("amount_received") or intent.get("amount")),
            currency=upper_currency(intent.get("currency"), DEFAULT_CURRENCY),
            metadata={
                "payment_intent_id": intent["id"],
                "status": intent.get("status"),
                "payment_method": intent.get("payment_method"),
                "description": intent.get("description"),
                "metadata": metadata,
                "customer": intent.get("customer"),
            },
            raw_payload_ref=s3_key,
        )

        if is_membership_payment(metadata):
            await self.membership.record_payment(
                supporter.supporter_id,
                BillingMethod.STRIPE,
                event_time,
                tier=parse_enum(Tier, metadata.get("membership_tier")),
                cadence=parse_enum(Cadence, metadata.get("membership_cadence")),
            )
        logger.info("stripe_payment_intent_recorded", supporter_id=str(supporter.supporter_id))

    async def _charge_succeeded(self, charge: dict[str, Any], s3_key: str | None) -> None:
        supporter = await self._supporter_for_payment(charge, "charge")
        if supporter is None:
            return

        external_id = f"stripe-charge-{charge['id']}"
        if not await self.guard.is_new(self.provider.value, external_id, "Charge"):
            return

        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=EventType.PAYMENT_EVENT.value,
            event_time=parse_timestamp(charge.get("created")),
            external_id=external_id,
            amount=minor_units_to_decimal(charge.get("amount")),
            currency=upper_currency(charge.get("currency"), DEFAULT_CURRENCY),
            metadata={
                "charge_id": charge["id"],
                "status": charge.get("status"),
                "payment_intent": charge.get("payment_intent"),
                "payment_method": charge.get("payment_method"),
                "description": charge.get("description"),
                "metadata": charge.get("metadata") or {},
                "customer": charge.get("customer"),
            },
            raw_payload_ref=s3_key,
        )
        logger.info("stripe_charge_recorded", supporter_id=str(supporter.supporter_id))

    # ── Invoices ────────────────────────────────────────────────────

    async def _supporter_for_customer(self, customer_id: str | None, kind: str, object_id: str | None) -> Supporter | None:
        """Supporter linked to a Stripe customer, resolving via the Stripe API if unlinked."""
        if not customer_id:
            logger.warning("stripe_object_without_customer", kind=kind, object_id=object_id)
            return None

        supporter = await self.supporters.find_by_linked_id(self.provider.value, customer_id)
        if supporter is not None:
            return supporter

        if self.client is None:
            logger.warning("stripe_customer_not_linked", kind=kind, customer_id=customer_id)
            return None

        customer = await self.client.get_customer(customer_id)
        if not customer or not customer.get("email"):
            logger.warning("stripe_customer_without_email", kind=kind, customer_id=customer_id)
            return None

        return await self.identity.resolve(
            customer["email"],
            CandidateLinkage(
                provider=self.provider.value,
                customer_id=customer_id,
                name=customer.get("name"),
                phone=customer.get("phone"),
            ),
        )

    async def _invoice_payment_succeeded(self, invoice: dict[str, Any], s3_key: str | None) -> None:
        supporter = await self._supporter_for_customer(invoice.get("customer"), "invoice", invoice.get("id"))
        if supporter is None:
            return

        external_id = f"stripe-invoice-{invoice['id']}"
        if not await self.guard.is_new(self.provider.value, external_id, "Invoice"):
            return

        event_time = parse_timestamp(invoice.get("created"))
        paid_at = parse_timestamp((invoice.get("status_transitions") or {}).get("paid_at"), default=event_time)
        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=EventType.MEMBERSHIP_EVENT.value,
            event_time=event_time,
            external_id=external_id,
            amount=minor_units_to_decimal(invoice.get("amount_paid")),
            currency=upper_currency(invoice.get("currency"), DEFAULT_CURRENCY),
            metadata={
                "invoice_id": invoice["id"],
                "subscription_id": invoice.get("subscription"),
                "status": invoice.get("status"),
                "period_start": invoice.get("period_start"),
                "period_end": invoice.get("period_end"),
                "total": invoice.get("total"),
            },
            raw_payload_ref=s3_key,
        )

        await self.membership.record_payment(
            supporter.supporter_id,
            BillingMethod.STRIPE,
            paid_at,
            cadence=cadence_from_interval(subscription_interval(invoice)),
        )
        logger.info("stripe_invoice_paid_recorded", supporter_id=str(supporter.supporter_id))

    async def _invoice_payment_failed(self, invoice: dict[str, Any], s3_key: str | None) -> None:
        supporter = await self._supporter_for_customer(invoice.get("customer"), "invoice", invoice.get("id"))
        if supporter is None:
            return

        external_id = f"stripe-invoice-failed-{invoice['id']}"
        if not await self.guard.is_new(self.provider.value, external_id, "Invoice failure"):
            return

        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=EventType.MEMBERSHIP_EVENT.value,
            event_time=parse_timestamp(invoice.get("created")),
            external_id=external_id,
            amount=minor_units_to_decimal(invoice.get("amount_due")),
            currency=upper_currency(invoice.get("currency"), DEFAULT_CURRENCY),
            metadata={
                "invoice_id": invoice["id"],
                "subscription_id": invoice.get("subscription"),
                "status": "payment_failed",
                "attempt_count": invoice.get("attempt_count"),
                "period_start": invoice.get("period_start"),
                "period_end": invoice.get("period_end"),
                "due_date": invoice.get("due_date"),
                "hosted_invoice_url": invoice.get("hosted_invoice_url"),
            },
            raw_payload_ref=s3_key,
        )

        await self.membership.record_payment_failure(supporter.supporter_id, BillingMethod.STRIPE)
        logger.info("stripe_invoice_failure_recorded", supporter_id=str(supporter.supporter_id))

    # ── Customers and subscriptions ─────────────────────────────────

    async def _customer_upserted(self, customer: dict[str, Any]) -> None:
        email = customer.get("email")
        if not email:
            logger.warning("stripe_customer_without_email", customer_id=customer.get("id"))
            return

        await self.identity.resolve(
            email,
            CandidateLinkage(
                provider=self.provider.value,
                customer_id=customer.get("id"),
                name=customer.get("name"),
                phone=customer.get("phone"),
            ),
        )

    async def _subscription_changed(self, subscription: dict[str, Any], deleted: bool) -> None:
        supporter = await self._supporter_for_customer(
            subscription.get("customer"), "subscription", subscription.get("id")
        )
        if supporter is None:
            return

        stripe_status = subscription.get("status")
        if deleted:
            status = MembershipStatus.CANCELLED
        else:
            status = SUBSCRIPTION_STATUSES.get(stripe_status)
        if status is None:
            logger.info(
                "stripe_subscription_status_ignored",
                subscription_id=subscription.get("id"),
                status=stripe_status,
            )
            return

        metadata = subscription.get("metadata") or {}
        await self.membership.apply_subscription(
            supporter.supporter_id,
            BillingMethod.STRIPE,
            status,
            cadence=cadence_from_interval(subscription_interval(subscription)),
            tier=parse_enum(Tier, metadata.get("membership_tier")),
        )
