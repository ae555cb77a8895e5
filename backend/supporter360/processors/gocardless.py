"""GoCardless event processor.

Webhook events only carry ids in ``links``; full payment, mandate,
subscription and customer records are fetched from the GoCardless API.
A missing link or record is a data-quality gap: logged and skipped.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, assert_never

import structlog

from supporter360.db.models.supporter import Supporter
from supporter360.domain.membership import cadence_from_interval
from supporter360.domain.types import (
    BillingMethod,
    EventType,
    MembershipStatus,
    SourceSystem,
    SupporterType,
    parse_enum,
)
from supporter360.integrations.gocardless import GoCardlessClient
from supporter360.processors.base import EventProcessor, minor_units_to_decimal, parse_timestamp, upper_currency
from supporter360.services.identity import CandidateLinkage, display_name
from supporter360.webhooks.messages import QueueMessage

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "GBP"

PAYMENT_SUCCESS_ACTIONS = frozenset({"confirmed", "paid_out"})
MANDATE_ACTIVE_ACTIONS = frozenset({"created", "submitted", "active", "reinstated"})
MANDATE_ENDED_ACTIONS = frozenset({"cancelled", "failed", "expired"})


class ResourceType(str, Enum):
    PAYMENTS = "payments"
    MANDATES = "mandates"
    SUBSCRIPTIONS = "subscriptions"
    CUSTOMERS = "customers"


def customer_name(customer: dict[str, Any]) -> str | None:
    return display_name(customer.get("given_name"), customer.get("family_name")) or customer.get("company_name") or None


def is_payment_failure(action: str, payment: dict[str, Any]) -> bool:
    return "failed" in action or payment.get("status") == "failed"


def is_payment_success(action: str, payment: dict[str, Any]) -> bool:
    return action in PAYMENT_SUCCESS_ACTIONS or payment.get("status") in ("confirmed", "paid_out")


def subscription_status(action: str, subscription: dict[str, Any]) -> MembershipStatus:
    if action == "cancelled" or subscription.get("status") in ("cancelled", "finished"):
        return MembershipStatus.CANCELLED
    if action == "paused" or subscription.get("status") == "paused":
        return MembershipStatus.PAST_DUE
    return MembershipStatus.ACTIVE


class GoCardlessProcessor(EventProcessor):
    provider = SourceSystem.GOCARDLESS

    def __init__(self, supporters, events, memberships, client: GoCardlessClient) -> None:
        super().__init__(supporters, events, memberships)
        self.client = client

    async def handle(self, message: QueueMessage) -> None:
        event = message.event
        resource_type = parse_enum(ResourceType, event.get("resource_type"))
        if resource_type is None:
            logger.warning(
                "gocardless_resource_type_unhandled",
                resource_type=event.get("resource_type"),
                event_id=event.get("id"),
            )
            return

        match resource_type:
            case ResourceType.PAYMENTS:
                await self._payment_event(event, message.s3_key)
            case ResourceType.MANDATES:
                await self._mandate_event(event)
            case ResourceType.SUBSCRIPTIONS:
                await self._subscription_event(event)
            case ResourceType.CUSTOMERS:
                await self._customer_event(event)
            case _:
                assert_never(resource_type)

    # ── Supporter lookup ────────────────────────────────────────────

    async def _supporter_for_customer(self, customer_id: str | None, context: str) -> Supporter | None:
        if not customer_id:
            logger.warning("gocardless_missing_customer_link", context=context)
            return None

        customer = await self.client.get_customer(customer_id)
        if customer is None:
            logger.warning("gocardless_customer_not_found", customer_id=customer_id, context=context)
            return None
        if not customer.get("email"):
            logger.warning("gocardless_customer_without_email", customer_id=customer_id, context=context)
            return None

        return await self.identity.resolve(
            customer["email"],
            CandidateLinkage(
                provider=self.provider.value,
                customer_id=customer.get("id") or customer_id,
                name=customer_name(customer),
                phone=customer.get("phone_number") or customer.get("phone"),
                supporter_type=SupporterType.MEMBER,
            ),
        )

    async def _customer_id_for_mandate(self, mandate_id: str | None) -> str | None:
        if not mandate_id:
            return None
        mandate = await self.client.get_mandate(mandate_id)
        return ((mandate or {}).get("links") or {}).get("customer")

    # ── Handlers ────────────────────────────────────────────────────

    async def _payment_event(self, event: dict[str, Any], s3_key: str | None) -> None:
        action = event.get("action", "")
        payment_id = (event.get("links") or {}).get("payment")
        if not payment_id:
            logger.warning("gocardless_missing_payment_link", event_id=event.get("id"))
            return

        external_id = f"gocardless-payment-{payment_id}"
        if not await self.guard.is_new(self.provider.value, external_id, "Payment"):
            return

        payment = await self.client.get_payment(payment_id)
        if payment is None:
            logger.warning("gocardless_payment_not_found", payment_id=payment_id)
            return

        links = payment.get("links") or {}
        customer_id = links.get("customer") or await self._customer_id_for_mandate(links.get("mandate"))
        supporter = await self._supporter_for_customer(customer_id, f"payment {payment_id}")
        if supporter is None:
            return

        failed = is_payment_failure(action, payment)
        event_time = parse_timestamp(event.get("created_at"))
        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=(EventType.PAYMENT_EVENT if failed else EventType.MEMBERSHIP_EVENT).value,
            event_time=event_time,
            external_id=external_id,
            amount=minor_units_to_decimal(payment.get("amount")),
            currency=upper_currency(payment.get("currency"), DEFAULT_CURRENCY),
            metadata={
                "payment_id": payment_id,
                "status": payment.get("status"),
                "action": action,
                "mandate_id": links.get("mandate"),
                "subscription_id": links.get("subscription"),
                "description": payment.get("description"),
                "charge_date": payment.get("charge_date"),
            },
            raw_payload_ref=s3_key,
        )

        if failed:
            await self.membership.record_payment_failure(supporter.supporter_id, BillingMethod.GOCARDLESS)
        elif is_payment_success(action, payment):
            await self.membership.record_payment(supporter.supporter_id, BillingMethod.GOCARDLESS, event_time)
        logger.info(
            "gocardless_payment_recorded",
            supporter_id=str(supporter.supporter_id),
            payment_id=payment_id,
            action=action,
        )

    async def _mandate_event(self, event: dict[str, Any]) -> None:
        action = event.get("action", "")
        mandate_id = (event.get("links") or {}).get("mandate")
        if not mandate_id:
            logger.warning("gocardless_missing_mandate_link", event_id=event.get("id"))
            return

        mandate = await self.client.get_mandate(mandate_id)
        if mandate is None:
            logger.warning("gocardless_mandate_not_found", mandate_id=mandate_id)
            return

        supporter = await self._supporter_for_customer(
            (mandate.get("links") or {}).get("customer"), f"mandate {mandate_id}"
        )
        if supporter is None:
            return

        if action in MANDATE_ENDED_ACTIONS:
            await self.membership.cancel(supporter.supporter_id, BillingMethod.GOCARDLESS)
        elif action in MANDATE_ACTIVE_ACTIONS:
            await self.membership.ensure_active(supporter.supporter_id, BillingMethod.GOCARDLESS)
        else:
            logger.info("gocardless_mandate_action_ignored", mandate_id=mandate_id, action=action)

    async def _subscription_event(self, event: dict[str, Any]) -> None:
        action = event.get("action", "")
        subscription_id = (event.get("links") or {}).get("subscription")
        if not subscription_id:
            logger.warning("gocardless_missing_subscription_link", event_id=event.get("id"))
            return

        subscription = await self.client.get_subscription(subscription_id)
        if subscription is None:
            logger.warning("gocardless_subscription_not_found", subscription_id=subscription_id)
            return

        links = subscription.get("links") or {}
        customer_id = links.get("customer") or await self._customer_id_for_mandate(links.get("mandate"))
        supporter = await self._supporter_for_customer(customer_id, f"subscription {subscription_id}")
        if supporter is None:
            return

        await self.membership.apply_subscription(
            supporter.supporter_id,
            BillingMethod.GOCARDLESS,
            subscription_status(action, subscription),
            cadence=cadence_from_interval(subscription.get("interval_unit")),
        )

    async def _customer_event(self, event: dict[str, Any]) -> None:
        customer_id = (event.get("links") or {}).get("customer")
        await self._supporter_for_customer(customer_id, f"customer event {event.get('id')}")
