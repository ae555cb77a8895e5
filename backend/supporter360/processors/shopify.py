"""Shopify event processor: orders become ShopOrder events, customers resolve identity."""

from __future__ import annotations

from enum import Enum
from typing import Any, assert_never

import structlog

from supporter360.db.models.supporter import Supporter
from supporter360.domain.types import EventType, SourceSystem, SupporterType, parse_enum
from supporter360.integrations.shopify import ShopifyClient
from supporter360.processors.base import EventProcessor, parse_timestamp, to_decimal, upper_currency
from supporter360.services.identity import CandidateLinkage, display_name
from supporter360.webhooks.messages import QueueMessage

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "EUR"


class ShopifyTopic(str, Enum):
    ORDERS_CREATE = "orders/create"
    ORDERS_PAID = "orders/paid"
    ORDERS_FULFILLED = "orders/fulfilled"
    CUSTOMERS_CREATE = "customers/create"
    CUSTOMERS_UPDATE = "customers/update"


def _candidate(customer: dict[str, Any]) -> CandidateLinkage:
    customer_id = customer.get("id")
    return CandidateLinkage(
        provider=SourceSystem.SHOPIFY.value,
        customer_id=str(customer_id) if customer_id is not None else None,
        name=display_name(customer.get("first_name"), customer.get("last_name")),
        phone=customer.get("phone"),
        supporter_type=SupporterType.SHOP_BUYER,
    )


class ShopifyProcessor(EventProcessor):
    provider = SourceSystem.SHOPIFY

    def __init__(self, supporters, events, memberships, client: ShopifyClient | None = None) -> None:
        super().__init__(supporters, events, memberships)
        self.client = client

    async def handle(self, message: QueueMessage) -> None:
        event = message.event
        topic = parse_enum(ShopifyTopic, event.get("topic"))
        if topic is None:
            logger.warning("shopify_topic_unhandled", topic=event.get("topic"))
            return

        payload = event.get("payload") or {}
        match topic:
            case ShopifyTopic.ORDERS_CREATE | ShopifyTopic.ORDERS_PAID | ShopifyTopic.ORDERS_FULFILLED:
                await self._order(payload, topic, message.s3_key)
            case ShopifyTopic.CUSTOMERS_CREATE | ShopifyTopic.CUSTOMERS_UPDATE:
                await self._customer(payload)
            case _:
                assert_never(topic)

    async def _order_customer(self, order: dict[str, Any]) -> dict[str, Any]:
        customer = dict(order.get("customer") or {})
        email = order.get("email") or order.get("contact_email") or customer.get("email")
        if not email and customer.get("id") is not None and self.client is not None:
            fetched = await self.client.get_customer(customer["id"])
            if fetched:
                customer = {**fetched, **{k: v for k, v in customer.items() if v}}
                email = fetched.get("email")
        customer["email"] = email
        return customer

    async def _order(self, order: dict[str, Any], topic: ShopifyTopic, s3_key: str | None) -> Supporter | None:
        customer = await self._order_customer(order)
        if not customer.get("email"):
            logger.warning("shopify_order_without_email", order_id=order.get("id"))
            return None

        supporter = await self.identity.resolve(customer["email"], _candidate(customer))

        external_id = f"shopify-order-{order['id']}"
        if not await self.guard.is_new(self.provider.value, external_id, "Order"):
            return supporter

        items = [
            {
                "id": item.get("id"),
                "title": item.get("title"),
                "quantity": item.get("quantity"),
                "price": item.get("price"),
                "sku": item.get("sku"),
            }
            for item in order.get("line_items") or []
        ]
        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=EventType.SHOP_ORDER.value,
            event_time=parse_timestamp(order.get("created_at")),
            external_id=external_id,
            amount=to_decimal(order.get("total_price")),
            currency=upper_currency(order.get("currency"), DEFAULT_CURRENCY),
            metadata={
                "order_id": order["id"],
                "order_number": order.get("order_number"),
                "items": items,
                "financial_status": order.get("financial_status"),
                "fulfillment_status": order.get("fulfillment_status"),
                "topic": topic.value,
            },
            raw_payload_ref=s3_key,
        )
        logger.info("shopify_order_recorded", supporter_id=str(supporter.supporter_id), order_id=order["id"])
        return supporter

    async def _customer(self, customer: dict[str, Any]) -> Supporter | None:
        email = customer.get("email")
        if not email:
            logger.warning("shopify_customer_without_email", customer_id=customer.get("id"))
            return None
        return await self.identity.resolve(email, _candidate(customer))
