"""Future Ticketing processor.

Messages come from the poller (no raw payload in S3) as ``{type, data}``
with type ``customer``, ``order`` or ``entry``. Ticket purchases are
classified through the product mapping table and may upgrade the
supporter's type.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, assert_never

import structlog

from supporter360.db.models.supporter import Supporter
from supporter360.db.repositories.product_mapping import ProductMappingRepository
from supporter360.domain.types import EventType, SourceSystem, SupporterType, SupporterTypeSource, parse_enum
from supporter360.processors.base import EventProcessor, parse_timestamp, to_decimal
from supporter360.services.identity import display_name, normalize_email
from supporter360.webhooks.messages import QueueMessage

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "EUR"


class FutureTicketingMessageType(str, Enum):
    CUSTOMER = "customer"
    ORDER = "order"
    ENTRY = "entry"


class ProductMeaning(str, Enum):
    AWAY_SUPPORTER = "AwaySupporter"
    SEASON_TICKET = "SeasonTicket"
    HOME_TICKET = "HomeTicket"
    OTHER = "Other"


def classify_meaning(meaning: str) -> ProductMeaning:
    text = meaning.lower()
    if "away" in text and "supporter" in text:
        return ProductMeaning.AWAY_SUPPORTER
    if "season" in text and "ticket" in text:
        return ProductMeaning.SEASON_TICKET
    if "home" in text and "ticket" in text:
        return ProductMeaning.HOME_TICKET
    return ProductMeaning.OTHER


def supporter_type_for(meanings: set[ProductMeaning], current: str) -> str:
    """Season ticket beats away supporter; a home ticket only classifies an Unknown."""
    if ProductMeaning.SEASON_TICKET in meanings:
        return SupporterType.SEASON_TICKET_HOLDER.value
    if ProductMeaning.AWAY_SUPPORTER in meanings:
        return SupporterType.AWAY_SUPPORTER.value
    if ProductMeaning.HOME_TICKET in meanings and current == SupporterType.UNKNOWN.value:
        return SupporterType.TICKET_BUYER.value
    return current


class FutureTicketingProcessor(EventProcessor):
    provider = SourceSystem.FUTURETICKETING

    def __init__(self, supporters, events, memberships, product_mappings: ProductMappingRepository) -> None:
        super().__init__(supporters, events, memberships)
        self.product_mappings = product_mappings

    async def handle(self, message: QueueMessage) -> None:
        event = message.event
        message_type = parse_enum(FutureTicketingMessageType, event.get("type"))
        if message_type is None:
            logger.warning("futureticketing_message_type_unhandled", message_type=event.get("type"))
            return

        data = event.get("data") or {}
        match message_type:
            case FutureTicketingMessageType.CUSTOMER:
                await self._customer(data)
            case FutureTicketingMessageType.ORDER:
                await self._order(data, message.s3_key)
            case FutureTicketingMessageType.ENTRY:
                await self._entry(data, message.s3_key)
            case _:
                assert_never(message_type)

    async def _customer(self, customer: dict[str, Any]) -> Supporter | None:
        customer_id = str(customer.get("CustomerID") or "")
        if not customer_id:
            logger.warning("futureticketing_customer_without_id")
            return None

        existing = await self.supporters.find_by_linked_id(self.provider.value, customer_id)
        if existing is not None:
            logger.info("futureticketing_customer_already_linked", supporter_id=str(existing.supporter_id))
            return existing

        email = normalize_email(customer.get("Email"))
        if email:
            matches = await self.supporters.find_by_email(email)
            if len(matches) == 1:
                linked = await self.supporters.update_linked_ids(
                    matches[0].supporter_id, {self.provider.value: customer_id}
                )
                logger.info("supporter_linked", supporter_id=str(matches[0].supporter_id), provider=self.provider.value)
                return linked or matches[0]
            if len(matches) > 1:
                logger.warning("futureticketing_customer_shared_email", customer_id=customer_id, match_count=len(matches))
                return None

        supporter = await self.supporters.create(
            name=display_name(customer.get("FirstName"), customer.get("LastName")),
            primary_email=email,
            phone=customer.get("Phone"),
            supporter_type=SupporterType.UNKNOWN.value,
            supporter_type_source=SupporterTypeSource.AUTO.value,
            linked_ids={self.provider.value: customer_id},
        )
        if email:
            await self.supporters.add_email_alias(supporter.supporter_id, email, is_shared=False)
        logger.info("supporter_created", supporter_id=str(supporter.supporter_id), provider=self.provider.value)
        return supporter

    async def _order(self, order: dict[str, Any], s3_key: str | None) -> None:
        customer_id = str(order.get("CustomerID") or "")
        supporter = await self.supporters.find_by_linked_id(self.provider.value, customer_id) if customer_id else None
        if supporter is None and customer_id:
            supporter = await self._customer({"CustomerID": customer_id})
        if supporter is None:
            logger.warning("futureticketing_order_without_supporter", order_id=order.get("OrderID"))
            return

        external_id = f"ft-order-{order['OrderID']}"
        if not await self.guard.is_new(self.provider.value, external_id, "Order"):
            return

        items = order.get("Items") or []
        meanings: set[ProductMeaning] = set()
        for item in items:
            meaning = await self.product_mappings.find_meaning(item.get("ProductID"), item.get("CategoryID"))
            if meaning:
                meanings.add(classify_meaning(meaning))

        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=EventType.TICKET_PURCHASE.value,
            event_time=parse_timestamp(order.get("OrderDate")),
            external_id=external_id,
            amount=to_decimal(order.get("TotalAmount")),
            currency=DEFAULT_CURRENCY,
            metadata={
                "order_id": order["OrderID"],
                "customer_id": customer_id,
                "status": order.get("Status"),
                "items": items,
                "product_meanings": sorted(m.value for m in meanings),
            },
            raw_payload_ref=s3_key,
        )

        new_type = supporter_type_for(meanings, supporter.supporter_type)
        if new_type != supporter.supporter_type and supporter.supporter_type_source == SupporterTypeSource.AUTO.value:
            await self.supporters.update(supporter.supporter_id, supporter_type=new_type)
            logger.info("supporter_type_updated", supporter_id=str(supporter.supporter_id), supporter_type=new_type)

    async def _entry(self, entry: dict[str, Any], s3_key: str | None) -> None:
        customer_id = str(entry.get("CustomerID") or "")
        supporter = await self.supporters.find_by_linked_id(self.provider.value, customer_id) if customer_id else None
        if supporter is None:
            logger.info("futureticketing_entry_without_supporter", entry_id=entry.get("EntryID"))
            return

        external_id = f"ft-entry-{entry['EntryID']}"
        if not await self.guard.is_new(self.provider.value, external_id, "Entry"):
            return

        await self.events.create(
            supporter_id=supporter.supporter_id,
            source_system=self.provider.value,
            event_type=EventType.STADIUM_ENTRY.value,
            event_time=parse_timestamp(entry.get("EntryTime")),
            external_id=external_id,
            metadata={
                "entry_id": entry["EntryID"],
                "customer_id": customer_id,
                "event_id": entry.get("EventID"),
                "event_name": entry.get("EventName"),
                "gate": entry.get("Gate"),
            },
            raw_payload_ref=s3_key,
        )
