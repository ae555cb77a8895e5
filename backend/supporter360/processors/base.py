"""Shared queue-consumer plumbing.

Messages in a batch are processed one at a time, in order. Any exception
is logged and re-raised so the queue's visibility timeout and redrive
policy retry the message and eventually dead-letter it. Data-quality gaps
(missing email, missing linkage) are handled inside the handlers as
warnings and never raise.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from supporter360.db.repositories.event import EventRepository
from supporter360.db.repositories.membership import MembershipRepository
from supporter360.db.repositories.supporter import SupporterRepository
from supporter360.domain.types import SourceSystem
from supporter360.services.identity import IdentityResolver
from supporter360.services.idempotency import IdempotencyGuard
from supporter360.services.membership_updater import MembershipUpdater
from supporter360.webhooks.messages import QueueMessage

logger = structlog.get_logger(__name__)

_CENTS = Decimal("0.01")


def minor_units_to_decimal(value: Any) -> Decimal | None:
    """Integer minor units (int or numeric string) -> major units, two places."""
    if value is None or value == "":
        return None
    try:
        return (Decimal(str(value)) / 100).quantize(_CENTS)
    except InvalidOperation:
        return None


def to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(_CENTS)
    except InvalidOperation:
        return None


def parse_timestamp(value: Any, default: datetime | None = None) -> datetime:
    """Unix seconds or ISO-8601 -> aware datetime; falls back to ``default`` or now."""
    fallback = default or datetime.now(UTC)
    if value is None or value == "":
        return fallback
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, UTC)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("unparseable_timestamp", value=str(value))
        return fallback
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def upper_currency(value: Any, default: str) -> str:
    return str(value).upper() if value else default


class EventProcessor:
    """Consume one provider's queue messages."""

    provider: SourceSystem

    def __init__(
        self,
        supporters: SupporterRepository,
        events: EventRepository,
        memberships: MembershipRepository,
    ) -> None:
        self.supporters = supporters
        self.events = events
        self.memberships = memberships
        self.identity = IdentityResolver(supporters)
        self.guard = IdempotencyGuard(events)
        self.membership = MembershipUpdater(memberships)

    async def process_batch(self, records: Iterable[dict[str, Any]]) -> None:
        for record in records:
            await self.process_record(record)

    async def process_record(self, record: dict[str, Any]) -> None:
        # Lambda records carry "body"/"messageId"; boto3 receive_message uses "Body"/"MessageId"
        body = record.get("body", record.get("Body"))
        message_id = record.get("messageId", record.get("MessageId"))
        try:
            message = QueueMessage.from_body(body or "")
            with structlog.contextvars.bound_contextvars(
                provider=self.provider.value,
                payload_id=message.payload_id,
                message_id=message_id,
            ):
                await self.handle(message)
        except Exception:
            logger.error(
                "message_processing_failed",
                provider=self.provider.value,
                message_id=message_id,
                exc_info=True,
            )
            raise

    async def handle(self, message: QueueMessage) -> None:
        raise NotImplementedError
