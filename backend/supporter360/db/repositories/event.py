"""Event persistence with (source_system, external_id) upsert semantics."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from supporter360.db.models.event import Event
from supporter360.db.repositories.base import Repository


class EventRepository(Repository):
    async def find_by_external_id(self, source_system: str, external_id: str) -> Event | None:
        stmt = select(Event).where(
            Event.source_system == source_system,
            Event.external_id == external_id,
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def create(
        self,
        *,
        supporter_id: uuid.UUID,
        source_system: str,
        event_type: str,
        event_time: datetime,
        external_id: str,
        amount: Decimal | None = None,
        currency: str | None = None,
        metadata: dict[str, Any] | None = None,
        raw_payload_ref: str | None = None,
    ) -> Event:
        """Insert an event, or refresh metadata/raw_payload_ref if it already exists.

        The conflict clause makes concurrent deliveries of the same provider
        event converge on one row even when both passed the idempotency check.
        """
        stmt = insert(Event).values({
            Event.event_id: uuid.uuid4(),
            Event.supporter_id: supporter_id,
            Event.source_system: source_system,
            Event.event_type: event_type,
            Event.event_time: event_time,
            Event.external_id: external_id,
            Event.amount: amount,
            Event.currency: currency,
            Event.metadata_: metadata or {},
            Event.raw_payload_ref: raw_payload_ref,
        })
        stmt = stmt.on_conflict_do_update(
            constraint="uq_event_source_external",
            set_={
                "metadata": stmt.excluded["metadata"],
                "raw_payload_ref": stmt.excluded["raw_payload_ref"],
            },
        ).returning(Event)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            event = result.scalar_one()
            await session.commit()
            return event
