"""Future Ticketing poller: pull records changed since the checkpoint onto the queue."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from supporter360.db.repositories.checkpoint import CheckpointRepository
from supporter360.integrations.future_ticketing import FutureTicketingClient
from supporter360.queue.event_queue import EventQueue
from supporter360.webhooks.messages import QueueMessage

logger = structlog.get_logger(__name__)

CHECKPOINT_NAME = "futureticketing_last_poll"


@dataclass
class PollResult:
    customers: int = 0
    orders: int = 0
    entries: int = 0

    @property
    def total(self) -> int:
        return self.customers + self.orders + self.entries


class FutureTicketingPoller:
    def __init__(
        self,
        client: FutureTicketingClient,
        queue: EventQueue,
        checkpoints: CheckpointRepository,
        clock=lambda: datetime.now(UTC),
    ) -> None:
        self.client = client
        self.queue = queue
        self.checkpoints = checkpoints
        self._clock = clock

    async def poll(self) -> PollResult:
        """Enqueue customers, then orders, then entries; advance the checkpoint last.

        Any failure leaves the checkpoint untouched so the next run re-reads
        the same window. Re-enqueued records are deduplicated downstream.
        """
        started_at = self._clock()
        since = await self.checkpoints.get(CHECKPOINT_NAME)
        result = PollResult()

        # Customers first so orders and entries can find their Supporter
        for record in await self.client.get_customers(since):
            await self._enqueue("customer", record)
            result.customers += 1
        for record in await self.client.get_orders(since):
            await self._enqueue("order", record)
            result.orders += 1
        for record in await self.client.get_entries(since):
            await self._enqueue("entry", record)
            result.entries += 1

        await self.checkpoints.set(CHECKPOINT_NAME, started_at)
        logger.info(
            "futureticketing_poll_complete",
            since=since.isoformat() if since else None,
            customers=result.customers,
            orders=result.orders,
            entries=result.entries,
        )
        return result

    async def _enqueue(self, message_type: str, record: dict) -> None:
        await self.queue.send(QueueMessage(event={"type": message_type, "data": record}))
