"""Queue consumers and the scheduled Future Ticketing poll.

- sqs_handler() / handle_sqs_event(): Lambda-style batch handler. Raises on
  the first failing record so the batch returns to the queue and is redriven.
- process_once() / run_worker(): long-poll loop. A message is deleted only
  after it was processed; failures stay on the queue until the visibility
  timeout expires and the redrive policy takes over.
- poll_handler() / run_futureticketing_poll(): one poll cycle, meant for a
  scheduler.

Lambda entry points run each invocation on a fresh event loop, so every
invocation opens and disposes its own engine through ``database()``.
"""

import asyncio
from typing import Any

import structlog

from supporter360.core.config import Settings, get_settings
from supporter360.core.logging import configure_logging
from supporter360.db.base import close_db, database, init_db
from supporter360.domain.types import SourceSystem
from supporter360.pollers.futureticketing import PollResult
from supporter360.processors.base import EventProcessor
from supporter360.queue.event_queue import EventQueue

logger = structlog.get_logger(__name__)


async def handle_sqs_event(
    provider: str,
    event: dict[str, Any],
    processor: EventProcessor | None = None,
) -> int:
    """Process every record of an SQS event batch in order. Returns the record count."""
    if processor is None:
        from supporter360.registry import build_processor

        async with database():
            return await _process_sqs_records(provider, event, build_processor(SourceSystem(provider)))
    return await _process_sqs_records(provider, event, processor)


async def _process_sqs_records(provider: str, event: dict[str, Any], processor: EventProcessor) -> int:
    records = event.get("Records", [])
    logger.info("sqs_batch_received", provider=provider, record_count=len(records))
    await processor.process_batch(records)
    logger.info("sqs_batch_processed", provider=provider, record_count=len(records))
    return len(records)


def sqs_handler(provider: str):
    """Build a synchronous ``handler(event, context)`` for one provider's queue."""
    configure_logging(get_settings())

    def handler(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
        count = asyncio.run(handle_sqs_event(provider, event))
        return {"processed": count}

    return handler


async def process_once(processor: EventProcessor, queue: EventQueue, max_messages: int, wait_seconds: int) -> int:
    """Receive one batch and process it. Returns the number of messages deleted."""
    messages = await queue.receive(max_messages=max_messages, wait_seconds=wait_seconds)
    deleted = 0
    for message in messages:
        try:
            await processor.process_record(message)
        except Exception:
            # process_record already logged the traceback
            logger.warning("message_left_on_queue", message_id=message.get("MessageId"))
            continue
        await queue.delete(message["ReceiptHandle"])
        deleted += 1
    return deleted


async def run_worker(
    provider: str,
    processor: EventProcessor | None = None,
    queue: EventQueue | None = None,
    settings: Settings | None = None,
    stop: asyncio.Event | None = None,
) -> None:
    settings = settings or get_settings()
    source = SourceSystem(provider)
    owns_db = processor is None
    if processor is None or queue is None:
        from supporter360.registry import build_processor, build_queue

        if processor is None:
            await init_db()
            processor = build_processor(source, settings)
        queue = queue or build_queue(source, settings)

    stop = stop or asyncio.Event()
    logger.info("worker_started", provider=provider, queue_url=queue.queue_url)
    try:
        while not stop.is_set():
            await process_once(processor, queue, settings.worker_batch_size, settings.worker_wait_seconds)
    finally:
        if owns_db:
            await close_db()
    logger.info("worker_stopped", provider=provider)


async def run_futureticketing_poll(settings: Settings | None = None) -> PollResult:
    from supporter360.registry import build_futureticketing_poller

    async with database():
        poller = build_futureticketing_poller(settings)
        try:
            return await poller.poll()
        except Exception:
            logger.error("futureticketing_poll_failed", exc_info=True)
            raise


def poll_handler(event: dict[str, Any] | None = None, context: Any = None) -> dict[str, int]:
    """Scheduled-rule entry point for one Future Ticketing poll."""
    configure_logging(get_settings())
    result = asyncio.run(run_futureticketing_poll())
    return {
        "customers": result.customers,
        "orders": result.orders,
        "entries": result.entries,
        "total": result.total,
    }
