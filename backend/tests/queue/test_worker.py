"""Tests for the queue consumers."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from supporter360.db import base as db_base
from supporter360.pollers.futureticketing import PollResult
from supporter360.queue.worker import (
    handle_sqs_event,
    poll_handler,
    process_once,
    run_futureticketing_poll,
    run_worker,
    sqs_handler,
)

pytestmark = pytest.mark.unit


def _processor(side_effect=None):
    processor = MagicMock()
    processor.process_batch = AsyncMock(side_effect=side_effect)
    processor.process_record = AsyncMock(side_effect=side_effect)
    return processor


class TestHandleSqsEvent:
    async def test_processes_all_records(self):
        processor = _processor()
        event = {"Records": [{"body": "{}"}, {"body": "{}"}]}

        count = await handle_sqs_event("stripe", event, processor=processor)

        assert count == 2
        processor.process_batch.assert_awaited_once_with(event["Records"])

    async def test_failure_is_reraised_for_redrive(self):
        processor = _processor(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await handle_sqs_event("stripe", {"Records": [{"body": "{}"}]}, processor=processor)


class TestSqsHandler:
    def _build(self, seen, side_effect=None):
        def build(provider):
            async def process_batch(records):
                seen.append(db_base._engine)
                if side_effect is not None:
                    raise side_effect

            processor = MagicMock()
            processor.process_batch = AsyncMock(side_effect=process_batch)
            return processor

        return build

    def test_each_invocation_opens_and_disposes_its_engine(self):
        seen = []
        with (
            patch("supporter360.queue.worker.configure_logging"),
            patch("supporter360.registry.build_processor", side_effect=self._build(seen)),
        ):
            handler = sqs_handler("stripe")
            assert handler({"Records": [{"body": "{}"}]}) == {"processed": 1}
            assert handler({"Records": []}) == {"processed": 0}

        assert len(seen) == 2
        assert seen[0] is not None and seen[1] is not None
        assert seen[0] is not seen[1]
        assert db_base._engine is None

    def test_engine_disposed_when_batch_fails(self):
        seen = []
        with (
            patch("supporter360.queue.worker.configure_logging"),
            patch("supporter360.registry.build_processor", side_effect=self._build(seen, RuntimeError("db down"))),
        ):
            handler = sqs_handler("gocardless")
            with pytest.raises(RuntimeError):
                handler({"Records": [{"body": "{}"}]})

        assert seen[0] is not None
        assert db_base._engine is None


class TestProcessOnce:
    async def test_deletes_only_processed_messages(self, fake_queue):
        fake_queue.inbox = [
            {"MessageId": "1", "ReceiptHandle": "rh-1", "Body": "{}"},
            {"MessageId": "2", "ReceiptHandle": "rh-2", "Body": "{}"},
        ]
        processor = _processor(side_effect=[None, RuntimeError("transient")])

        deleted = await process_once(processor, fake_queue, max_messages=10, wait_seconds=0)

        assert deleted == 1
        assert fake_queue.deleted == ["rh-1"]

    async def test_empty_receive(self, fake_queue):
        assert await process_once(_processor(), fake_queue, max_messages=10, wait_seconds=0) == 0


class TestRunWorker:
    async def test_stops_when_event_set(self, fake_queue):
        stop = asyncio.Event()
        processor = _processor()
        settings = SimpleNamespace(worker_batch_size=5, worker_wait_seconds=0)

        async def receive(max_messages, wait_seconds):
            stop.set()
            return [{"MessageId": "1", "ReceiptHandle": "rh-1", "Body": "{}"}]

        fake_queue.receive = receive

        await run_worker("shopify", processor=processor, queue=fake_queue, settings=settings, stop=stop)

        assert fake_queue.deleted == ["rh-1"]


class TestFutureTicketingPoll:
    async def test_runs_one_poll(self):
        poller = MagicMock()
        poller.poll = AsyncMock(return_value="result")

        with patch("supporter360.registry.build_futureticketing_poller", return_value=poller):
            assert await run_futureticketing_poll() == "result"

    async def test_failure_propagates(self):
        poller = MagicMock()
        poller.poll = AsyncMock(side_effect=RuntimeError("api down"))

        with patch("supporter360.registry.build_futureticketing_poller", return_value=poller):
            with pytest.raises(RuntimeError):
                await run_futureticketing_poll()

    def test_poll_handler_reports_counts(self):
        poller = MagicMock()
        poller.poll = AsyncMock(return_value=PollResult(customers=2, orders=3, entries=1))

        with (
            patch("supporter360.queue.worker.configure_logging"),
            patch("supporter360.registry.build_futureticketing_poller", return_value=poller),
        ):
            result = poll_handler({}, None)

        assert result == {"customers": 2, "orders": 3, "entries": 1, "total": 6}
        assert db_base._engine is None
