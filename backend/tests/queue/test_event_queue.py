import json
from unittest.mock import MagicMock

import pytest

from supporter360.queue.event_queue import EventQueue
from supporter360.webhooks.messages import QueueMessage

pytestmark = pytest.mark.unit

QUEUE_URL = "https://sqs.eu-west-1.amazonaws.com/000000000000/stripe-events"


class TestEventQueue:
    async def test_send_serializes_envelope(self):
        client = MagicMock()
        client.send_message.return_value = {"MessageId": "abc"}
        queue = EventQueue(QUEUE_URL, client=client)

        message_id = await queue.send(QueueMessage(event={"type": "x"}, s3_key="stripe/k.json", payload_id="p1"))

        assert message_id == "abc"
        kwargs = client.send_message.call_args.kwargs
        assert kwargs["QueueUrl"] == QUEUE_URL
        assert json.loads(kwargs["MessageBody"]) == {"event": {"type": "x"}, "s3Key": "stripe/k.json", "payloadId": "p1"}

    async def test_receive_caps_batch_size(self):
        client = MagicMock()
        client.receive_message.return_value = {"Messages": [{"MessageId": "1"}]}
        queue = EventQueue(QUEUE_URL, client=client)

        messages = await queue.receive(max_messages=50, wait_seconds=5)

        assert messages == [{"MessageId": "1"}]
        assert client.receive_message.call_args.kwargs["MaxNumberOfMessages"] == 10
        assert client.receive_message.call_args.kwargs["WaitTimeSeconds"] == 5

    async def test_receive_empty(self):
        client = MagicMock()
        client.receive_message.return_value = {}
        assert await EventQueue(QUEUE_URL, client=client).receive() == []

    async def test_delete(self):
        client = MagicMock()
        await EventQueue(QUEUE_URL, client=client).delete("rh-1")
        client.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="rh-1")
