"""SQS-backed event queue, one per provider."""

from __future__ import annotations

import asyncio
from typing import Any

import boto3
import structlog

from supporter360.webhooks.messages import QueueMessage

logger = structlog.get_logger(__name__)


class EventQueue:
    """At-least-once queue. Redrive to the dead-letter queue is configured on SQS itself."""

    def __init__(self, queue_url: str, region: str = "eu-west-1", client: Any = None) -> None:
        self.queue_url = queue_url
        self._region = region
        self._client = client

    def _sqs(self):
        if self._client is None:
            self._client = boto3.client("sqs", region_name=self._region)
        return self._client

    async def send(self, message: QueueMessage) -> str:
        response = await asyncio.to_thread(
            self._sqs().send_message,
            QueueUrl=self.queue_url,
            MessageBody=message.to_body(),
        )
        message_id = response.get("MessageId", "")
        logger.debug("queue_message_sent", queue_url=self.queue_url, message_id=message_id)
        return message_id

    async def receive(self, max_messages: int = 10, wait_seconds: int = 20) -> list[dict[str, Any]]:
        response = await asyncio.to_thread(
            self._sqs().receive_message,
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max(1, min(max_messages, 10)),
            WaitTimeSeconds=wait_seconds,
        )
        return response.get("Messages", [])

    async def delete(self, receipt_handle: str) -> None:
        await asyncio.to_thread(
            self._sqs().delete_message,
            QueueUrl=self.queue_url,
            ReceiptHandle=receipt_handle,
        )
