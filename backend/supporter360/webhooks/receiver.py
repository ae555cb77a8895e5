"""Per-provider webhook receivers.

Each receiver turns a raw HTTP body + headers into one of:
- 401 when the signature header is missing or does not verify
- 400 when the verified body is malformed
- 202 ``{"received": true, "payloadId": ...}`` after the raw body is stored
  and one queue message per logical event is enqueued

The raw payload write always completes before the first enqueue.
Unexpected errors propagate to the caller (the API layer maps them to 500).
"""

from __future__ import annotations

import json
import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl

import structlog

from supporter360.domain.types import SourceSystem
from supporter360.queue.event_queue import EventQueue
from supporter360.storage.payload_store import RawPayloadStore
from supporter360.webhooks.messages import QueueMessage
from supporter360.webhooks.verification import (
    STRIPE_DEFAULT_TOLERANCE_SECONDS,
    verify_gocardless,
    verify_mailchimp,
    verify_shopify,
    verify_stripe,
)

logger = structlog.get_logger(__name__)


@dataclass
class ReceiverResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


class InvalidPayload(ValueError):
    """Verified body that cannot be turned into queue messages."""


def _unauthorized(reason: str) -> ReceiverResponse:
    return ReceiverResponse(401, {"error": reason})


def _bad_request(reason: str) -> ReceiverResponse:
    return ReceiverResponse(400, {"error": reason})


class WebhookReceiver:
    provider: SourceSystem
    signature_header: str | None = None

    def __init__(self, store: RawPayloadStore, queue: EventQueue, secret: str = "") -> None:
        self.store = store
        self.queue = queue
        self.secret = secret

    def verify(self, body: bytes, signature: str) -> bool:
        raise NotImplementedError

    def parse(self, body: bytes, headers: Mapping[str, str]) -> Any:
        return json.loads(body)

    def events(self, payload: Any, headers: Mapping[str, str]) -> list[dict[str, Any]]:
        """Split a parsed payload into queue events."""
        if not isinstance(payload, dict):
            raise InvalidPayload("Payload must be a JSON object")
        return [payload]

    async def receive(self, body: bytes, headers: Mapping[str, str]) -> ReceiverResponse:
        headers = {k.lower(): v for k, v in headers.items()}
        log = logger.bind(provider=self.provider.value)

        if self.signature_header is not None:
            signature = headers.get(self.signature_header)
            if not signature:
                log.warning("webhook_signature_missing", header=self.signature_header)
                return _unauthorized("Missing signature")
            if not self.verify(body, signature):
                log.warning("webhook_signature_invalid")
                return _unauthorized("Invalid signature")

        try:
            payload = self.parse(body, headers)
            events = self.events(payload, headers)
        except (ValueError, UnicodeDecodeError) as exc:
            # json.JSONDecodeError and InvalidPayload are both ValueErrors
            log.warning("webhook_payload_invalid", error=str(exc))
            return _bad_request(str(exc) if isinstance(exc, InvalidPayload) else "Invalid JSON")

        payload_id = str(uuid.uuid4())
        stored = await self.store.put(self.provider.value, payload, headers, payload_id=payload_id)

        for event in events:
            await self.queue.send(QueueMessage(event=event, s3_key=stored.key, payload_id=payload_id))

        log.info("webhook_received", payload_id=payload_id, s3_key=stored.key, events_queued=len(events))
        return ReceiverResponse(202, {"received": True, "payloadId": payload_id})


class ShopifyReceiver(WebhookReceiver):
    provider = SourceSystem.SHOPIFY
    signature_header = "x-shopify-hmac-sha256"

    def verify(self, body: bytes, signature: str) -> bool:
        return verify_shopify(body, signature, self.secret)

    def events(self, payload: Any, headers: Mapping[str, str]) -> list[dict[str, Any]]:
        topic = headers.get("x-shopify-topic")
        if not topic:
            raise InvalidPayload("Missing X-Shopify-Topic header")
        if not isinstance(payload, dict):
            raise InvalidPayload("Payload must be a JSON object")
        return [{"topic": topic, "domain": headers.get("x-shopify-shop-domain"), "payload": payload}]


class StripeReceiver(WebhookReceiver):
    provider = SourceSystem.STRIPE
    signature_header = "stripe-signature"

    def __init__(
        self,
        store: RawPayloadStore,
        queue: EventQueue,
        secret: str = "",
        tolerance: int = STRIPE_DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        super().__init__(store, queue, secret)
        self.tolerance = tolerance

    def verify(self, body: bytes, signature: str) -> bool:
        return verify_stripe(body, signature, self.secret, tolerance=self.tolerance)

    def events(self, payload: Any, headers: Mapping[str, str]) -> list[dict[str, Any]]:
        if not isinstance(payload, dict) or not payload.get("type"):
            raise InvalidPayload("Missing event type")
        return [payload]


class GoCardlessReceiver(WebhookReceiver):
    provider = SourceSystem.GOCARDLESS
    signature_header = "webhook-signature"

    def verify(self, body: bytes, signature: str) -> bool:
        return verify_gocardless(body, signature, self.secret)

    def events(self, payload: Any, headers: Mapping[str, str]) -> list[dict[str, Any]]:
        if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
            raise InvalidPayload("Missing events array")
        return [event for event in payload["events"] if isinstance(event, dict)]


_BRACKET_KEY = re.compile(r"\[([^\]]*)\]")


def parse_form_body(body: bytes) -> dict[str, Any]:
    """Decode Mailchimp's form encoding, nesting ``data[merges][FNAME]`` style keys.

    A ``data`` field holding a JSON object is decoded as well.
    """
    result: dict[str, Any] = {}
    for raw_key, value in parse_qsl(body.decode("utf-8"), keep_blank_values=True):
        head, _, rest = raw_key.partition("[")
        path = [head] + (_BRACKET_KEY.findall("[" + rest) if rest else [])
        node = result
        for part in path[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[path[-1]] = value

    data = result.get("data")
    if isinstance(data, str) and data.strip().startswith("{"):
        result["data"] = json.loads(data)
    return result


class MailchimpReceiver(WebhookReceiver):
    provider = SourceSystem.MAILCHIMP
    signature_header = None

    def parse(self, body: bytes, headers: Mapping[str, str]) -> Any:
        if "application/json" in headers.get("content-type", ""):
            return json.loads(body)
        return parse_form_body(body)

    def events(self, payload: Any, headers: Mapping[str, str]) -> list[dict[str, Any]]:
        if not verify_mailchimp(payload):
            raise InvalidPayload("Missing type or data")
        return [{"type": payload["type"], "fired_at": payload.get("fired_at"), "data": payload["data"]}]
