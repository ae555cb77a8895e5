"""Raw payload store: verified webhook bodies kept in S3 for audit and replay.

Key format: {provider}/{yyyy-mm-dd}/{payload_id}.json (UTC date).
boto3 is synchronous; every call runs in a worker thread via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import datetime
import json
import uuid
from dataclasses import dataclass
from typing import Any

import boto3
import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StoredPayload:
    key: str
    payload_id: str


def build_key(provider: str, payload_id: str, received_at: datetime.datetime) -> str:
    return f"{provider}/{received_at.astimezone(datetime.UTC):%Y-%m-%d}/{payload_id}.json"


class RawPayloadStore:
    """Writes ``{payload, receivedAt, headers}`` blobs to a single bucket."""

    def __init__(self, bucket: str, region: str = "eu-west-1", client: Any = None) -> None:
        self._bucket = bucket
        self._region = region
        self._client = client

    def _s3(self):
        if self._client is None:
            self._client = boto3.client("s3", region_name=self._region)
        return self._client

    async def put(
        self,
        provider: str,
        payload: Any,
        headers: dict[str, str],
        *,
        payload_id: str | None = None,
        received_at: datetime.datetime | None = None,
    ) -> StoredPayload:
        payload_id = payload_id or str(uuid.uuid4())
        received_at = received_at or datetime.datetime.now(datetime.UTC)
        key = build_key(provider, payload_id, received_at)
        document = {
            "payload": payload,
            "receivedAt": received_at.isoformat(),
            "headers": headers,
        }

        await asyncio.to_thread(
            self._s3().put_object,
            Bucket=self._bucket,
            Key=key,
            Body=json.dumps(document).encode("utf-8"),
            ContentType="application/json",
        )
        logger.info("raw_payload_stored", provider=provider, s3_key=key, payload_id=payload_id)
        return StoredPayload(key=key, payload_id=payload_id)

    async def get(self, key: str) -> dict[str, Any]:
        response = await asyncio.to_thread(self._s3().get_object, Bucket=self._bucket, Key=key)
        body = await asyncio.to_thread(response["Body"].read)
        return json.loads(body)
