"""Mailchimp Marketing API client.

The data centre is encoded in the API key suffix (``...-us6``).
"""

import base64
import hashlib
from typing import Any

from supporter360.integrations.base import ProviderClient

DEFAULT_DATA_CENTER = "us1"


def data_center_from_key(api_key: str) -> str:
    _, sep, suffix = api_key.rpartition("-")
    return suffix if sep and suffix else DEFAULT_DATA_CENTER


def subscriber_hash(email: str) -> str:
    return hashlib.md5(email.strip().lower().encode("utf-8")).hexdigest()


class MailchimpClient(ProviderClient):
    provider = "mailchimp"

    def __init__(self, api_key: str, **kwargs) -> None:
        self.data_center = data_center_from_key(api_key)
        super().__init__(f"https://{self.data_center}.api.mailchimp.com/3.0", **kwargs)
        self._api_key = api_key

    async def _auth_headers(self) -> dict[str, str]:
        credentials = base64.b64encode(f"anystring:{self._api_key}".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {credentials}"}

    async def get_member(self, list_id: str, email: str) -> dict[str, Any] | None:
        return await self.get_or_none(f"/lists/{list_id}/members/{subscriber_hash(email)}")
