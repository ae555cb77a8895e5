"""Future Ticketing private REST API client.

API key + private key are exchanged for a bearer token, cached in a
TokenCache owned by the client instance.
"""

from datetime import datetime, timedelta
from typing import Any

import structlog

from supporter360.core.exceptions import ApiErrorKind, ProviderApiError
from supporter360.integrations.base import ProviderClient, TokenCache

logger = structlog.get_logger(__name__)

MAX_PAGES = 10
PAGE_SIZE = 100


def _records(data: Any) -> tuple[list[dict[str, Any]], bool]:
    """Accept a bare list or a ``{data: [...], pagination: {hasMore}}`` envelope."""
    if isinstance(data, list):
        return data, False
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return data["data"], bool((data.get("pagination") or {}).get("hasMore"))
    return [], False


class FutureTicketingClient(ProviderClient):
    provider = "futureticketing"
    base_delay = 1.0
    max_delay = 30.0

    def __init__(
        self,
        api_url: str,
        api_key: str,
        private_key: str,
        token_cache: TokenCache | None = None,
        retry_attempts: int = 5,
        **kwargs,
    ) -> None:
        super().__init__(api_url, retry_attempts=retry_attempts, **kwargs)
        self._api_key = api_key
        self._private_key = private_key
        self.token_cache = token_cache or TokenCache()

    async def _fetch_token(self) -> tuple[str, timedelta | None]:
        async with self._client() as client:
            response = await client.post(
                "/oauth/token",
                json={"api_key": self._api_key, "private_key": self._private_key},
                headers={"Accept": "application/json"},
            )
        if not response.is_success:
            raise ProviderApiError(
                self.provider,
                ApiErrorKind.from_status(response.status_code),
                response.status_code,
                "token exchange failed",
            )
        data = response.json()
        expires_in = data.get("expires_in")
        # Refresh five minutes early
        ttl = timedelta(seconds=max(int(expires_in) - 300, 60)) if expires_in else None
        logger.info("future_ticketing_token_refreshed")
        return data["access_token"], ttl

    async def _auth_headers(self) -> dict[str, str]:
        token = await self.token_cache.get_or_refresh(self._fetch_token)
        return {"Authorization": f"Bearer {token}"}

    async def _send(self, method, path, params, json_body):
        try:
            return await super()._send(method, path, params, json_body)
        except ProviderApiError as exc:
            if exc.status == 401:
                self.token_cache.invalidate()
            raise

    async def _list(self, resource: str, since: datetime | None) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            params: dict[str, Any] = {"page": page, "pageSize": PAGE_SIZE}
            if since is not None:
                params["modifiedSince"] = since.isoformat()
            batch, has_more = _records(await self.request("GET", f"/{resource}", params=params))
            records.extend(batch)
            if not has_more:
                break
        return records

    async def get_customers(self, since: datetime | None = None) -> list[dict[str, Any]]:
        return await self._list("customers", since)

    async def get_orders(self, since: datetime | None = None) -> list[dict[str, Any]]:
        return await self._list("orders", since)

    async def get_entries(self, since: datetime | None = None) -> list[dict[str, Any]]:
        return await self._list("entries", since)
