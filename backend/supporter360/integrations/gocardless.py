"""GoCardless REST client (payments, mandates, subscriptions, customers)."""

from typing import Any
from urllib.parse import quote

from supporter360.integrations.base import ProviderClient

GOCARDLESS_API_VERSION = "2015-07-06"

_BASE_URLS = {
    "live": "https://api.gocardless.com",
    "sandbox": "https://api-sandbox.gocardless.com",
}


def _unwrap(data: Any, key: str) -> dict[str, Any] | None:
    # GoCardless wraps single resources as {"payments": {...}}
    if not isinstance(data, dict):
        return None
    value = data.get(key)
    if isinstance(value, list):
        return value[0] if value else None
    return value


class GoCardlessClient(ProviderClient):
    provider = "gocardless"

    def __init__(self, access_token: str, environment: str = "sandbox", **kwargs) -> None:
        super().__init__(_BASE_URLS.get(environment, _BASE_URLS["sandbox"]), **kwargs)
        self._access_token = access_token

    async def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "GoCardless-Version": GOCARDLESS_API_VERSION,
        }

    async def _get_resource(self, collection: str, resource_id: str) -> dict[str, Any] | None:
        data = await self.get_or_none(f"/{collection}/{quote(resource_id, safe='')}")
        return _unwrap(data, collection)

    async def get_payment(self, payment_id: str) -> dict[str, Any] | None:
        return await self._get_resource("payments", payment_id)

    async def get_mandate(self, mandate_id: str) -> dict[str, Any] | None:
        return await self._get_resource("mandates", mandate_id)

    async def get_subscription(self, subscription_id: str) -> dict[str, Any] | None:
        return await self._get_resource("subscriptions", subscription_id)

    async def get_customer(self, customer_id: str) -> dict[str, Any] | None:
        return await self._get_resource("customers", customer_id)
