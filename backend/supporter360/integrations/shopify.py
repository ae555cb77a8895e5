from typing import Any

from supporter360.integrations.base import ProviderClient


class ShopifyClient(ProviderClient):
    """Shopify Admin REST API."""

    provider = "shopify"

    def __init__(self, shop_domain: str, access_token: str, api_version: str = "2024-01", **kwargs) -> None:
        super().__init__(f"https://{shop_domain}/admin/api/{api_version}", **kwargs)
        self._access_token = access_token

    async def _auth_headers(self) -> dict[str, str]:
        return {"X-Shopify-Access-Token": self._access_token}

    async def get_customer(self, customer_id: str | int) -> dict[str, Any] | None:
        data = await self.get_or_none(f"/customers/{customer_id}.json")
        return data.get("customer") if isinstance(data, dict) else None
