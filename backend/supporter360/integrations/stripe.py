"""Stripe customer lookups over the official SDK, under the shared retry policy."""

import asyncio
from typing import Any

import stripe

from supporter360.core.exceptions import ApiErrorKind, ProviderApiError
from supporter360.integrations.base import BackoffPolicy, Sleep, call_with_retries


def _to_provider_error(exc: stripe.StripeError) -> ProviderApiError:
    status = getattr(exc, "http_status", None)
    if isinstance(exc, stripe.APIConnectionError):
        kind = ApiErrorKind.SERVER_ERROR
    elif isinstance(exc, stripe.RateLimitError):
        kind = ApiErrorKind.RATE_LIMITED
    elif status is not None:
        kind = ApiErrorKind.from_status(status)
    else:
        kind = ApiErrorKind.SERVER_ERROR
    return ProviderApiError("stripe", kind, status, getattr(exc, "user_message", None) or str(exc))


class StripeClient:
    provider = "stripe"

    def __init__(self, api_key: str, retry_attempts: int = 3, sleep: Sleep = asyncio.sleep) -> None:
        self._api_key = api_key
        self.policy = BackoffPolicy(attempts=retry_attempts, base_delay=0.1, max_delay=5.0)
        self._sleep = sleep

    async def _retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        try:
            customer = await stripe.Customer.retrieve_async(customer_id, api_key=self._api_key)
        except stripe.StripeError as exc:
            raise _to_provider_error(exc) from exc
        return customer.to_dict() if hasattr(customer, "to_dict") else dict(customer)

    async def get_customer(self, customer_id: str) -> dict[str, Any] | None:
        """Return the customer, or None when missing or deleted."""
        try:
            customer = await call_with_retries(
                self.provider,
                lambda: self._retrieve_customer(customer_id),
                self.policy,
                self._sleep,
            )
        except ProviderApiError as exc:
            match exc.kind:
                case ApiErrorKind.NOT_FOUND:
                    return None
                case _:
                    raise
        if customer.get("deleted"):
            return None
        return customer
