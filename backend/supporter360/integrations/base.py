"""Shared HTTP client plumbing for provider REST APIs.

Retry policy (every provider):
- 429 and 5xx/transport errors are transient: retried with backoff
- ``Retry-After`` (seconds) wins over computed backoff when present
- computed backoff is ``base * 2**attempt + uniform(0, base)``, capped per client
- any other 4xx fails immediately
- running out of attempts raises ProviderApiError(kind=EXHAUSTED)
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

import httpx
import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from supporter360.core.exceptions import ApiErrorKind, ProviderApiError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, ProviderApiError):
        return exc.kind.transient
    return isinstance(exc, httpx.TransportError)


def parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        # HTTP-date form is not used by any of our providers
        return None
    return max(seconds, 0.0)


@dataclass(frozen=True)
class BackoffPolicy:
    attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 5.0

    def delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Seconds to wait before retry number ``attempt`` (0-based).

        A provider-sent Retry-After is honoured up to ``max_delay``.
        """
        if retry_after is not None:
            return min(retry_after, self.max_delay)
        return min(self.base_delay * 2**attempt + random.uniform(0, self.base_delay), self.max_delay)

    def wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = exc.retry_after if isinstance(exc, ProviderApiError) else None
        return self.delay(retry_state.attempt_number - 1, retry_after)


async def call_with_retries(
    provider: str,
    call: Callable[[], Awaitable[T]],
    policy: BackoffPolicy,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``call`` under ``policy``; transient failures that outlast it become EXHAUSTED."""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.attempts),
        wait=policy.wait,
        retry=retry_if_exception(is_transient),
        sleep=sleep,
        reraise=True,
        before_sleep=lambda rs: logger.warning(
            "provider_api_retrying",
            provider=provider,
            attempt=rs.attempt_number,
            sleep_seconds=rs.next_action.sleep,
            error=str(rs.outcome.exception()),
        ),
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await call()
    except ProviderApiError as exc:
        if exc.kind.transient:
            raise ProviderApiError(provider, ApiErrorKind.EXHAUSTED, exc.status, str(exc)) from exc
        raise
    except httpx.TransportError as exc:
        raise ProviderApiError(provider, ApiErrorKind.EXHAUSTED, None, str(exc)) from exc
    raise AssertionError("unreachable")  # AsyncRetrying either returns or raises


@dataclass
class TokenCache:
    """Bearer token with expiry, refreshed under a lock so concurrent callers fetch once."""

    ttl: timedelta = timedelta(minutes=55)
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(UTC))
    token: str | None = None
    expires_at: datetime | None = None
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def valid(self) -> bool:
        return self.token is not None and self.expires_at is not None and self.clock() < self.expires_at

    def invalidate(self) -> None:
        self.token = None
        self.expires_at = None

    async def get_or_refresh(self, fetch: Callable[[], Awaitable[tuple[str, timedelta | None]]]) -> str:
        """Return the cached token, or call ``fetch`` for ``(token, ttl_or_None)``."""
        if self.valid():
            return self.token
        async with self._lock:
            if self.valid():
                return self.token
            token, ttl = await fetch()
            self.token = token
            self.expires_at = self.clock() + (ttl if ttl is not None else self.ttl)
            return token


class ProviderClient:
    """JSON-over-HTTP client with the shared retry policy."""

    provider: str = "provider"
    base_delay: float = 0.1
    max_delay: float = 5.0

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.policy = BackoffPolicy(attempts=retry_attempts, base_delay=self.base_delay, max_delay=self.max_delay)
        self._transport = transport
        self._sleep = sleep

    async def _auth_headers(self) -> dict[str, str]:
        return {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        json_body: Any,
    ) -> Any:
        headers = {"Accept": "application/json", **(await self._auth_headers())}
        async with self._client() as client:
            response = await client.request(method, path, params=params, json=json_body, headers=headers)

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        raise ProviderApiError(
            self.provider,
            ApiErrorKind.from_status(response.status_code),
            response.status_code,
            response.text[:200],
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        return await call_with_retries(
            self.provider,
            lambda: self._send(method, path, params, json),
            self.policy,
            self._sleep,
        )

    async def get_or_none(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        """GET that maps NOT_FOUND to None."""
        try:
            return await self.request("GET", path, params=params)
        except ProviderApiError as exc:
            match exc.kind:
                case ApiErrorKind.NOT_FOUND:
                    return None
                case _:
                    raise
