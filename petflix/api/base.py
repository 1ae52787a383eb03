"""
Base API Client
===============

Shared HTTP plumbing for every remote service: one lazily created
``httpx.AsyncClient`` per client, and a single retry policy that knows which
failures are safe to repeat.

Billable requests (task creation, render submission) are not idempotent. They
are retried only when the server certainly never accepted them: the
connection could not be established, or the server answered 429.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Optional, Dict, Any, FrozenSet, Callable, Awaitable

import httpx

from ..core.config import RetryConfig
from ..core.exceptions import ApiRequestError
from ..core.security import redact_api_key

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================


DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_RETRY_MULTIPLIER = 2.0
DEFAULT_MAX_DELAY = 30.0

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

SleepFunc = Callable[[float], Awaitable[None]]


# =============================================================================
# Retry Policy
# =============================================================================


@dataclass
class RetryPolicy:
    """Exponential backoff with jitter, shared by all remote clients."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_RETRY_DELAY
    multiplier: float = DEFAULT_RETRY_MULTIPLIER
    max_delay: float = DEFAULT_MAX_DELAY
    jitter: float = 1.0
    retryable_statuses: FrozenSet[int] = field(default=RETRYABLE_STATUS_CODES)

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            multiplier=config.multiplier,
            max_delay=config.max_delay,
            jitter=config.jitter,
        )

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        Delay before retry number ``attempt`` (1-based).

        Args:
            attempt: Which retry this is
            retry_after: Server-provided Retry-After in seconds, if any

        Returns:
            Seconds to wait, never more than ``max_delay``
        """
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.max_delay)

        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return min(delay, self.max_delay)

    def is_retryable_status(self, status_code: int, idempotent: bool = True) -> bool:
        if not idempotent:
            # A 429 means the request was rejected before any work was queued
            return status_code == 429
        return status_code in self.retryable_statuses

    def is_retryable_exception(self, exc: BaseException, idempotent: bool = True) -> bool:
        if isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout)):
            return True
        if not idempotent:
            return False
        return isinstance(exc, httpx.TransportError)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given as seconds or an HTTP date."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


# =============================================================================
# Base Client
# =============================================================================


class BaseApiClient:
    """
    Base class for remote service clients.

    Features:
    - Lock-guarded lazy HTTP client
    - Retry with exponential backoff via ``RetryPolicy``
    - Async context manager protocol
    """

    provider_name = "api"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Credential for the service
            base_url: Base URL for the API
            timeout: Per-request timeout in seconds
            retry_policy: Backoff policy (defaults to RetryPolicy())
            transport: Optional httpx transport, used by tests
            sleep: Awaitable sleep, injectable for tests
        """
        self.api_key = api_key
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._transport = transport
        self._sleep = sleep or asyncio.sleep

        # HTTP client with lock for safe lazy creation
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_headers(self) -> Dict[str, str]:
        """Get default headers for requests."""
        return {"Content-Type": "application/json"}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout),
                    headers=self._get_headers(),
                    transport=self._transport,
                )
            return self._client

    async def _request(
        self,
        method: str,
        url: str,
        *,
        idempotent: bool,
        retry: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request, retrying transient failures per the retry policy.

        Args:
            method: HTTP method
            url: Absolute URL
            idempotent: Whether repeating the request is harmless
            retry: Set False to make exactly one attempt
            **kwargs: Passed through to ``httpx.AsyncClient.request``

        Returns:
            The final response. Non-retryable error statuses are returned,
            not raised, so callers can map them to their own errors.

        Raises:
            httpx.TransportError: When the last attempt failed in transport
        """
        client = await self._get_client()
        max_attempts = self.retry_policy.max_attempts if retry else 1
        attempt = 0

        while True:
            attempt += 1
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                if attempt >= max_attempts or not self.retry_policy.is_retryable_exception(e, idempotent):
                    raise
                delay = self.retry_policy.delay_for(attempt)
                logger.warning(
                    f"{self.provider_name} {method} failed ({e.__class__.__name__}), "
                    f"retry {attempt}/{max_attempts - 1} in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            if (
                response.status_code < 400
                or attempt >= max_attempts
                or not self.retry_policy.is_retryable_status(response.status_code, idempotent)
            ):
                return response

            delay = self.retry_policy.delay_for(
                attempt, parse_retry_after(response.headers.get("Retry-After"))
            )
            logger.warning(
                f"{self.provider_name} {method} returned HTTP {response.status_code}, "
                f"retry {attempt}/{max_attempts - 1} in {delay:.1f}s"
            )
            await self._sleep(delay)

    def _error_from_response(self, response: httpx.Response, action: str) -> ApiRequestError:
        """Build an ApiRequestError for a failed response."""
        return ApiRequestError(
            f"{self.provider_name} {action} failed with HTTP {response.status_code}",
            provider=self.provider_name,
            status_code=response.status_code,
            response_body=redact_api_key(response.text),
        )

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        """Decode a JSON object body, or return an empty dict."""
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP client."""
        async with self._client_lock:
            if self._client:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
