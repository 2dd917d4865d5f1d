"""Resilient HTTP access shared by every upstream integration.

Upstream registries and advisory databases are third-party services that
time out, rate limit and go away. Nothing in this module raises on a
transport problem: callers get ``None`` from :meth:`ResilientClient.fetch_with_retry`
and an :class:`Unavailable` from the JSON helpers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A successful upstream call and its decoded payload."""

    value: T


@dataclass(frozen=True)
class Unavailable:
    """An upstream call that produced nothing usable."""

    reason: str


FetchResult = Union[Ok[T], Unavailable]


def safe_json(response: httpx.Response | None) -> Any | None:
    """Decode a response body, or return None.

    Returns None for a missing response, a non-2xx status, or a body that
    is not valid JSON.
    """
    if response is None or not response.is_success:
        return None
    try:
        return response.json()
    except ValueError:
        return None


class ResilientClient:
    """HTTP client with a hard per-attempt timeout and exponential backoff.

    Args:
        client: Optional httpx client shared across calls. If not provided,
            a client is created and closed for every attempt.
        base_delay: Delay in seconds before the second attempt. Each further
            attempt doubles it.
        headers: Default headers sent with every request.
    """

    DEFAULT_ATTEMPTS = 3
    DEFAULT_TIMEOUT = 15.0

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_delay: float = 1.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._client = client
        self._owns_client = False
        self.base_delay = base_delay
        self.headers = headers or {}

    async def __aenter__(self) -> "ResilientClient":
        """Open a shared HTTP client unless one was injected."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
            self._owns_client = True
        return self

    async def __aexit__(self, *args) -> None:
        """Close the shared HTTP client if this object opened it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0)

    def backoff_delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * 2 ** (attempt - 1)

    async def fetch_with_retry(
        self,
        method: str,
        url: str,
        *,
        max_attempts: int = DEFAULT_ATTEMPTS,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response | None:
        """Send a request, retrying on timeouts and network errors.

        Any HTTP status counts as a response; only transport failures are
        retried.

        Args:
            method: HTTP method.
            url: Request URL.
            max_attempts: Total number of attempts.
            timeout: Hard bound in seconds for a single attempt.
            headers: Extra headers, merged over the client defaults.
            **kwargs: Passed to ``httpx.AsyncClient.request`` (params, json, ...).

        Returns:
            The response, or None after ``max_attempts`` failures.
        """
        request_headers = {**self.headers, **(headers or {})}

        for attempt in range(1, max_attempts + 1):
            client = await self._get_client()
            try:
                return await asyncio.wait_for(
                    client.request(method, url, headers=request_headers, **kwargs),
                    timeout=timeout,
                )
            except (httpx.RequestError, asyncio.TimeoutError) as e:
                if attempt == max_attempts:
                    logger.warning(f"Fetch failed after {max_attempts} attempts for {url}: {e!r}")
                    return None
                delay = self.backoff_delay(attempt)
                logger.debug(
                    f"Fetch attempt {attempt}/{max_attempts} failed for {url}, retrying in {delay}s"
                )
                await asyncio.sleep(delay)
            finally:
                if self._client is None:
                    await client.aclose()

        return None

    async def get_json(self, url: str, **kwargs: Any) -> FetchResult[Any]:
        """GET a URL and decode the JSON body."""
        response = await self.fetch_with_retry("GET", url, **kwargs)
        return self._decode(url, response)

    async def post_json(self, url: str, **kwargs: Any) -> FetchResult[Any]:
        """POST to a URL and decode the JSON body."""
        response = await self.fetch_with_retry("POST", url, **kwargs)
        return self._decode(url, response)

    def _decode(self, url: str, response: httpx.Response | None) -> FetchResult[Any]:
        if response is None:
            return Unavailable(f"no response from {url}")
        if not response.is_success:
            if response.status_code == 404:
                logger.debug(f"Not found: {url}")
            else:
                logger.warning(f"HTTP {response.status_code} from {url}")
            return Unavailable(f"HTTP {response.status_code} from {url}")
        payload = safe_json(response)
        if payload is None:
            logger.warning(f"Malformed JSON from {url}")
            return Unavailable(f"malformed JSON from {url}")
        return Ok(payload)
