"""
Wiki API Transport

This module wraps every outbound call to the MediaWiki Action API (revision
history, article metadata, diffs) with a response cache and a rate-limit
retry policy.

Design Goals
------------
- The cache is an explicit object owned by the caller, never a hidden global
- A cache hit performs no network call
- Only rate-limit responses (HTTP 429) are retried, after a fixed wait
- Every other transport or decode failure propagates immediately
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from ..config import settings
from ..core.errors import RateLimitExceeded

logger = logging.getLogger("npov.transport")

SleepFn = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------
# Response Cache
# ---------------------------------------------------------------------

class ResponseCache:
    """
    In-memory map from exact request locator to parsed JSON payload.

    Lives as long as its owner and holds at most ``max_entries`` payloads,
    evicting the least recently used one first. Two concurrent identical
    requests may both miss and both hit the network; the upstream calls are
    idempotent so the second write simply replaces the first.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self.max_entries = (
            settings.response_cache_max_entries if max_entries is None else max_entries
        )
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1.")
        self._store: "OrderedDict[str, Any]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        if key not in self._store:
            return None
        self._store.move_to_end(key)
        return self._store[key]

    def set(self, key: str, payload: Any) -> None:
        self._store[key] = payload
        self._store.move_to_end(key)
        while len(self._store) > self.max_entries:
            evicted, _ = self._store.popitem(last=False)
            logger.debug("Evicted %s from response cache", evicted)

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)


def request_key(url: str, params: Dict[str, Any]) -> str:
    """Exact request locator: URL plus the query string in sorted key order."""
    return f"{url}?{urlencode(sorted(params.items()))}"


# ---------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------

class WikiTransport:
    """
    Cached, rate-limit-aware GET client for a MediaWiki Action API endpoint.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        wait_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """
        Parameters
        ----------
        api_url : Optional[str]
            Action API endpoint. Defaults to settings.wiki_api_url.

        cache : Optional[ResponseCache]
            Shared response cache. A private one is created when omitted.

        wait_seconds, max_retries : Optional
            Rate-limit policy. Default to the configured values.

        transport : Optional[httpx.AsyncBaseTransport]
            Custom httpx transport (used by tests to serve canned responses).

        sleep : SleepFn
            Awaitable used to wait between rate-limited attempts.
        """
        self.api_url = api_url or str(settings.wiki_api_url)
        self.cache = cache if cache is not None else ResponseCache()
        self.wait_seconds = (
            settings.rate_limit_wait_seconds if wait_seconds is None else wait_seconds
        )
        self.max_retries = (
            settings.rate_limit_max_retries if max_retries is None else max_retries
        )
        self.timeout = timeout or settings.http_timeout
        self._transport = transport
        self._sleep = sleep

    def client(self) -> httpx.AsyncClient:
        """Return a new AsyncClient bound to this transport's settings."""
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"User-Agent": settings.user_agent},
        )

    async def get_json(self, params: Dict[str, Any]) -> Any:
        """
        GET the API endpoint with ``params`` and return the decoded JSON.

        Raises
        ------
        RateLimitExceeded
            If the endpoint keeps answering 429 after ``max_retries`` waits.

        httpx.HTTPError
            For any other transport or HTTP status failure.
        """
        key = request_key(self.api_url, params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit: %s", key)
            return cached

        retries_left = self.max_retries
        while True:
            async with self.client() as client:
                resp = await client.get(self.api_url, params=params)

            if resp.status_code == 429:
                if retries_left == 0:
                    raise RateLimitExceeded(
                        f"Rate limit exceeded. Maximum retries reached for {key}"
                    )
                logger.warning(
                    "Rate limit exceeded. Waiting for %s seconds...",
                    self.wait_seconds,
                )
                await self._sleep(self.wait_seconds)
                retries_left -= 1
                continue

            resp.raise_for_status()
            data = resp.json()
            break

        self.cache.set(key, data)
        return data
