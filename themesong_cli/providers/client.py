"""
Async HTTP client shared by the web-backed providers.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from themesong_cli.exceptions import ProviderError
from themesong_cli.utils.circuit_breaker import CircuitBreaker

from .rate_limiter import AdaptiveRateLimiter

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
)


class ProviderClient:
    """
    Wraps an aiohttp session with rate limiting and a circuit breaker.

    One client is created per provider so a failing site only trips its own
    breaker.
    """

    def __init__(
        self,
        name: str,
        calls_per_second: float = 2.0,
        timeout: float = 30,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.name = name
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._rate_limiter = AdaptiveRateLimiter(
            initial_calls_per_second=calls_per_second,
            max_calls_per_second=calls_per_second * 2,
        )
        self._circuit_breaker = CircuitBreaker(name)

    async def _initialize_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self._timeout, connect=10),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        session = await self._initialize_session()
        async with self._circuit_breaker:
            await self._rate_limiter.acquire()
            start_time = time.monotonic()
            try:
                async with session.request(method, url, allow_redirects=True, **kwargs) as r:
                    duration_ms = (time.monotonic() - start_time) * 1000
                    log.debug(f"{self.name}: {method} {url} -> {r.status} ({duration_ms:.0f} ms)")

                    if r.status == 429:
                        await self._rate_limiter.on_429()
                        r.raise_for_status()

                    # A missing page is an answer, not a provider failure
                    if r.status == 404:
                        return {"status": 404, "url": str(r.url), "text": ""}

                    r.raise_for_status()
                    text = await r.text() if method != "HEAD" else ""
                    return {
                        "status": r.status,
                        "url": str(r.url),
                        "text": text,
                        "content_type": r.headers.get("Content-Type", ""),
                    }
            except aiohttp.ClientResponseError as e:
                raise ProviderError(f"{self.name} returned HTTP {e.status} for {url}") from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise ProviderError(f"{self.name} request to {url} failed: {e!r}") from e

    async def exists(self, url: str) -> bool:
        """True if a HEAD request for ``url`` succeeds."""
        response = await self._request("HEAD", url)
        return response["status"] < 300

    async def get_text(self, url: str, params: Optional[Dict[str, str]] = None) -> Optional[str]:
        """Returns the body of ``url`` as text, or None on 404."""
        response = await self._request("GET", url, params=params)
        if response["status"] == 404:
            return None
        return response["text"]
