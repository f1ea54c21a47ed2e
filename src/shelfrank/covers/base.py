import asyncio
import random
import re
import time
from typing import Any, ClassVar

import httpx

from ..http_client import USER_AGENT
from ..logging_config import get_logger

logger = get_logger(__name__)


LOOKUP_MIN_DELAY = 1.0  # seconds
LOOKUP_JITTER_MAX = 0.5  # seconds
LOOKUP_TIMEOUT = 10.0  # seconds, per request at the transport level

REQUEST_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json",
}

_PARENTHETICAL = re.compile(r"\s*\(.*?\)\s*")


class CoverLookupUnavailable(Exception):
    """The lookup service is throttling us or temporarily down."""


def clean_title(title: str) -> str:
    """Drop series annotations like "(The Expanse, #1)" that confuse title search."""
    return " ".join(_PARENTHETICAL.sub(" ", title).split())


class RateLimitedTransport(httpx.AsyncBaseTransport):
    def __init__(
        self,
        min_delay: float | None = None,
        jitter_max: float | None = None,
    ) -> None:
        self._transport = httpx.AsyncHTTPTransport()
        self._min_delay = LOOKUP_MIN_DELAY if min_delay is None else min_delay
        self._jitter_max = LOOKUP_JITTER_MAX if jitter_max is None else jitter_max
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        async with self._lock:
            elapsed = time.monotonic() - self._last_request_time

            jitter = random.uniform(0, self._jitter_max)
            required_delay = self._min_delay + jitter

            if elapsed < required_delay:
                wait_time = required_delay - elapsed
                logger.debug(
                    "Rate limiting",
                    host=request.url.host,
                    wait_seconds=round(wait_time, 2),
                )
                await asyncio.sleep(wait_time)

            self._last_request_time = time.monotonic()

        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        await self._transport.aclose()


class CoverProvider:
    """Shared plumbing for JSON lookup services that answer with a cover image URL."""

    name: ClassVar[str] = "provider"

    def __init__(self) -> None:
        self._transport = RateLimitedTransport()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(LOOKUP_TIMEOUT),
                follow_redirects=True,
                headers=REQUEST_HEADERS,
            )
        return self._client

    async def _get_json(self, url: str, params: dict[str, Any]) -> Any | None:
        client = await self._get_client()
        log = logger.bind(provider=self.name, url=url, params=params)

        response = await client.get(url, params=params)

        if response.status_code in (429, 503):
            log.warning(
                "Lookup rate limit or service unavailable",
                status_code=response.status_code,
            )
            raise CoverLookupUnavailable(
                f"{self.name} unavailable: {response.status_code}"
            )

        if response.status_code != 200:
            log.warning("Lookup request failed", status_code=response.status_code)
            return None

        try:
            return response.json()
        except ValueError as e:
            log.warning("Lookup returned malformed JSON", error=str(e))
            return None

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
