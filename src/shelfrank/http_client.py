import asyncio
from typing import ClassVar, Final

import httpx

from .logging_config import get_logger

logger = get_logger(__name__)

# Shared client for image downloads; lookups bound each call more tightly
HTTP_TIMEOUT: Final[float] = 10.0
HTTP_MAX_CONNECTIONS: Final[int] = 20

USER_AGENT: Final[str] = "shelfrank/0.1 (personal reading list)"


class HttpClientManager:
    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None

    @classmethod
    def _get_lock(cls) -> asyncio.Lock:
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(cls) -> httpx.AsyncClient:
        async with cls._get_lock():
            if cls._client is None or cls._client.is_closed:
                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(HTTP_TIMEOUT),
                    follow_redirects=True,
                    headers={"User-Agent": USER_AGENT},
                    limits=httpx.Limits(
                        max_connections=HTTP_MAX_CONNECTIONS,
                        max_keepalive_connections=HTTP_MAX_CONNECTIONS // 2,
                    ),
                )
                logger.debug(
                    "HTTP client initialized",
                    timeout=HTTP_TIMEOUT,
                    max_connections=HTTP_MAX_CONNECTIONS,
                )

            return cls._client

    @classmethod
    async def close(cls) -> None:
        async with cls._get_lock():
            if cls._client is not None and not cls._client.is_closed:
                await cls._client.aclose()
                logger.debug("HTTP client closed")
            cls._client = None
        # A fresh loop (tests, restarts) must not reuse a lock bound to the old one
        cls._lock = None
