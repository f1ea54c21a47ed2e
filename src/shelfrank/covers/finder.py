from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from ..constants import DEFAULT_AUTHOR, DEFAULT_TITLE
from ..logging_config import get_logger
from .google_books import GoogleBooksProvider
from .openlibrary import OpenLibraryProvider
from .validation import CoverValidator, ImageCheck

if TYPE_CHECKING:
    from ..config import Settings

logger = get_logger(__name__)

Strategy = tuple[str, Callable[[], Awaitable[str | None]]]


class CoverFinder:
    def __init__(self, settings: Settings) -> None:
        self._timeout = settings.COVER_LOOKUP_TIMEOUT
        self._google = GoogleBooksProvider(api_key=settings.GOOGLE_BOOKS_API_KEY)
        self._openlibrary = OpenLibraryProvider()
        self.validator = CoverValidator(
            min_dimension=settings.COVER_MIN_DIMENSION,
            timeout=settings.COVER_LOOKUP_TIMEOUT,
        )

    def strategies(
        self,
        title: str | None,
        author: str | None,
        isbn: str | None,
    ) -> list[Strategy]:
        if title == DEFAULT_TITLE:
            title = None
        if author == DEFAULT_AUTHOR:
            author = None

        chain: list[Strategy] = []
        if isbn:
            chain.append(("google_books:isbn", lambda: self._google.by_isbn(isbn)))
        if title:
            chain.append(
                ("openlibrary:search", lambda: self._openlibrary.by_title(title, author))
            )
            chain.append(
                ("google_books:title", lambda: self._google.by_title(title, author))
            )
        return chain

    async def find_cover(
        self,
        title: str | None,
        author: str | None = None,
        isbn: str | None = None,
    ) -> str | None:
        log = logger.bind(title=title, author=author, isbn=isbn)

        for name, lookup in self.strategies(title, author, isbn):
            log.info("Trying cover strategy", strategy=name)
            candidate = await self._attempt(name, lookup)
            if not candidate:
                continue

            check = await self.validator.inspect(candidate)
            if check is ImageCheck.ACCEPTED:
                log.info("Cover accepted", strategy=name, url=candidate)
                return candidate

            log.info(
                "Cover candidate rejected",
                strategy=name,
                url=candidate,
                reason=check.value,
            )

        log.info("Cover strategies exhausted")
        return None

    async def _attempt(
        self, name: str, lookup: Callable[[], Awaitable[str | None]]
    ) -> str | None:
        try:
            async with asyncio.timeout(self._timeout):
                return await lookup()
        except TimeoutError:
            logger.warning("Cover strategy timed out", strategy=name, timeout=self._timeout)
        except Exception as e:
            logger.warning("Cover strategy failed", strategy=name, error=str(e))
        return None

    async def aclose(self) -> None:
        await self._google.aclose()
        await self._openlibrary.aclose()
