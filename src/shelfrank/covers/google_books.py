from __future__ import annotations

from typing import Any

from ..logging_config import get_logger
from .base import CoverProvider, clean_title

logger = get_logger(__name__)


def normalize_image_url(url: str) -> str:
    """Upgrade to https and drop the page-curl effect Google adds to thumbnails."""
    if url.startswith("http://"):
        url = "https://" + url.removeprefix("http://")
    return url.replace("&edge=curl", "")


class GoogleBooksProvider(CoverProvider):
    name = "google_books"
    BASE_URL = "https://www.googleapis.com/books/v1/volumes"

    def __init__(self, api_key: str | None = None) -> None:
        super().__init__()
        self._api_key = api_key

    async def by_isbn(self, isbn: str) -> str | None:
        return await self.search(f"isbn:{isbn}")

    async def by_title(self, title: str, author: str | None = None) -> str | None:
        query = f"intitle:{clean_title(title)}"
        if author:
            query += f" inauthor:{author}"
        return await self.search(query)

    async def search(self, query: str) -> str | None:
        params: dict[str, Any] = {"q": query, "maxResults": 1}
        if self._api_key:
            params["key"] = self._api_key

        log = logger.bind(query=query)
        log.debug("Searching Google Books")

        payload = await self._get_json(self.BASE_URL, params)
        if not isinstance(payload, dict):
            return None

        url = self._extract_image_url(payload)
        if url:
            log.info("Cover candidate found on Google Books", url=url)
        else:
            log.debug("No cover candidate on Google Books")
        return url

    def _extract_image_url(self, payload: dict[str, Any]) -> str | None:
        items = payload.get("items") or []
        if not items:
            return None

        image_links = items[0].get("volumeInfo", {}).get("imageLinks") or {}
        url = image_links.get("thumbnail") or image_links.get("smallThumbnail")
        if not isinstance(url, str) or not url:
            return None
        return normalize_image_url(url)
