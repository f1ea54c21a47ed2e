from __future__ import annotations

from typing import Any, Final

from ..logging_config import get_logger
from .base import CoverProvider, clean_title

logger = get_logger(__name__)

COVERS_BASE_URL: Final[str] = "https://covers.openlibrary.org/b"
# ISBN covers are guessed, not looked up; Open Library serves a 1x1 image when it has none
PLACEHOLDER_PREFIX: Final[str] = f"{COVERS_BASE_URL}/isbn/"


def placeholder_cover_url(isbn: str) -> str:
    return f"{PLACEHOLDER_PREFIX}{isbn}-L.jpg"


def is_placeholder_cover(url: str | None) -> bool:
    return url is not None and url.startswith(PLACEHOLDER_PREFIX)


class OpenLibraryProvider(CoverProvider):
    name = "openlibrary"
    SEARCH_URL = "https://openlibrary.org/search.json"

    async def by_title(self, title: str, author: str | None = None) -> str | None:
        params: dict[str, Any] = {
            "title": clean_title(title),
            "limit": 1,
            "fields": "key,title,cover_i",
        }
        if author:
            params["author"] = author

        log = logger.bind(title=title, author=author)
        log.debug("Searching Open Library")

        payload = await self._get_json(self.SEARCH_URL, params)
        if not isinstance(payload, dict):
            return None

        docs = payload.get("docs") or []
        cover_id = docs[0].get("cover_i") if docs else None
        if not isinstance(cover_id, int) or cover_id <= 0:
            log.debug("No cover candidate on Open Library")
            return None

        url = f"{COVERS_BASE_URL}/id/{cover_id}-L.jpg"
        log.info("Cover candidate found on Open Library", url=url)
        return url
