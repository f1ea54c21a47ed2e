"""
Background repair of missing covers.

Each tick picks one active book that has no cover, or only the guessed Open
Library ISBN cover, and walks the cover strategy chain for it:

    NO_COVER   --accepted lookup-->        HAS_COVER
    WEAK_COVER --image is degenerate-->    NO_COVER
    NO_COVER   --every strategy empty-->   FAILED  (until a version-gated reset)

Only ``cover_url`` and ``cover_fetch_failed`` are ever written here, and only
while the stored record still holds the cover state the lookup started from.
"""

from __future__ import annotations

import asyncio
import random
from enum import Enum
from typing import TYPE_CHECKING

from .covers.openlibrary import is_placeholder_cover
from .covers.validation import ImageCheck
from .logging_config import get_logger

if TYPE_CHECKING:
    from .covers.finder import CoverFinder
    from .models import BookRecord
    from .services.catalog import CatalogService

logger = get_logger(__name__)


class CoverState(str, Enum):
    NO_COVER = "no_cover"
    WEAK_COVER = "weak_cover"
    HAS_COVER = "has_cover"
    FAILED = "failed"


def cover_state(record: BookRecord) -> CoverState:
    if record.cover_fetch_failed:
        return CoverState.FAILED
    if not record.cover_url:
        return CoverState.NO_COVER
    if is_placeholder_cover(record.cover_url):
        return CoverState.WEAK_COVER
    return CoverState.HAS_COVER


class CoverBackfillWorker:
    def __init__(
        self,
        catalog: CatalogService,
        finder: CoverFinder,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.catalog = catalog
        self.finder = finder
        self.rng = rng or random.Random()
        self._in_flight = asyncio.Lock()
        # Weak covers that passed re-validation since startup
        self._verified: set[str] = set()

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def candidates(self, records: list[BookRecord]) -> list[BookRecord]:
        return [
            record
            for record in records
            if record.active
            and record.id not in self._verified
            and cover_state(record) in (CoverState.NO_COVER, CoverState.WEAK_COVER)
        ]

    async def tick(self) -> bool:
        """Run one backfill step. Returns False when skipped or nothing needed work."""
        if self._in_flight.locked():
            logger.debug("Cover fetch already in flight, skipping tick")
            return False

        candidates = self.candidates(self.catalog.load())
        if not candidates:
            return False

        return await self.backfill(self.rng.choice(candidates))

    async def backfill(self, record: BookRecord) -> bool:
        """Repair one record's cover unless another fetch holds the lock."""
        if self._in_flight.locked():
            logger.debug("Cover fetch already in flight, skipping", book_id=record.id)
            return False
        if not self.candidates([record]):
            return False

        async with self._in_flight:
            try:
                await self._process(record)
            except Exception as e:
                logger.error(
                    "Cover backfill failed",
                    book_id=record.id,
                    title=record.title,
                    error=str(e),
                    exc_info=True,
                )
            return True

    async def ensure_covers(self, records: list[BookRecord]) -> int:
        """Backfill the books about to be shown, one at a time."""
        repaired = 0
        for record in records:
            if await self.backfill(record):
                repaired += 1
        return repaired

    async def _process(self, record: BookRecord) -> None:
        log = logger.bind(book_id=record.id, title=record.title)
        current_url = record.cover_url

        if current_url and cover_state(record) is CoverState.WEAK_COVER:
            check = await self.finder.validator.inspect(current_url)

            if check is ImageCheck.ACCEPTED:
                self._verified.add(record.id)
                log.debug("Placeholder cover verified", url=current_url)
                return
            if check is ImageCheck.UNREACHABLE:
                log.info("Placeholder cover could not be checked, will retry")
                return

            log.info("Placeholder cover is degenerate, clearing", url=current_url)
            if self.catalog.set_cover(record.id, None, expected_url=current_url) is None:
                return
            current_url = None

        log.info("Backfilling cover")
        cover_url = await self.finder.find_cover(record.title, record.author, record.isbn)

        if cover_url:
            stored = self.catalog.set_cover(record.id, cover_url, expected_url=current_url)
            if stored is not None:
                log.info("Cover backfilled", url=cover_url)
        else:
            stored = self.catalog.set_cover(
                record.id, None, failed=True, expected_url=current_url
            )
            if stored is not None:
                log.info("No cover found, marking as failed")
