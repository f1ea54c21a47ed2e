"""
The catalog owner: every operation loads the persisted catalog, works on
that fresh copy and writes the whole collection back.

Methods are synchronous on purpose. They run on the event loop between
awaits, so the interactive path and the cover backfill never interleave
inside a load-modify-save.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from ..constants import K_FACTOR
from ..csv_io import read_table, write_catalog
from ..importers import detect_format, parse_library_export, parse_rankings
from ..logging_config import get_logger
from ..matchmaking import select_pair
from ..merge import merge_catalog, merge_rankings
from ..models import ImportFormat, ImportSummary, MatchOptions
from ..rating import record_outcome

if TYPE_CHECKING:
    from ..models import BookRecord
    from ..storage import CatalogRepository

logger = get_logger(__name__)


class BookNotFoundError(LookupError):
    def __init__(self, book_id: str) -> None:
        super().__init__(f"No book with id {book_id!r}")
        self.book_id = book_id


def _summarize(
    import_format: ImportFormat,
    before: list[BookRecord],
    after: list[BookRecord],
) -> ImportSummary:
    previous = {record.id: record for record in before}
    created = sum(1 for record in after if record.id not in previous)
    deactivated = sum(
        1
        for record in after
        if record.id in previous and previous[record.id].active and not record.active
    )
    updated = sum(1 for record in after if record.id in previous and record.active)
    return ImportSummary(
        format=import_format,
        created=created,
        updated=updated,
        deactivated=deactivated,
        total=len(after),
    )


class CatalogService:
    def __init__(
        self,
        repository: CatalogRepository,
        *,
        k_factor: float = K_FACTOR,
        rng: random.Random | None = None,
    ) -> None:
        self.repository = repository
        self.k_factor = k_factor
        self.rng = rng or random.Random()

    def load(self) -> list[BookRecord]:
        return self.repository.load()

    def rankings(self, *, include_inactive: bool = False) -> list[BookRecord]:
        records = [
            record for record in self.load() if include_inactive or record.active
        ]
        return sorted(records, key=lambda record: record.rating, reverse=True)

    # ─────────────────────────────────────────────────────────────────────────
    # Import / Export
    # ─────────────────────────────────────────────────────────────────────────

    def import_text(
        self, text: str, import_format: ImportFormat | None = None
    ) -> ImportSummary:
        """Parse and merge an import; a parse failure leaves the stored catalog untouched."""
        table = read_table(text)
        import_format = import_format or detect_format(table.header)
        existing = self.load()

        match import_format:
            case ImportFormat.LIBRARY:
                parsed = parse_library_export(table)
                merged = merge_catalog(parsed.rows, existing, parsed.exclusion_keys)
            case ImportFormat.RANKINGS:
                merged = merge_rankings(parse_rankings(table), existing)
            case _:
                raise ValueError(f"Unsupported import format: {import_format}")

        self.repository.save(merged)
        summary = _summarize(import_format, existing, merged)
        logger.info("Import complete", **summary.model_dump(mode="json"))
        return summary

    def import_library_export(self, text: str) -> ImportSummary:
        return self.import_text(text, ImportFormat.LIBRARY)

    def import_rankings(self, text: str) -> ImportSummary:
        return self.import_text(text, ImportFormat.RANKINGS)

    def export_csv(self) -> str:
        return write_catalog(self.load())

    # ─────────────────────────────────────────────────────────────────────────
    # Matchmaking
    # ─────────────────────────────────────────────────────────────────────────

    def next_matchup(
        self, options: MatchOptions | None = None
    ) -> tuple[BookRecord, BookRecord] | tuple[None, None]:
        return select_pair(self.load(), options, self.rng)

    def record_outcome(self, winner_id: str, loser_id: str) -> tuple[BookRecord, BookRecord]:
        if winner_id == loser_id:
            raise ValueError("A book cannot be compared with itself")

        records = self.load()
        by_id = {record.id: record for record in records}
        for book_id in (winner_id, loser_id):
            if book_id not in by_id:
                raise BookNotFoundError(book_id)

        winner, loser = by_id[winner_id], by_id[loser_id]
        record_outcome(winner, loser, self.k_factor)
        self.repository.save(records)

        logger.info(
            "Comparison recorded",
            winner_id=winner.id,
            winner_rating=round(winner.rating, 1),
            loser_id=loser.id,
            loser_rating=round(loser.rating, 1),
        )
        return winner, loser

    # ─────────────────────────────────────────────────────────────────────────
    # Covers
    # ─────────────────────────────────────────────────────────────────────────

    def set_cover(
        self,
        book_id: str,
        cover_url: str | None,
        *,
        failed: bool = False,
        expected_url: str | None = None,
        expected_failed: bool = False,
    ) -> BookRecord | None:
        """
        Write the cover fields if the stored record still holds the expected ones.

        Returns None, and writes nothing, when the book is gone, inactive, or
        its cover changed since the caller looked at it.
        """
        records = self.load()
        record = next((r for r in records if r.id == book_id), None)
        log = logger.bind(book_id=book_id)
        if record is None:
            log.warning("Cover update for unknown book")
            return None
        if not record.active:
            log.info("Book deactivated during cover lookup, discarding result")
            return None
        if (record.cover_url, record.cover_fetch_failed) != (expected_url, expected_failed):
            log.info(
                "Cover changed during lookup, discarding result",
                stored_url=record.cover_url,
                expected_url=expected_url,
            )
            return None

        record.cover_url = cover_url
        record.cover_fetch_failed = failed
        self.repository.save(records)
        return record
