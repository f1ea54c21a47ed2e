"""
Reconcile imported snapshots with the persisted catalog.

Both mergers keep rating history attached to the book's identity key: a
matched record keeps its id, and nothing is ever dropped from the catalog.
Records missing from an import stay behind as inactive.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .constants import DEFAULT_AUTHOR, DEFAULT_RATING, DEFAULT_TITLE
from .covers.openlibrary import placeholder_cover_url
from .fields import (
    DESCRIPTIVE_FIELDS,
    parse_bool,
    parse_count,
    parse_float,
    parse_positive_int,
)
from .identity import derive_key, record_key, title_author_key
from .logging_config import get_logger
from .models import BookRecord, new_book_id

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence, Set

logger = get_logger(__name__)


def row_key(row: Mapping[str, Any]) -> str:
    """Identity key of the record this row would become."""
    return derive_key(
        {
            "isbn": row.get("isbn"),
            "title": row.get("title") or DEFAULT_TITLE,
            "author": row.get("author") or DEFAULT_AUTHOR,
        }
    )


def _is_excluded(row: Mapping[str, Any], exclusion_keys: Set[str]) -> bool:
    if not exclusion_keys:
        return False
    return row_key(row) in exclusion_keys or title_author_key(row) in exclusion_keys


def _index(existing: Sequence[BookRecord]) -> dict[str, BookRecord]:
    index: dict[str, BookRecord] = {}
    for record in existing:
        index.setdefault(record_key(record), record)
    return index


def _descriptive_updates(row: Mapping[str, Any]) -> dict[str, Any]:
    update: dict[str, Any] = {}
    for field in ("title", "author", "isbn", *DESCRIPTIVE_FIELDS):
        value = row.get(field)
        if value:
            update[field] = value

    pages = parse_positive_int(row.get("num_pages"))
    if pages is not None:
        update["num_pages"] = pages
    return update


def _rebuild(record: BookRecord, update: Mapping[str, Any]) -> BookRecord:
    return BookRecord.model_validate({**record.model_dump(), **update})


def _deactivate_leftovers(
    existing: Sequence[BookRecord], consumed: set[str]
) -> list[BookRecord]:
    leftovers = [
        record.model_copy(update={"active": False})
        for record in existing
        if record.id not in consumed
    ]
    for record in leftovers:
        logger.debug(
            "Marking record inactive",
            book_id=record.id,
            title=record.title,
            author=record.author,
        )
    return leftovers


def _update_from_library_row(record: BookRecord, row: Mapping[str, Any]) -> BookRecord:
    update = _descriptive_updates(row)
    update["active"] = True

    isbn = update.get("isbn") or record.isbn
    if not record.cover_url and not record.cover_fetch_failed and isbn:
        update["cover_url"] = placeholder_cover_url(isbn)

    return _rebuild(record, update)


def _new_record(row: Mapping[str, Any], **overrides: Any) -> BookRecord:
    isbn = row.get("isbn") or None
    data: dict[str, Any] = {
        "title": row.get("title"),
        "author": row.get("author"),
        "isbn": isbn,
        "num_pages": parse_positive_int(row.get("num_pages")),
        "cover_url": placeholder_cover_url(isbn) if isbn else None,
        **{field: row.get(field) or "" for field in DESCRIPTIVE_FIELDS},
    }
    data.update(overrides)
    return BookRecord.model_validate(data)


def merge_catalog(
    imported_rows: Iterable[Mapping[str, Any]],
    existing: Sequence[BookRecord],
    exclusion_keys: Set[str] = frozenset(),
) -> list[BookRecord]:
    surviving = [row for row in imported_rows if not _is_excluded(row, exclusion_keys)]
    index = _index(existing)

    merged: list[BookRecord] = []
    seen: set[str] = set()
    consumed: set[str] = set()
    created = 0

    for row in surviving:
        key = row_key(row)
        if key in seen:
            logger.debug("Skipping duplicate import row", key=key, title=row.get("title"))
            continue
        seen.add(key)

        match = index.get(key)
        if match is not None:
            consumed.add(match.id)
            merged.append(_update_from_library_row(match, row))
        else:
            merged.append(_new_record(row))
            created += 1

    inactive = _deactivate_leftovers(existing, consumed)

    logger.info(
        "Catalog merged",
        imported=len(surviving),
        created=created,
        updated=len(consumed),
        inactive=len(inactive),
    )
    return merged + inactive


def merge_rankings(
    rows: Iterable[Mapping[str, Any]],
    existing: Sequence[BookRecord],
) -> list[BookRecord]:
    """Restore ratings, comparison counts and active flags from a ranking export."""
    index = _index(existing)
    used_ids = {record.id for record in existing}

    merged: list[BookRecord] = []
    seen: set[str] = set()
    consumed: set[str] = set()

    for row in rows:
        key = row_key(row)
        if key in seen:
            logger.debug("Skipping duplicate rankings row", key=key)
            continue
        seen.add(key)

        rating = parse_float(row.get("rating"))
        count = parse_count(row.get("comparison_count"))
        active = parse_bool(row.get("active"))
        cover_url = row.get("cover_url") or None

        match = index.get(key)
        if match is not None:
            consumed.add(match.id)

            # Exports round ratings; keep the stored precision when they agree.
            if rating is not None and round(match.rating) == round(rating):
                rating = match.rating

            update = _descriptive_updates(row)
            update["rating"] = rating if rating is not None else match.rating
            update["comparison_count"] = (
                count if count is not None else match.comparison_count
            )
            update["active"] = active if active is not None else match.active
            if cover_url and cover_url != match.cover_url:
                update["cover_url"] = cover_url
                update["cover_fetch_failed"] = False
            elif not match.cover_url and not match.cover_fetch_failed:
                isbn = update.get("isbn") or match.isbn
                if isbn:
                    update["cover_url"] = placeholder_cover_url(isbn)

            merged.append(_rebuild(match, update))
            continue

        book_id = row.get("id") or ""
        if not book_id or book_id in used_ids:
            book_id = new_book_id()
        used_ids.add(book_id)

        overrides: dict[str, Any] = {
            "id": book_id,
            "rating": rating if rating is not None else DEFAULT_RATING,
            "comparison_count": count if count is not None else 0,
            "active": active if active is not None else True,
        }
        if cover_url:
            overrides["cover_url"] = cover_url
        merged.append(_new_record(row, **overrides))

    inactive = _deactivate_leftovers(existing, consumed)

    logger.info(
        "Rankings merged",
        rows=len(seen),
        matched=len(consumed),
        inactive=len(inactive),
    )
    return merged + inactive
