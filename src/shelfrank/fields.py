"""
Canonical import fields and the column spellings accepted for each.

Columns are resolved once per import against the header row, so row
handling only ever deals with canonical names.
"""

from __future__ import annotations

import contextlib
import math
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

FIELD_ALIASES: Final[dict[str, tuple[str, ...]]] = {
    "id": ("ID", "Id", "id"),
    "title": ("Title", "title"),
    "author": ("Author", "author"),
    "isbn": ("ISBN", "isbn"),
    "isbn13": ("ISBN13", "isbn13"),
    "exclusive_shelf": ("Exclusive Shelf",),
    "rating": ("ELO", "Elo", "elo"),
    "comparison_count": ("Matchups", "matchups"),
    "active": ("Active", "active"),
    "cover_url": ("Cover_URL", "Cover URL", "cover_url"),
    "num_pages": (
        "Number of Pages",
        "Number Of Pages",
        "Number of pages",
        "Pages",
        "Num Pages",
    ),
    "additional_authors": ("Additional Authors",),
    "average_rating": ("Average Rating",),
    "publisher": ("Publisher",),
    "year_published": ("Year Published",),
    "original_publication_year": ("Original Publication Year",),
    "date_added": ("Date Added",),
}

DESCRIPTIVE_FIELDS: Final[tuple[str, ...]] = (
    "additional_authors",
    "average_rating",
    "publisher",
    "year_published",
    "original_publication_year",
    "date_added",
)

_TRUE_VALUES = frozenset({"1", "true", "yes", "y"})
_FALSE_VALUES = frozenset({"0", "false", "no", "n"})


def resolve_columns(header: Sequence[str]) -> dict[str, str]:
    """Map each canonical field to the first accepted spelling present in ``header``."""
    present = {column.strip(): column for column in header if column}
    columns: dict[str, str] = {}
    for field, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            if alias in present:
                columns[field] = present[alias]
                break
    return columns


def canonicalize(row: Mapping[str, str | None], columns: Mapping[str, str]) -> dict[str, str]:
    canonical: dict[str, str] = {}
    for field, column in columns.items():
        value = row.get(column)
        canonical[field] = value.strip() if isinstance(value, str) else ""
    return canonical


def parse_positive_int(value: str | None) -> int | None:
    if not value:
        return None
    with contextlib.suppress(ValueError, OverflowError):
        number = int(float(value.strip()))
        if number > 0:
            return number
    return None


def parse_float(value: str | None) -> float | None:
    if not value:
        return None
    with contextlib.suppress(ValueError):
        number = float(value.strip())
        if math.isfinite(number):
            return number
    return None


def parse_count(value: str | None) -> int | None:
    number = parse_float(value)
    if number is None or number < 0:
        return None
    return int(number)


def parse_bool(value: str | None) -> bool | None:
    if not value:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None
