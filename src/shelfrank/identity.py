"""
Identity keys for catalog rows.

A row is anything mapping field names to values: a canonical import row, a
raw CSV row, or a dumped BookRecord. Two rows describe the same book when
their keys are equal.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .models import BookRecord

ISBN_FIELDS: Final[tuple[str, ...]] = ("isbn", "ISBN13", "ISBN")
TITLE_FIELDS: Final[tuple[str, ...]] = ("title", "Title")
AUTHOR_FIELDS: Final[tuple[str, ...]] = ("author", "Author")

KEY_SEPARATOR: Final[str] = "|"

_NON_ISBN_CHARS = re.compile(r"[^0-9X]")


def normalize_isbn(value: Any) -> str:
    """Strip everything but digits and X; library exports wrap ISBNs as ="978..."."""
    if value is None:
        return ""
    return _NON_ISBN_CHARS.sub("", str(value).upper()).strip()


def _first_text(row: Mapping[str, Any], fields: tuple[str, ...]) -> str:
    for field in fields:
        value = row.get(field)
        if value:
            return str(value)
    return ""


def title_author_key(row: Mapping[str, Any]) -> str | None:
    title = _first_text(row, TITLE_FIELDS).lower().strip()
    author = _first_text(row, AUTHOR_FIELDS).lower().strip()
    if not title or not author:
        return None
    return f"{title}{KEY_SEPARATOR}{author}"


def derive_key(row: Mapping[str, Any]) -> str:
    for field in ISBN_FIELDS:
        isbn = normalize_isbn(row.get(field))
        if isbn:
            return isbn

    title = _first_text(row, TITLE_FIELDS).lower().strip()
    author = _first_text(row, AUTHOR_FIELDS).lower().strip()
    return f"{title}{KEY_SEPARATOR}{author}"


def record_key(record: BookRecord) -> str:
    return derive_key(
        {"isbn": record.isbn, "title": record.title, "author": record.author}
    )
