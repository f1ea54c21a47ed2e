from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .constants import FINISHED_SHELVES, TO_READ_SHELF
from .csv_io import ImportFormatError
from .fields import canonicalize, resolve_columns
from .identity import normalize_isbn, title_author_key
from .logging_config import get_logger
from .models import ImportFormat

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .csv_io import CsvTable

logger = get_logger(__name__)


@dataclass
class LibraryImport:
    rows: list[dict[str, str]] = field(default_factory=list)
    exclusion_keys: set[str] = field(default_factory=set)


def detect_format(header: Sequence[str]) -> ImportFormat:
    columns = resolve_columns(header)
    if "rating" in columns:
        return ImportFormat.RANKINGS
    if "exclusive_shelf" in columns:
        return ImportFormat.LIBRARY
    raise ImportFormatError(
        "Unrecognised import: expected an 'ELO' or 'Exclusive Shelf' column"
    )


def _normalize_isbn_field(row: dict[str, str]) -> dict[str, str]:
    row["isbn"] = normalize_isbn(row.get("isbn13")) or normalize_isbn(row.get("isbn"))
    row.pop("isbn13", None)
    return row


def parse_library_export(table: CsvTable) -> LibraryImport:
    columns = resolve_columns(table.header)
    for required in ("title", "exclusive_shelf"):
        if required not in columns:
            raise ImportFormatError(f"Library export is missing the '{required}' column")

    result = LibraryImport()
    to_read: list[dict[str, str]] = []

    for raw in table.rows:
        row = canonicalize(raw, columns)
        shelf = row.get("exclusive_shelf", "")

        if shelf in FINISHED_SHELVES:
            key = title_author_key(row)
            if key:
                result.exclusion_keys.add(key)
        elif shelf == TO_READ_SHELF:
            to_read.append(row)

    for row in to_read:
        row.pop("exclusive_shelf", None)
        result.rows.append(_normalize_isbn_field(row))

    logger.info(
        "Parsed library export",
        rows=len(table.rows),
        to_read=len(result.rows),
        finished=len(result.exclusion_keys),
    )
    return result


def parse_rankings(table: CsvTable) -> list[dict[str, str]]:
    columns = resolve_columns(table.header)
    if "rating" not in columns:
        raise ImportFormatError("Rankings file is missing the 'ELO' column")

    rows = [_normalize_isbn_field(canonicalize(raw, columns)) for raw in table.rows]
    logger.info("Parsed rankings file", rows=len(rows))
    return rows
