"""
Delimited-text boundary: reading import files and writing the export.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from .logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import BookRecord

logger = get_logger(__name__)

EXPORT_COLUMNS: Final[tuple[str, ...]] = (
    "ISBN",
    "Title",
    "Author",
    "ELO",
    "Matchups",
    "Active",
    "ID",
    "Cover_URL",
    "Number of Pages",
    "Additional Authors",
    "Average Rating",
    "Publisher",
    "Year Published",
    "Original Publication Year",
    "Date Added",
)


class ImportFormatError(ValueError):
    """The import text could not be tokenized or lacks a usable header."""


@dataclass
class CsvTable:
    header: list[str]
    rows: list[dict[str, str | None]] = field(default_factory=list)


def read_table(text: str) -> CsvTable:
    """Tokenize delimited text with a header row; any tokenizer error aborts the read."""
    text = text.lstrip("\ufeff")
    if not text.strip():
        raise ImportFormatError("Import is empty")

    reader = csv.DictReader(io.StringIO(text, newline=""), strict=True)
    try:
        header = list(reader.fieldnames or [])
        rows = [
            row
            for row in reader
            if any(isinstance(v, str) and v.strip() for v in row.values())
        ]
    except csv.Error as e:
        raise ImportFormatError(f"Malformed CSV at line {reader.line_num}: {e}") from e

    if not any(name.strip() for name in header):
        raise ImportFormatError("Import has no header row")

    logger.debug("CSV tokenized", columns=len(header), rows=len(rows))
    return CsvTable(header=header, rows=rows)


def _text(value: object) -> str:
    return "" if value is None else str(value)


def export_row(record: BookRecord) -> list[str]:
    return [
        _text(record.isbn),
        record.title,
        record.author,
        str(round(record.rating)),
        str(record.comparison_count),
        "1" if record.active else "0",
        record.id,
        _text(record.cover_url),
        _text(record.num_pages),
        record.additional_authors,
        record.average_rating,
        record.publisher,
        record.year_published,
        record.original_publication_year,
        record.date_added,
    ]


def write_catalog(records: Iterable[BookRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(EXPORT_COLUMNS)
    for record in records:
        writer.writerow(export_row(record))
    return buffer.getvalue()
