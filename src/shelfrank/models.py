from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import Field as PydanticField
from pydantic import field_validator
from sqlmodel import Field, SQLModel

from .constants import DEFAULT_AUTHOR, DEFAULT_RATING, DEFAULT_TITLE, RATING_FLOOR


def new_book_id() -> str:
    return uuid4().hex


# ─────────────────────────────────────────────────────────────────────────────
# Catalog Models
# ─────────────────────────────────────────────────────────────────────────────


class BookRecord(SQLModel):
    id: str = PydanticField(default_factory=new_book_id, frozen=True)
    title: str = DEFAULT_TITLE
    author: str = DEFAULT_AUTHOR
    isbn: str | None = None

    rating: float = DEFAULT_RATING
    comparison_count: int = Field(default=0, ge=0)
    active: bool = True

    cover_url: str | None = None
    cover_fetch_failed: bool = False

    # Descriptive passthrough, carried from import to export untouched
    num_pages: int | None = None
    additional_authors: str = ""
    average_rating: str = ""
    publisher: str = ""
    year_published: str = ""
    original_publication_year: str = ""
    date_added: str = ""

    def __repr__(self) -> str:
        return (
            f"BookRecord(id={self.id!s:.8}, title={self.title!r}, "
            f"rating={self.rating:.1f}, comparisons={self.comparison_count})"
        )

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_TITLE
        return value

    @field_validator("author", mode="before")
    @classmethod
    def _default_author(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_AUTHOR
        return value

    @field_validator("isbn", "cover_url", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("rating")
    @classmethod
    def _floor_rating(cls, value: float) -> float:
        return max(RATING_FLOOR, value)


class LimitType(str, Enum):
    COUNT = "count"
    PERCENT = "percent"


class MatchOptions(SQLModel):
    limit_enabled: bool = False
    limit_type: LimitType = LimitType.COUNT
    limit_value: float = 0


class Matchup(SQLModel):
    book1: BookRecord | None = None
    book2: BookRecord | None = None


class ImportFormat(str, Enum):
    LIBRARY = "library"
    RANKINGS = "rankings"


class ImportSummary(SQLModel):
    format: ImportFormat
    created: int = 0
    updated: int = 0
    deactivated: int = 0
    total: int = 0


# ─────────────────────────────────────────────────────────────────────────────
# Persistence Models
# ─────────────────────────────────────────────────────────────────────────────


class KeyValue(SQLModel, table=True):
    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def __repr__(self) -> str:
        return f"KeyValue(key={self.key!r}, size={len(self.value)})"

    def mark_updated(self) -> None:
        self.updated_at = datetime.now(UTC)
