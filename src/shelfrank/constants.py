from pathlib import Path
from typing import Final

# src/shelfrank/constants.py -> ../.. -> project root
PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parent.parent.parent

DEFAULT_TITLE: Final[str] = "Unknown Title"
DEFAULT_AUTHOR: Final[str] = "Unknown Author"

DEFAULT_RATING: Final[float] = 1500.0
RATING_FLOOR: Final[float] = 100.0
K_FACTOR: Final[int] = 32

# Persistence keys
CATALOG_KEY: Final[str] = "books"
COVER_BACKFILL_VERSION_KEY: Final[str] = "cover_backfill_version"

# Bump to give every record whose cover lookup previously failed another chance.
COVER_BACKFILL_VERSION: Final[int] = 2

TO_READ_SHELF: Final[str] = "to-read"
FINISHED_SHELVES: Final[frozenset[str]] = frozenset({"read", "currently-reading"})
