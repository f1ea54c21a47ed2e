"""
Pair selection for the next comparison.

The first book comes from the least-compared part of the pool; the second is
drawn from its closest-rated opponents, preferring seasoned books when the
first one is new so unseasoned books do not only meet each other.
"""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING, Final

from .logging_config import get_logger
from .models import LimitType, MatchOptions

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import BookRecord

logger = get_logger(__name__)

LOW_POOL_MARGIN: Final[int] = 2
NEW_BOOK_THRESHOLD: Final[int] = 5
SMALL_POOL_SIZE: Final[int] = 20
MIN_CLOSE_POOL: Final[int] = 5
CLOSE_POOL_FRACTION: Final[float] = 0.1


def eligible_books(
    catalog: Sequence[BookRecord], options: MatchOptions | None = None
) -> list[BookRecord]:
    eligible = [record for record in catalog if record.active]
    options = options or MatchOptions()

    if not options.limit_enabled or options.limit_value <= 0 or not eligible:
        return eligible

    if options.limit_type == LimitType.PERCENT:
        limit = math.ceil(len(eligible) * options.limit_value / 100)
    else:
        limit = int(options.limit_value)
    limit = max(2, min(limit, len(eligible)))

    top = sorted(eligible, key=lambda record: record.rating, reverse=True)[:limit]
    return top


def select_pair(
    catalog: Sequence[BookRecord],
    options: MatchOptions | None = None,
    rng: random.Random | None = None,
) -> tuple[BookRecord, BookRecord] | tuple[None, None]:
    rng = rng or random.Random()
    eligible = eligible_books(catalog, options)

    if len(eligible) < 2:
        logger.debug("Not enough eligible books for a matchup", eligible=len(eligible))
        return None, None

    min_count = min(record.comparison_count for record in eligible)
    low_pool = [
        record
        for record in eligible
        if record.comparison_count <= min_count + LOW_POOL_MARGIN
    ]
    first = rng.choice(low_pool)

    candidates = [record for record in eligible if record is not first]

    if first.comparison_count < NEW_BOOK_THRESHOLD and len(low_pool) < SMALL_POOL_SIZE:
        seasoned = [
            record
            for record in candidates
            if record.comparison_count >= NEW_BOOK_THRESHOLD
        ]
        if seasoned:
            candidates = seasoned

    candidates.sort(key=lambda record: abs(record.rating - first.rating))
    close_size = max(MIN_CLOSE_POOL, math.ceil(len(candidates) * CLOSE_POOL_FRACTION))
    second = rng.choice(candidates[:close_size])

    logger.debug(
        "Matchup selected",
        book1=first.id,
        book2=second.id,
        eligible=len(eligible),
        low_pool=len(low_pool),
    )
    return first, second
