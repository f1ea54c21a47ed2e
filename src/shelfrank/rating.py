from __future__ import annotations

from typing import TYPE_CHECKING

from .constants import K_FACTOR, RATING_FLOOR
from .logging_config import get_logger

if TYPE_CHECKING:
    from .models import BookRecord

logger = get_logger(__name__)


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that ``rating`` beats ``opponent_rating`` under the Elo model."""
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def rate_1vs1(
    winner_rating: float, loser_rating: float, k: float = K_FACTOR
) -> tuple[float, float]:
    new_winner = winner_rating + k * (1 - expected_score(winner_rating, loser_rating))
    new_loser = loser_rating + k * (0 - expected_score(loser_rating, winner_rating))
    return max(RATING_FLOOR, new_winner), max(RATING_FLOOR, new_loser)


def record_outcome(winner: BookRecord, loser: BookRecord, k: float = K_FACTOR) -> None:
    """Apply a resolved comparison to both records in place."""
    if winner.id == loser.id:
        raise ValueError("A book cannot be compared with itself")

    old_winner, old_loser = winner.rating, loser.rating
    winner.rating, loser.rating = rate_1vs1(old_winner, old_loser, k)
    winner.comparison_count += 1
    loser.comparison_count += 1

    logger.debug(
        "Outcome recorded",
        winner_id=winner.id,
        loser_id=loser.id,
        winner_delta=round(winner.rating - old_winner, 2),
        loser_delta=round(loser.rating - old_loser, 2),
    )
