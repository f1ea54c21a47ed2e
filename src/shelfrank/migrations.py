from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from .constants import COVER_BACKFILL_VERSION, COVER_BACKFILL_VERSION_KEY
from .logging_config import get_logger

if TYPE_CHECKING:
    from .storage import CatalogRepository

logger = get_logger(__name__)


def stored_backfill_version(repository: CatalogRepository) -> int:
    raw = repository.store.get(COVER_BACKFILL_VERSION_KEY)
    with contextlib.suppress(TypeError, ValueError):
        return int(raw)  # type: ignore[arg-type]
    return 0


def run_migrations(
    repository: CatalogRepository, target_version: int = COVER_BACKFILL_VERSION
) -> int:
    """
    Reset terminal cover failures once per backfill version bump.

    Returns the number of records whose failure marker was cleared.
    """
    current = stored_backfill_version(repository)
    if current >= target_version:
        logger.debug("Cover backfill version up to date", version=current)
        return 0

    records = repository.load()
    reset = 0
    for record in records:
        if record.cover_fetch_failed:
            record.cover_fetch_failed = False
            reset += 1

    if reset:
        repository.save(records)
    repository.store.set(COVER_BACKFILL_VERSION_KEY, str(target_version))

    logger.info(
        "Cover backfill migration applied",
        from_version=current,
        to_version=target_version,
        reset_records=reset,
    )
    return reset
