"""
Import inbox.

Watches a directory for exported CSV files and imports each one as it lands,
detecting the format from its header row.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change, DefaultFilter, awatch

from .csv_io import ImportFormatError
from .logging_config import get_logger

if TYPE_CHECKING:
    from .config import Settings
    from .services.catalog import CatalogService

logger = get_logger(__name__)

# Wait this long (ms) to group events before yielding
WATCH_DEBOUNCE_MS = 1600

IMPORT_EXTENSIONS = frozenset({".csv"})


class ImportFileFilter(DefaultFilter):
    def __call__(self, change: Change, path: str) -> bool:
        if not super().__call__(change, path):
            return False

        p = Path(path)
        if p.name.startswith("."):
            return False

        return p.suffix.lower() in IMPORT_EXTENSIONS


async def import_file(path: Path, catalog: CatalogService) -> bool:
    log = logger.bind(path=str(path))

    try:
        text = await asyncio.to_thread(path.read_text, encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Could not read import file", error=str(e))
        return False

    try:
        summary = catalog.import_text(text)
    except ImportFormatError as e:
        log.error("Import file rejected", error=str(e))
        return False

    log.info(
        "Imported file from inbox",
        format=summary.format.value,
        created=summary.created,
        deactivated=summary.deactivated,
    )
    return True


async def watch_import_dir(
    import_dir: Path,
    settings: Settings,
    catalog: CatalogService,
) -> None:
    if not import_dir.exists():
        try:
            import_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(
                "Failed to create import directory",
                path=str(import_dir),
                error=str(e),
            )
            return

    mode = "polling" if settings.WATCH_FORCE_POLLING else "native"
    logger.info("Watching import directory", path=str(import_dir), mode=mode)

    try:
        async for changes in awatch(
            import_dir,
            watch_filter=ImportFileFilter(),
            debounce=WATCH_DEBOUNCE_MS,
            force_polling=settings.WATCH_FORCE_POLLING,
            poll_delay_ms=settings.WATCH_POLL_DELAY_MS,
            recursive=False,
            ignore_permission_denied=True,
        ):
            paths = sorted(
                {
                    path_str
                    for change_type, path_str in changes
                    if change_type in (Change.added, Change.modified)
                }
            )
            for path_str in paths:
                logger.info("Import file detected", path=path_str)
                try:
                    await import_file(Path(path_str), catalog)
                except Exception:
                    logger.exception("Unexpected error importing file", path=path_str)

    except asyncio.CancelledError:
        logger.debug("Import watcher cancelled")
        raise
