import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Final

from fastapi import FastAPI

from .api.health import router as health_router
from .api.routes import router as api_router
from .backfill import CoverBackfillWorker
from .config import Settings, get_settings
from .covers.finder import CoverFinder
from .database import create_db_and_tables, create_db_engine
from .http_client import HttpClientManager
from .logging_config import configure_logging, get_logger
from .migrations import run_migrations
from .scheduler import PeriodicTask
from .services.catalog import CatalogService
from .storage import CatalogRepository, SqlKeyValueStore
from .watcher import watch_import_dir

HOST: Final[str] = "0.0.0.0"
PORT: Final[int] = 8000
VERSION: Final[str] = "0.1.0"

logger = get_logger(__name__)


def build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        logger.info(
            "ShelfRank starting",
            version=VERSION,
            data_path=str(settings.DATA_PATH),
            import_dir=str(settings.IMPORT_DIR) if settings.IMPORT_DIR else None,
        )

        engine = create_db_engine(settings)
        create_db_and_tables(engine, settings)

        repository = CatalogRepository(SqlKeyValueStore(engine))
        reset = run_migrations(repository)
        if reset:
            logger.info("Cover failures reset for retry", count=reset)

        catalog = CatalogService(repository, k_factor=settings.K_FACTOR)
        app.state.catalog_service = catalog

        finder: CoverFinder | None = None
        backfill: PeriodicTask | None = None
        app.state.matchup_cover_worker = None
        if settings.COVER_BACKFILL_ENABLED:
            finder = CoverFinder(settings)
            worker = CoverBackfillWorker(catalog, finder)
            backfill = PeriodicTask(
                "cover_backfill", settings.COVER_BACKFILL_INTERVAL, worker.tick
            )
            backfill.start()
            if settings.MATCHUP_COVER_FETCH:
                app.state.matchup_cover_worker = worker
            logger.info(
                "Cover backfill started", interval=settings.COVER_BACKFILL_INTERVAL
            )

        watcher_task: asyncio.Task[None] | None = None
        if settings.IMPORT_DIR is not None:
            watcher_task = asyncio.create_task(
                watch_import_dir(settings.IMPORT_DIR, settings, catalog),
                name="import_watcher",
            )
            logger.info("Import watcher started", directory=str(settings.IMPORT_DIR))

        logger.info("ShelfRank ready", host=HOST, port=PORT, books=len(catalog.load()))

        yield

        logger.info("ShelfRank shutting down...")

        if backfill is not None:
            await backfill.stop()

        if watcher_task is not None:
            watcher_task.cancel()
            try:
                await asyncio.wait_for(watcher_task, timeout=5.0)
            except asyncio.CancelledError:
                pass
            except TimeoutError:
                logger.warning("Watcher task did not stop gracefully")

        logger.debug("Background tasks stopped")

        if finder is not None:
            await finder.aclose()
        await HttpClientManager.close()
        logger.debug("HTTP clients closed")

        engine.dispose()
        logger.info("ShelfRank shutdown complete")

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    app = FastAPI(
        title="ShelfRank",
        description="Pairwise-ranked reading list",
        version=VERSION,
        lifespan=build_lifespan(settings),
    )
    app.include_router(health_router)
    app.include_router(api_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shelfrank.main:app",
        host=HOST,
        port=PORT,
        reload=False,
        log_level=get_settings().LOG_LEVEL.lower(),
    )
