from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlmodel import Session, SQLModel, create_engine

from .config import Settings, get_settings
from .logging_config import get_logger

# Import models to register them with SQLModel metadata
from .models import KeyValue  # noqa: F401

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

logger = get_logger(__name__)


def create_db_engine(settings: Settings | None = None) -> Engine:
    settings = settings or get_settings()
    connect_args = {
        "check_same_thread": False,
        "timeout": 30,
    }

    return create_engine(
        settings.db_url,
        echo=False,
        connect_args=connect_args,
        pool_pre_ping=True,
    )


def create_db_and_tables(engine: Engine, settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    settings.DATA_PATH.mkdir(parents=True, exist_ok=True)

    logger.info("Initializing database", db_url=settings.db_url)
    SQLModel.metadata.create_all(engine)
    logger.info("Database initialized successfully")


@contextmanager
def get_session(engine: Engine) -> Generator[Session]:
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
