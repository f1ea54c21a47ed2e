"""
Persistence port and the catalog repository built on it.

The catalog is one JSON array of BookRecord under a single key. Every
mutation loads the whole collection, changes it and writes it back, so a
loaded catalog is only authoritative until the next await.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import orjson
from pydantic import TypeAdapter
from sqlmodel import Session

from .constants import CATALOG_KEY
from .database import get_session
from .logging_config import get_logger
from .models import BookRecord, KeyValue

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.engine import Engine

logger = get_logger(__name__)

_CATALOG_ADAPTER = TypeAdapter(list[BookRecord])


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class SqlKeyValueStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get(self, key: str) -> str | None:
        with Session(self.engine) as session:
            entry = session.get(KeyValue, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with get_session(self.engine) as session:
            entry = session.get(KeyValue, key)
            if entry is None:
                entry = KeyValue(key=key, value=value)
            else:
                entry.value = value
                entry.mark_updated()
            session.add(entry)


class CatalogRepository:
    def __init__(self, store: KeyValueStore, key: str = CATALOG_KEY) -> None:
        self.store = store
        self.key = key

    def load(self) -> list[BookRecord]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        return _CATALOG_ADAPTER.validate_json(raw)

    def save(self, records: Iterable[BookRecord]) -> None:
        payload = [record.model_dump(mode="json") for record in records]
        self.store.set(self.key, orjson.dumps(payload).decode("utf-8"))
        logger.debug("Catalog saved", records=len(payload))
