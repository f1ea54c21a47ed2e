from pathlib import Path

import pytest

from shelfrank.config import Settings

pytest_plugins = [
    "tests.fixtures.mocks",
    "tests.fixtures.catalog",
    "tests.fixtures.database",
    "tests.fixtures.api",
]


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        DATA_PATH=tmp_path / "data",
        COVER_BACKFILL_ENABLED=False,
        COVER_LOOKUP_TIMEOUT=1.0,
        LOG_JSON=False,
    )
