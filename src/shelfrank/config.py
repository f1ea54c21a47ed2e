from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import K_FACTOR, PROJECT_ROOT


class Settings(BaseSettings):
    """
    Application configuration.

    All variables are prefixed with SR_ (e.g. SR_DATA_PATH, SR_IMPORT_DIR).
    """

    # Data Directory
    DATA_PATH: Path = Field(default_factory=lambda: PROJECT_ROOT / "data")

    # Import inbox (disabled when unset)
    IMPORT_DIR: Path | None = None
    WATCH_FORCE_POLLING: bool = False
    WATCH_POLL_DELAY_MS: int = (
        300  # Polling interval (only used when WATCH_FORCE_POLLING=True)
    )

    # Cover backfill
    COVER_BACKFILL_ENABLED: bool = True
    COVER_BACKFILL_INTERVAL: float = 2.0
    COVER_LOOKUP_TIMEOUT: float = Field(default=5.0, gt=0)
    COVER_MIN_DIMENSION: int = Field(default=20, ge=1)
    # Fetch covers for the pair returned by POST /api/matchups
    MATCHUP_COVER_FETCH: bool = True
    GOOGLE_BOOKS_API_KEY: str | None = None

    # Rating
    K_FACTOR: int = Field(default=K_FACTOR, gt=0)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = SettingsConfigDict(
        env_prefix="SR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def db_url(self) -> str:
        return f"sqlite:///{self.DATA_PATH}/shelfrank.db"


@lru_cache
def get_settings() -> Settings:
    """Load settings from environment, failing fast on invalid values."""
    from pydantic import ValidationError

    try:
        return Settings.model_validate({})
    except ValidationError as e:
        invalid = [str(err["loc"][0]) for err in e.errors()]
        raise SystemExit(
            f"Invalid environment variable(s): {', '.join(f'SR_{m}' for m in invalid)}"
        ) from None
