import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    SQLite is only meant for local development. Set DATABASE_URL to a
    PostgreSQL connection string anywhere data has to survive a rebuild.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "stridesync.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    log_rotation: str = Field(default="10 MB", validation_alias="LOG_ROTATION")
    log_retention: str = Field(default="7 days", validation_alias="LOG_RETENTION")
    log_serialize: bool = Field(
        default=False,
        validation_alias="LOG_SERIALIZE",
        description="Write the log file as JSON lines",
    )

    garmin_bridge_url: str = Field(
        default="http://localhost:3001",
        validation_alias="GARMIN_BRIDGE_URL",
        description="Base URL of the Garmin activity bridge",
    )
    strava_bridge_url: str = Field(
        default="http://localhost:3002",
        validation_alias="STRAVA_BRIDGE_URL",
        description="Base URL of the Strava activity bridge",
    )
    bridge_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="BRIDGE_TIMEOUT_SECONDS",
        description="HTTP timeout for bridge requests",
    )

    sync_lock_timeout_minutes: int = Field(
        default=5,
        validation_alias="SYNC_LOCK_TIMEOUT_MINUTES",
        description="Age after which a held sync lock is considered stale",
    )
    sync_default_lookback_days: int = Field(
        default=7,
        validation_alias="SYNC_DEFAULT_LOOKBACK_DAYS",
        description="Sync window used when the caller gives no start date",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("sync_lock_timeout_minutes")
    @classmethod
    def validate_lock_timeout(cls, value: int) -> int:
        if value < 1:
            raise ValueError("SYNC_LOCK_TIMEOUT_MINUTES must be at least 1")
        return value


settings = Settings()
