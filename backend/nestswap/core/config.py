# backend/nestswap/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    api_title: str = "NestSwap Swap Engine"

    database_url: str = Field(
        default="sqlite:///./nestswap.db",
        description="SQLAlchemy URL for the swap store",
    )
    sql_echo: bool = False
    log_level: str = "INFO"

    # Swap rules
    swap_min_duration_days: int = Field(default=1, ge=1)
    swap_notes_max_length: int = Field(default=1000, ge=1)

    # Acceptance locking
    swap_lock_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Max seconds to wait for the in-process listing mutex",
    )
    swap_db_lock_timeout_ms: int = Field(
        default=5000,
        ge=0,
        description="PostgreSQL lock_timeout applied inside the accept transaction (0 disables)",
    )
    swap_transition_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts the API makes for a transition that fails transiently",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = (v or "INFO").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            logger.warning("Invalid LOG_LEVEL=%s; defaulting to INFO", v)
            return "INFO"
        return level

    def get_database_url(self, override: Optional[str] = None) -> str:
        """Get the database URL, honouring an explicit override."""
        return override or self.database_url


settings = Settings()
