# vrumi/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

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
    env_path = Path(__file__).resolve().parents[2] / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Deployment environment name",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./vrumi.db",
        description="SQLAlchemy URL for the primary database",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements to the log")

    # Scheduling
    default_timezone: str = Field(
        default="America/Sao_Paulo",
        description="Timezone used to decide what 'today' and 'now' mean for slot filtering",
    )
    booking_window_days: int = Field(
        default=14,
        ge=1,
        le=365,
        description="How many days ahead (starting tomorrow) students may book",
    )
    default_lesson_duration_minutes: int = Field(default=50, ge=15, le=240)
    cancellation_window_hours: int = Field(
        default=24,
        ge=0,
        description="Minimum hours before the lesson for a cancellation to be refunded",
    )

    # Pricing
    platform_fee_rate: Decimal = Field(
        default=Decimal("0.15"),
        ge=Decimal("0"),
        le=Decimal("1"),
        description="Share of the lesson price retained by the platform",
    )

    # Observability
    slow_operation_threshold_seconds: float = Field(default=1.0, gt=0)
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
