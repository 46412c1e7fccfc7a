# tutorcal/core/config.py
import logging
import os
from pathlib import Path
from typing import List, Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
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


_DEFAULT_SECRET_KEY = SecretStr("tutorcal-dev-secret-change-me")


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment name",
    )
    database_url: str = Field(
        default="sqlite:///./tutorcal.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Bearer tokens are issued by the identity provider; we only verify them.
    secret_key: SecretStr = Field(
        default=_DEFAULT_SECRET_KEY,
        alias="SECRET_KEY",
        description="Secret key for JWT tokens",
    )
    algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = 720  # 12 hours

    default_timezone: str = Field(
        default="UTC",
        alias="DEFAULT_TIMEZONE",
        description="Timezone assigned to users that never configured one",
    )

    # Booking policy
    lesson_slot_minutes: int = Field(
        default=60,
        alias="LESSON_SLOT_MINUTES",
        description="Granularity of bookable slots offered to students",
    )
    allowed_lesson_durations: List[int] = Field(
        default_factory=lambda: [60, 30],
        alias="ALLOWED_LESSON_DURATIONS",
        description="Lesson lengths a student may book inside one slot",
    )
    min_advance_booking_hours: int = Field(default=12, alias="MIN_ADVANCE_BOOKING_HOURS")
    max_booking_days: int = Field(default=30, alias="MAX_BOOKING_DAYS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: List[str] = Field(default_factory=list, alias="CORS_ORIGINS")
    is_testing: bool = Field(default_factory=is_running_tests)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("default_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @field_validator("allowed_lesson_durations")
    @classmethod
    def _validate_durations(cls, value: List[int]) -> List[int]:
        if not value or any(minutes <= 0 for minutes in value):
            raise ValueError("allowed_lesson_durations must contain positive minute values")
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
