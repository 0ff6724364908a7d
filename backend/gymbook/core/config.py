# backend/gymbook/core/config.py
import logging
import os
from pathlib import Path
import re
from typing import Literal, Pattern

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_BOOKING_WINDOW_DAYS,
    DEFAULT_CANCEL_WINDOW_HOURS,
    UNLIMITED_CAPACITY,
)


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


def _split_csv(value: str) -> list[str]:
    return [token.strip() for token in value.split(",") if token.strip()]


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    log_level: str = Field(default="INFO", description="Root log level")

    # Database
    database_url: str = Field(
        default="sqlite:///./gymbook.db",
        description="SQLAlchemy database URL (PostgreSQL in production)",
    )
    db_retry_attempts: int = Field(
        default=3, description="Attempts for transient serialization/deadlock failures"
    )

    # Auth
    jwt_secret_key: SecretStr = Field(
        default=SecretStr("dev-secret-key-change-me"),
        description="HS256 secret for bearer tokens",
    )
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=60)

    # Stripe Configuration
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook signing secret",
    )

    # Origins allowed to request Stripe onboarding links (comma-separated)
    allowed_origins_csv: str = Field(
        default="http://localhost:5173,http://localhost:5174",
        alias="allowed_origins",
        description="Exact origins allowed for Stripe redirect URLs",
    )
    allowed_origin_patterns_csv: str = Field(
        default=r"^https://.*\.app\.github\.dev$",
        alias="allowed_origin_patterns",
        description="Regex origin patterns allowed for Stripe redirect URLs",
    )

    # Booking policy defaults (overridden per gym, then per class)
    default_cancel_window_hours: float = Field(default=DEFAULT_CANCEL_WINDOW_HOURS)
    default_booking_window_days: int = Field(default=DEFAULT_BOOKING_WINDOW_DAYS)
    unlimited_capacity: int = Field(default=UNLIMITED_CAPACITY)
    credit_history_limit: int = Field(default=50)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("allowed_origin_patterns_csv")
    @classmethod
    def _validate_origin_patterns(cls, value: str) -> str:
        for pattern in _split_csv(value):
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid origin pattern {pattern!r}: {e}")
        return value

    @property
    def allowed_origins(self) -> list[str]:
        return _split_csv(self.allowed_origins_csv)

    @property
    def allowed_origin_patterns(self) -> list[str]:
        return _split_csv(self.allowed_origin_patterns_csv)

    @property
    def origin_patterns(self) -> list[Pattern[str]]:
        return [re.compile(pattern) for pattern in self.allowed_origin_patterns]

    def is_origin_allowed(self, origin: str) -> bool:
        """Return True when the origin matches an exact entry or a pattern."""
        if origin in self.allowed_origins:
            return True
        return any(pattern.match(origin) for pattern in self.origin_patterns)


settings = Settings()
