"""Configuration helpers for the phone advisor backend."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env if present to simplify local development.
load_dotenv()


def _require_env(key: str, default: str | None = None) -> str:
    """Return the environment variable value or raise a helpful error."""

    value = os.getenv(key, default)
    if value is None:
        raise RuntimeError(f"Environment variable '{key}' must be set.")
    return value


@dataclass(frozen=True)
class Settings:
    """Holds configuration derived from environment variables."""

    postgres_user: str
    postgres_password: str
    postgres_host: str
    postgres_port: int
    postgres_db: str
    planner_timeout_seconds: float
    planner_attempts: int
    stream_idle_timeout_seconds: float
    query_timeout_seconds: float
    app_host: str
    app_port: int
    log_level: str

    @property
    def async_database_url(self) -> str:
        """Return the async SQLAlchemy URL for application usage."""

        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


def _int_from_env(key: str, default: int) -> int:
    """Parse a positive integer from the environment."""

    raw_value = os.getenv(key)
    if raw_value is None:
        return default

    try:
        value = int(raw_value)
    except ValueError as exc:  # pragma: no cover
        raise RuntimeError(f"Environment variable '{key}' must be an integer") from exc

    if value <= 0:
        raise RuntimeError(f"Environment variable '{key}' must be greater than zero")

    return value


def _positive_float_from_env(key: str, default: float) -> float:
    """Parse a strictly positive floating-point value from the environment."""

    raw_value = os.getenv(key)
    if raw_value is None:
        return default

    try:
        value = float(raw_value)
    except ValueError as exc:  # pragma: no cover
        raise RuntimeError(
            f"Environment variable '{key}' must be a floating-point number"
        ) from exc

    if value <= 0:
        raise RuntimeError(f"Environment variable '{key}' must be greater than zero")

    return value


def get_settings() -> Settings:
    """Create settings populated from the environment."""

    return Settings(
        postgres_user=_require_env("POSTGRES_USER"),
        postgres_password=_require_env("POSTGRES_PASSWORD"),
        postgres_host=_require_env("POSTGRES_HOST"),
        postgres_port=int(_require_env("POSTGRES_PORT", "5432")),
        postgres_db=_require_env("POSTGRES_DB"),
        planner_timeout_seconds=_positive_float_from_env("PLANNER_TIMEOUT_SECONDS", 20.0),
        planner_attempts=_int_from_env("PLANNER_ATTEMPTS", 2),
        stream_idle_timeout_seconds=_positive_float_from_env(
            "STREAM_IDLE_TIMEOUT_SECONDS", 30.0
        ),
        query_timeout_seconds=_positive_float_from_env("QUERY_TIMEOUT_SECONDS", 10.0),
        app_host=os.getenv("APP_HOST", "0.0.0.0"),
        app_port=_int_from_env("APP_PORT", 8000),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


settings = get_settings()


__all__ = ["Settings", "get_settings", "settings"]
