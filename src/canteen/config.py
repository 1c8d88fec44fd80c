"""
Utilities to centralize configuration handling across the canteen services.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_MEAL_WINDOWS = {
    "breakfast": "06:00-10:59",
    "lunch": "11:00-14:59",
    "dinner": "17:00-20:59",
}


@dataclass
class AppConfig:
    """Simple container for application level settings."""

    app_name: str
    # PostgreSQL database
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    db_sslmode: str
    # App settings
    secret_key: str
    log_level: str
    debug_mode: bool
    flask_debug: bool
    # Dining rules
    timezone: str = "Asia/Shanghai"
    meal_windows: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MEAL_WINDOWS))
    cancel_deadline_hour: int = 22
    allow_future_confirmation: bool = True
    reject_past_bookings: bool = False
    database_url: str | None = None
    cors_allowed_origins: list[str] = field(default_factory=list)

    @property
    def sqlalchemy_uri(self) -> str:
        """
        Build a SQLAlchemy PostgreSQL URI using psycopg2 as the driver.

        An explicit ``database_url`` (e.g. ``sqlite://`` in tests) wins over the
        individual PostgreSQL settings.
        """
        if self.database_url:
            return self.database_url
        ssl_arg = f"?sslmode={self.db_sslmode}" if self.db_sslmode else ""
        return (
            f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}{ssl_arg}"
        )


def _read_env(name: str, default: str | None = None) -> str:
    """
    Internal helper to fetch environment variables with support for defaults.
    """
    value = os.getenv(name)
    if value is None:
        if default is None:
            raise RuntimeError(f"Missing required environment variable '{name}'")
        value = default
    return value


def read_bool(name: str, default: str = "false") -> bool:
    value = _read_env(name, default)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def validate_required_env_vars(skip_in_debug: bool = False) -> None:
    """
    Validate that all required environment variables are set.

    Fails fast during startup rather than encountering errors on the first
    request.

    Args:
        skip_in_debug: If True, skip validation when DEBUG_MODE=true

    Raises:
        RuntimeError: If any required variable is missing or has an invalid value
    """
    if skip_in_debug and read_bool("DEBUG_MODE", "false"):
        return

    errors = []

    secret_key = os.getenv("SECRET_KEY", "")
    if not secret_key or secret_key in [
        "change-me-please",
        "super-secret-change-me",
        "your-secret-key-here",
    ]:
        errors.append(
            "SECRET_KEY must be configured with a secure random value. "
            'Generate with: python3 -c "import secrets; print(secrets.token_urlsafe(32))"'
        )

    if not os.getenv("DATABASE_URL"):
        for name in ("POSTGRES_HOST", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB"):
            if not os.getenv(name, ""):
                errors.append(f"{name} must be configured (or set DATABASE_URL)")

    deadline = os.getenv("CANCEL_DEADLINE_HOUR", "")
    if deadline:
        try:
            hour = int(deadline)
            if hour < 0 or hour > 23:
                errors.append(f"CANCEL_DEADLINE_HOUR must be between 0 and 23, got: {hour}")
        except ValueError:
            errors.append(f"CANCEL_DEADLINE_HOUR must be a valid integer, got: {deadline}")

    if errors:
        error_msg = "\nConfiguration Errors - Missing or invalid environment variables:\n"
        for error in errors:
            error_msg += f"  - {error}\n"
        raise RuntimeError(error_msg)


def load_config(app_name: str) -> AppConfig:
    """
    Produce an AppConfig instance populated from environment variables.

    Each service passes its desired `app_name` to keep logs easy to
    differentiate while still reusing the same config loader.
    """
    origins = _read_env("CORS_ALLOWED_ORIGINS", "")
    return AppConfig(
        app_name=app_name,
        db_host=_read_env("POSTGRES_HOST", "canteen-postgres"),
        db_port=int(_read_env("POSTGRES_PORT", "5432")),
        db_user=_read_env("POSTGRES_USER", "canteen"),
        db_password=_read_env("POSTGRES_PASSWORD", "canteen"),
        db_name=_read_env("POSTGRES_DB", "canteen"),
        db_sslmode=_read_env("POSTGRES_SSLMODE", "disable"),
        database_url=os.getenv("DATABASE_URL") or None,
        secret_key=_read_env("SECRET_KEY", "super-secret-change-me"),
        log_level=_read_env("LOG_LEVEL", "INFO"),
        debug_mode=read_bool("DEBUG_MODE", "false"),
        flask_debug=read_bool("FLASK_DEBUG", "false"),
        timezone=_read_env("CANTEEN_TIMEZONE", "Asia/Shanghai"),
        meal_windows={
            meal: _read_env(f"MEAL_WINDOW_{meal.upper()}", window)
            for meal, window in DEFAULT_MEAL_WINDOWS.items()
        },
        cancel_deadline_hour=int(_read_env("CANCEL_DEADLINE_HOUR", "22")),
        allow_future_confirmation=read_bool("ALLOW_FUTURE_CONFIRMATION", "true"),
        reject_past_bookings=read_bool("REJECT_PAST_BOOKINGS", "false"),
        cors_allowed_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
    )


_active_config: AppConfig | None = None


def set_active_config(config: AppConfig) -> None:
    """Register the config the domain services read their dining rules from."""
    global _active_config
    _active_config = config


def get_active_config() -> AppConfig:
    """Return the registered config, loading it from the environment on first use."""
    global _active_config
    if _active_config is None:
        _active_config = load_config("canteen")
    return _active_config
