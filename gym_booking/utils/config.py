"""Application settings resolved from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int_tuple(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    items = [item.strip() for item in value.split(",") if item.strip()]
    try:
        return tuple(int(item) for item in items)
    except ValueError as exc:
        raise ValueError(f"{name} must be a comma-separated list of hours") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str = "Enterprise Gym Booking"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    storage_backend: str = "memory"
    database_path: Path = Path("data/gym_booking.db")
    booking_timezone: str = "UTC"

    slot_capacity: int = 50
    slot_horizon_days: int = 30
    slot_first_hour: int = 8
    slot_last_hour: int = 20
    slot_blocked_hours: tuple[int, ...] = (12,)

    min_lead_days: int = 1
    max_sessions_per_day: int = 2
    max_sessions_per_week: int = 3
    adjacent_hour_gap: int = 1

    seed_demo_data: bool = False
    synthetic_random_seed: int = 42
    synthetic_user_count: int = 100
    synthetic_booking_attempts: int = 300

    audit_page_size_default: int = 20
    audit_page_size_max: int = 100
    analytics_top_users: int = 10


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; call ``cache_clear`` to re-read env."""
    defaults = Settings()
    return Settings(
        app_name=_env_str("GYM_APP_NAME", defaults.app_name),
        app_version=_env_str("GYM_APP_VERSION", defaults.app_version),
        log_level=_env_str("GYM_LOG_LEVEL", defaults.log_level),
        storage_backend=_env_str("GYM_STORAGE_BACKEND", defaults.storage_backend).lower(),
        database_path=Path(_env_str("GYM_DATABASE_PATH", str(defaults.database_path))),
        booking_timezone=_env_str("GYM_BOOKING_TIMEZONE", defaults.booking_timezone),
        slot_capacity=_env_int("GYM_SLOT_CAPACITY", defaults.slot_capacity),
        slot_horizon_days=_env_int("GYM_SLOT_HORIZON_DAYS", defaults.slot_horizon_days),
        slot_first_hour=_env_int("GYM_SLOT_FIRST_HOUR", defaults.slot_first_hour),
        slot_last_hour=_env_int("GYM_SLOT_LAST_HOUR", defaults.slot_last_hour),
        slot_blocked_hours=_env_int_tuple("GYM_SLOT_BLOCKED_HOURS", defaults.slot_blocked_hours),
        min_lead_days=_env_int("GYM_MIN_LEAD_DAYS", defaults.min_lead_days),
        max_sessions_per_day=_env_int("GYM_MAX_SESSIONS_PER_DAY", defaults.max_sessions_per_day),
        max_sessions_per_week=_env_int("GYM_MAX_SESSIONS_PER_WEEK", defaults.max_sessions_per_week),
        adjacent_hour_gap=_env_int("GYM_ADJACENT_HOUR_GAP", defaults.adjacent_hour_gap),
        seed_demo_data=_env_bool("GYM_SEED_DEMO_DATA", defaults.seed_demo_data),
        synthetic_random_seed=_env_int("GYM_SYNTHETIC_RANDOM_SEED", defaults.synthetic_random_seed),
        synthetic_user_count=_env_int("GYM_SYNTHETIC_USER_COUNT", defaults.synthetic_user_count),
        synthetic_booking_attempts=_env_int(
            "GYM_SYNTHETIC_BOOKING_ATTEMPTS",
            defaults.synthetic_booking_attempts,
        ),
        audit_page_size_default=_env_int(
            "GYM_AUDIT_PAGE_SIZE_DEFAULT",
            defaults.audit_page_size_default,
        ),
        audit_page_size_max=_env_int("GYM_AUDIT_PAGE_SIZE_MAX", defaults.audit_page_size_max),
        analytics_top_users=_env_int("GYM_ANALYTICS_TOP_USERS", defaults.analytics_top_users),
    )
