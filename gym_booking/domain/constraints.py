"""Domain-level validation rules for booking and slot catalog configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BookingRules:
    min_lead_days: int
    max_sessions_per_day: int
    max_sessions_per_week: int
    adjacent_hour_gap: int


@dataclass(frozen=True)
class CatalogConfig:
    slot_capacity: int
    horizon_days: int
    first_hour: int
    last_hour: int
    blocked_hours: tuple[int, ...]

    @property
    def bookable_hours(self) -> tuple[int, ...]:
        blocked = set(self.blocked_hours)
        return tuple(
            hour
            for hour in range(self.first_hour, self.last_hour + 1)
            if hour not in blocked
        )


def validate_booking_rules(rules: BookingRules) -> None:
    if rules.min_lead_days < 0:
        raise ValueError("min_lead_days must be >= 0")
    if rules.max_sessions_per_day <= 0:
        raise ValueError("max_sessions_per_day must be > 0")
    if rules.max_sessions_per_week <= 0:
        raise ValueError("max_sessions_per_week must be > 0")
    if rules.adjacent_hour_gap < 1:
        raise ValueError("adjacent_hour_gap must be >= 1")


def validate_catalog_config(config: CatalogConfig) -> None:
    if config.slot_capacity <= 0:
        raise ValueError("slot_capacity must be > 0")
    if config.horizon_days <= 0:
        raise ValueError("horizon_days must be > 0")
    if not 0 <= config.first_hour <= 23 or not 0 <= config.last_hour <= 23:
        raise ValueError("slot hours must be between 0 and 23")
    if config.first_hour > config.last_hour:
        raise ValueError("first_hour must be <= last_hour")
    if not config.bookable_hours:
        raise ValueError("blocked_hours leave no bookable hour")
