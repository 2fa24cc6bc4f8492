"""Tests for booking rule and slot catalog configuration validation."""

from __future__ import annotations

import pytest

from gym_booking.domain.constraints import (
    BookingRules,
    CatalogConfig,
    validate_booking_rules,
    validate_catalog_config,
)


def valid_rules(**overrides) -> BookingRules:
    defaults = {
        "min_lead_days": 1,
        "max_sessions_per_day": 2,
        "max_sessions_per_week": 3,
        "adjacent_hour_gap": 1,
    }
    defaults.update(overrides)
    return BookingRules(**defaults)


def valid_catalog(**overrides) -> CatalogConfig:
    defaults = {
        "slot_capacity": 50,
        "horizon_days": 30,
        "first_hour": 8,
        "last_hour": 20,
        "blocked_hours": (12,),
    }
    defaults.update(overrides)
    return CatalogConfig(**defaults)


# --- Booking rules ---

def test_valid_rules_pass() -> None:
    validate_booking_rules(valid_rules())


def test_negative_lead_days_raises() -> None:
    with pytest.raises(ValueError):
        validate_booking_rules(valid_rules(min_lead_days=-1))


def test_zero_lead_days_passes() -> None:
    """Same-day booking is a legitimate policy choice."""
    validate_booking_rules(valid_rules(min_lead_days=0))


def test_zero_daily_cap_raises() -> None:
    with pytest.raises(ValueError):
        validate_booking_rules(valid_rules(max_sessions_per_day=0))


def test_zero_weekly_cap_raises() -> None:
    with pytest.raises(ValueError):
        validate_booking_rules(valid_rules(max_sessions_per_week=0))


def test_negative_adjacent_gap_raises() -> None:
    with pytest.raises(ValueError):
        validate_booking_rules(valid_rules(adjacent_hour_gap=-1))


def test_zero_adjacent_gap_raises() -> None:
    """A zero gap would flag the slot being booked as its own neighbour."""
    with pytest.raises(ValueError):
        validate_booking_rules(valid_rules(adjacent_hour_gap=0))


# --- Catalog ---

def test_valid_catalog_passes() -> None:
    validate_catalog_config(valid_catalog())


def test_bookable_hours_skip_blocked_lunch_hour() -> None:
    hours = valid_catalog().bookable_hours
    assert hours == (8, 9, 10, 11, 13, 14, 15, 16, 17, 18, 19, 20)


def test_zero_capacity_raises() -> None:
    with pytest.raises(ValueError):
        validate_catalog_config(valid_catalog(slot_capacity=0))


def test_zero_horizon_raises() -> None:
    with pytest.raises(ValueError):
        validate_catalog_config(valid_catalog(horizon_days=0))


def test_hour_out_of_range_raises() -> None:
    with pytest.raises(ValueError):
        validate_catalog_config(valid_catalog(last_hour=24))


def test_inverted_hours_raise() -> None:
    with pytest.raises(ValueError):
        validate_catalog_config(valid_catalog(first_hour=18, last_hour=9))


def test_all_hours_blocked_raises() -> None:
    with pytest.raises(ValueError):
        validate_catalog_config(valid_catalog(first_hour=12, last_hour=12))
