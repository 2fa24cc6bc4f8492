from __future__ import annotations

from collections import Counter
from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from gym_booking.domain.models import AuditAction
from gym_booking.repository.storage import StorageBundle, build_in_memory_storage
from gym_booking.services.booking_service import BookingService
from gym_booking.services.catalog_service import CatalogService, build_demo_users
from gym_booking.utils.config import get_settings


NOW = datetime(2026, 3, 1, 9, 0)


def _build_test_settings(**overrides):
    get_settings.cache_clear()
    base = get_settings()
    values = {
        "slot_capacity": 50,
        "slot_horizon_days": 30,
        "slot_first_hour": 8,
        "slot_last_hour": 20,
        "slot_blocked_hours": (12,),
        "synthetic_user_count": 20,
        "synthetic_booking_attempts": 120,
        "synthetic_random_seed": 7,
    }
    values.update(overrides)
    return replace(base, **values)


def _build_catalog(**overrides) -> tuple[CatalogService, StorageBundle]:
    settings = _build_test_settings(**overrides)
    storage = build_in_memory_storage()
    booking_service = BookingService(
        slot_store=storage.slots,
        ledger=storage.ledger,
        audit_log=storage.audit_log,
        settings=settings,
    )
    catalog = CatalogService(
        slot_store=storage.slots,
        user_directory=storage.users,
        booking_service=booking_service,
        settings=settings,
    )
    return catalog, storage


def test_ensure_horizon_creates_every_bookable_hour() -> None:
    catalog, storage = _build_catalog()

    added = catalog.ensure_horizon(NOW)

    assert added == 30 * 12
    slots = storage.slots.list_slots(date(2026, 1, 1), date(2026, 12, 31))
    assert slots[0].date == date(2026, 3, 2)
    assert slots[-1].date == date(2026, 3, 31)
    assert {slot.hour for slot in slots} == set(range(8, 21)) - {12}
    assert all(slot.capacity == 50 and slot.occupancy == 0 for slot in slots)


def test_ensure_horizon_only_adds_missing_days() -> None:
    catalog, storage = _build_catalog()
    catalog.ensure_horizon(NOW)

    assert catalog.ensure_horizon(NOW) == 0
    assert catalog.ensure_horizon(NOW + timedelta(days=2)) == 2 * 12


def test_invalid_catalog_settings_raise() -> None:
    with pytest.raises(ValueError):
        _build_catalog(slot_capacity=0)


def test_demo_users_are_deterministic() -> None:
    users = build_demo_users(15)
    assert users[0].user_id == "user-1"
    assert users[2].gender == "female"
    assert users[4].gender == "other"
    assert users[14].gender == "female"
    assert users[0].gender == "male"
    assert users[0].email == "employee1@company.com"


def test_seed_demo_data_obeys_every_rule() -> None:
    catalog, storage = _build_catalog()
    catalog.ensure_horizon(NOW)

    committed = catalog.seed_demo_data(NOW)

    bookings = storage.ledger.list_bookings()
    assert committed == len(bookings) > 0
    assert len(storage.users.list_users()) == 20
    assert storage.audit_log.count_events(AuditAction.LOGIN) == 20
    assert storage.audit_log.count_events(AuditAction.BOOKING_CREATED) == committed

    per_day = Counter((booking.user_id, booking.slot_id.date) for booking in bookings)
    assert max(per_day.values()) <= 2
    for booking in bookings:
        same_day_hours = [
            other.slot_id.hour
            for other in bookings
            if other.user_id == booking.user_id
            and other.slot_id.date == booking.slot_id.date
            and other.booking_id != booking.booking_id
        ]
        assert all(abs(hour - booking.slot_id.hour) != 1 for hour in same_day_hours)

    for slot in storage.slots.list_slots(date(2026, 3, 2), date(2026, 3, 31)):
        holders = {b.user_id for b in bookings if b.slot_id == slot.slot_id}
        assert slot.bookers == holders


def test_seed_demo_data_is_reproducible() -> None:
    first, first_storage = _build_catalog()
    second, second_storage = _build_catalog()
    for catalog in (first, second):
        catalog.ensure_horizon(NOW)
        catalog.seed_demo_data(NOW)

    def fingerprint(storage: StorageBundle) -> list[tuple[str, str]]:
        return sorted((b.user_id, str(b.slot_id)) for b in storage.ledger.list_bookings())

    assert fingerprint(first_storage) == fingerprint(second_storage)


def test_seed_demo_data_skips_populated_directory() -> None:
    catalog, storage = _build_catalog()
    catalog.ensure_horizon(NOW)
    catalog.seed_demo_data(NOW)
    before = len(storage.ledger.list_bookings())

    assert catalog.seed_demo_data(NOW) == 0
    assert len(storage.ledger.list_bookings()) == before
