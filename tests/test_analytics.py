from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from gym_booking.domain.models import AuditAction, GymUser, Slot, SlotId
from gym_booking.repository.storage import StorageBundle, build_in_memory_storage
from gym_booking.services.analytics_service import AnalyticsService, AnalyticsValidationError
from gym_booking.utils.config import get_settings


# 2026-03-01 is a Sunday.
NOW = datetime(2026, 3, 1, 9, 0)


def _build_test_settings(**overrides):
    get_settings.cache_clear()
    return replace(get_settings(), **overrides)


def _book(storage: StorageBundle, user_id: str, day: date, hour: int) -> None:
    slot_id = SlotId(date=day, hour=hour)
    storage.slots.reserve(slot_id, user_id)
    storage.ledger.record_booking(user_id, slot_id, NOW)


def _build_analytics(**overrides) -> tuple[AnalyticsService, StorageBundle]:
    settings = _build_test_settings(**overrides)
    storage = build_in_memory_storage()
    storage.slots.add_slots(
        Slot(slot_id=SlotId(date=date(2026, 3, 1) + timedelta(days=offset), hour=hour), capacity=10)
        for offset in range(14)
        for hour in (9, 15)
    )
    storage.users.upsert_users(
        [
            GymUser("user-1", "employee1@company.com", "Employee 1", "male", "Sales"),
            GymUser("user-2", "employee2@company.com", "Employee 2", "female", "HR"),
            GymUser("user-3", "employee3@company.com", "Employee 3", "other", "HR"),
        ]
    )
    service = AnalyticsService(
        ledger=storage.ledger,
        audit_log=storage.audit_log,
        user_directory=storage.users,
        settings=settings,
    )
    return service, storage


def test_usage_stats_on_empty_ledger() -> None:
    service, _ = _build_analytics()
    stats = service.usage_stats(NOW)

    assert stats["total_bookings"] == 0
    assert stats["bookings_by_day_of_week"] == [0] * 7
    assert stats["gender_distribution"] == {"male": 0, "female": 0, "other": 0}
    assert stats["department_distribution"] == {}
    assert stats["top_users"] == []
    assert stats["active_users"] == 0


def test_usage_stats_aggregates_bookings() -> None:
    service, storage = _build_analytics()
    _book(storage, "user-1", date(2026, 3, 2), 9)   # Monday
    _book(storage, "user-1", date(2026, 3, 3), 9)   # Tuesday
    _book(storage, "user-1", date(2026, 3, 9), 15)  # next Monday
    _book(storage, "user-2", date(2026, 3, 7), 9)   # Saturday
    _book(storage, "user-3", date(2026, 3, 8), 15)  # next Sunday
    _book(storage, "ghost", date(2026, 3, 10), 9)   # not in the directory

    stats = service.usage_stats(NOW)

    assert stats["total_bookings"] == 6
    assert stats["bookings_by_day_of_week"] == [1, 2, 2, 0, 0, 0, 1]
    assert stats["gender_distribution"] == {"male": 3, "female": 1, "other": 1}
    assert stats["department_distribution"] == {"HR": 2, "Sales": 3}
    # Only user-1 and user-2 hold bookings in the week of 2026-03-01.
    assert stats["active_users"] == 2

    top = stats["top_users"]
    assert [row["user_id"] for row in top] == ["user-1", "user-2", "user-3"]
    assert top[0]["bookings_count"] == 3
    assert top[0]["name"] == "Employee 1"


def test_top_users_are_capped() -> None:
    service, storage = _build_analytics(analytics_top_users=2)
    _book(storage, "user-1", date(2026, 3, 2), 9)
    _book(storage, "user-2", date(2026, 3, 2), 9)
    _book(storage, "user-3", date(2026, 3, 2), 9)

    assert [row["user_id"] for row in service.usage_stats(NOW)["top_users"]] == [
        "user-1",
        "user-2",
    ]


def test_unknown_users_do_not_take_top_user_places() -> None:
    service, storage = _build_analytics(analytics_top_users=2)
    for offset in range(3):
        _book(storage, "ghost", date(2026, 3, 2) + timedelta(days=offset), 9)
    _book(storage, "user-2", date(2026, 3, 2), 9)
    _book(storage, "user-3", date(2026, 3, 2), 15)

    top = service.usage_stats(NOW)["top_users"]

    assert [row["user_id"] for row in top] == ["user-2", "user-3"]
    assert all(row["name"] != "Unknown" for row in top)


def _append_events(storage: StorageBundle, count: int) -> None:
    for index in range(count):
        storage.audit_log.append(
            actor_id="user-1" if index % 2 == 0 else "stranger",
            action=AuditAction.LOGIN if index % 2 == 0 else AuditAction.BOOKING_CREATED,
            detail=f"event {index}",
            timestamp=NOW + timedelta(minutes=index),
        )


def test_audit_log_page_is_newest_first_and_enriched() -> None:
    service, storage = _build_analytics()
    _append_events(storage, 5)

    page = service.audit_log_page(page=1, limit=2)

    assert page.total_count == 5
    assert page.total_pages == 3
    assert page.page == 1
    assert [row["details"] for row in page.logs] == ["event 4", "event 3"]
    assert page.logs[0]["user_name"] == "Employee 1"
    assert page.logs[0]["user_email"] == "employee1@company.com"
    assert page.logs[1]["user_name"] == "Unknown"
    assert page.logs[1]["action"] == "booking_created"

    last = service.audit_log_page(page=3, limit=2)
    assert [row["details"] for row in last.logs] == ["event 0"]


def test_audit_log_page_filters_by_action() -> None:
    service, storage = _build_analytics()
    _append_events(storage, 5)

    page = service.audit_log_page(action=AuditAction.LOGIN)

    assert page.total_count == 3
    assert page.total_pages == 1
    assert {row["action"] for row in page.logs} == {"login"}


def test_audit_log_page_clamps_limit() -> None:
    service, storage = _build_analytics(audit_page_size_max=3)
    _append_events(storage, 5)

    page = service.audit_log_page(limit=50)

    assert len(page.logs) == 3
    assert page.total_pages == 2


def test_empty_audit_log_has_zero_pages() -> None:
    service, _ = _build_analytics()
    page = service.audit_log_page()
    assert page.to_dict() == {"logs": [], "total_count": 0, "page": 1, "total_pages": 0}


@pytest.mark.parametrize("page, limit", [(0, 10), (1, 0)])
def test_invalid_paging_raises(page: int, limit: int) -> None:
    service, _ = _build_analytics()
    with pytest.raises(AnalyticsValidationError):
        service.audit_log_page(page=page, limit=limit)


def test_audit_log_page_handles_mixed_naive_and_aware_timestamps() -> None:
    service, storage = _build_analytics()
    storage.audit_log.append("user-1", AuditAction.LOGIN, "naive", NOW)
    storage.audit_log.append(
        "user-2", AuditAction.LOGIN, "aware", datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
    )
    storage.audit_log.append("user-3", AuditAction.LOGIN, "naive again", NOW + timedelta(minutes=1))

    page = service.audit_log_page(page=1, limit=10)

    assert page.total_count == 3
    assert [row["details"] for row in page.logs] == ["naive again", "aware", "naive"]
