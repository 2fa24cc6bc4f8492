from __future__ import annotations

from datetime import date, datetime

import pytest

from gym_booking.domain.constraints import BookingRules
from gym_booking.domain.models import RuleViolation, Slot, SlotId
from gym_booking.repository.base import LedgerIntegrityError
from gym_booking.repository.memory_repository import InMemoryBookingLedger, InMemorySlotStore
from gym_booking.services.eligibility_service import EligibilityService


# 2026-03-01 is a Sunday; the reference week runs 2026-03-01 .. 2026-03-07.
NOW = datetime(2026, 3, 1, 9, 0)
DEFAULT_RULES = BookingRules(
    min_lead_days=1,
    max_sessions_per_day=2,
    max_sessions_per_week=3,
    adjacent_hour_gap=1,
)


def _slot_id(day: int, hour: int, month: int = 3) -> SlotId:
    return SlotId(date=date(2026, month, day), hour=hour)


def _build_service(
    rules: BookingRules = DEFAULT_RULES,
    capacity: int = 50,
) -> tuple[EligibilityService, InMemorySlotStore, InMemoryBookingLedger]:
    slots = InMemorySlotStore()
    ledger = InMemoryBookingLedger()
    slots.add_slots(
        Slot(slot_id=_slot_id(day, hour), capacity=capacity)
        for day in range(1, 32)
        for hour in range(8, 21)
    )
    return EligibilityService(slot_store=slots, ledger=ledger, rules=rules), slots, ledger


def _seed_booking(
    slots: InMemorySlotStore,
    ledger: InMemoryBookingLedger,
    user_id: str,
    slot_id: SlotId,
) -> str:
    slots.reserve(slot_id, user_id)
    return ledger.record_booking(user_id, slot_id, NOW)


def test_user_without_bookings_is_eligible() -> None:
    service, _, _ = _build_service()
    result = service.can_book("user-1", _slot_id(2, 9), NOW)
    assert result.eligible
    assert result.reason is None


def test_same_day_slot_fails_lead_time_even_at_midnight() -> None:
    service, _, _ = _build_service()
    result = service.can_book("user-1", _slot_id(2, 20), datetime(2026, 3, 2, 0, 0))
    assert not result.eligible
    assert result.reason is RuleViolation.INSUFFICIENT_LEAD_TIME


def test_next_day_slot_passes_lead_time_one_minute_before_midnight() -> None:
    service, _, _ = _build_service()
    result = service.can_book("user-1", _slot_id(2, 8), datetime(2026, 3, 1, 23, 59))
    assert result.eligible


def test_past_slot_fails_lead_time() -> None:
    service, _, _ = _build_service()
    result = service.can_book("user-1", _slot_id(1, 8), datetime(2026, 3, 5, 8, 0))
    assert result.reason is RuleViolation.INSUFFICIENT_LEAD_TIME


def test_third_session_on_a_day_exceeds_daily_limit() -> None:
    service, slots, ledger = _build_service()
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 9))
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 15))

    result = service.can_book("user-1", _slot_id(3, 18), NOW)
    assert result.reason is RuleViolation.DAILY_LIMIT_EXCEEDED


def test_daily_limit_is_reported_before_adjacency() -> None:
    service, slots, ledger = _build_service()
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 9))
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 11))

    result = service.can_book("user-1", _slot_id(3, 10), NOW)
    assert result.reason is RuleViolation.DAILY_LIMIT_EXCEEDED


@pytest.mark.parametrize("hour", [8, 10])
def test_neighbouring_hours_conflict(hour: int) -> None:
    service, slots, ledger = _build_service()
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 9))

    result = service.can_book("user-1", _slot_id(3, hour), NOW)
    assert result.reason is RuleViolation.ADJACENT_SESSION_CONFLICT


def test_adjacency_between_two_bookings_with_a_higher_daily_cap() -> None:
    rules = BookingRules(
        min_lead_days=1,
        max_sessions_per_day=3,
        max_sessions_per_week=5,
        adjacent_hour_gap=1,
    )
    service, slots, ledger = _build_service(rules=rules)
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 9))
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 11))

    assert service.can_book("user-1", _slot_id(3, 10), NOW).reason is (
        RuleViolation.ADJACENT_SESSION_CONFLICT
    )
    assert service.can_book("user-1", _slot_id(3, 13), NOW).eligible


def test_adjacency_only_applies_within_the_same_date() -> None:
    """The first and last hours of neighbouring days never conflict."""
    service, slots, ledger = _build_service()
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 20))

    assert service.can_book("user-1", _slot_id(4, 8), NOW).eligible
    assert service.can_book("user-1", _slot_id(3, 8), NOW).eligible


def test_adjacent_gap_is_configurable() -> None:
    rules = BookingRules(
        min_lead_days=1,
        max_sessions_per_day=2,
        max_sessions_per_week=3,
        adjacent_hour_gap=12,
    )
    service, slots, ledger = _build_service(rules=rules)
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 8))

    assert service.can_book("user-1", _slot_id(3, 20), NOW).reason is (
        RuleViolation.ADJACENT_SESSION_CONFLICT
    )
    assert service.can_book("user-1", _slot_id(3, 19), NOW).eligible


def test_fourth_session_in_the_week_exceeds_weekly_limit() -> None:
    service, slots, ledger = _build_service()
    _seed_booking(slots, ledger, "user-1", _slot_id(2, 9))
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 9))
    _seed_booking(slots, ledger, "user-1", _slot_id(4, 9))

    result = service.can_book("user-1", _slot_id(5, 9), NOW)
    assert result.reason is RuleViolation.WEEKLY_LIMIT_EXCEEDED


def test_weekly_window_follows_the_reference_date_not_the_target() -> None:
    service, slots, ledger = _build_service()
    _seed_booking(slots, ledger, "user-1", _slot_id(9, 9))
    _seed_booking(slots, ledger, "user-1", _slot_id(10, 9))
    _seed_booking(slots, ledger, "user-1", _slot_id(11, 9))

    # All three bookings sit in the following week, outside NOW's window.
    assert service.can_book("user-1", _slot_id(12, 9), NOW).eligible
    # Once the clock reaches that week they count.
    later = datetime(2026, 3, 8, 9, 0)
    assert service.can_book("user-1", _slot_id(12, 9), later).reason is (
        RuleViolation.WEEKLY_LIMIT_EXCEEDED
    )


def test_missing_slot_is_unavailable() -> None:
    service, _, _ = _build_service()
    result = service.can_book("user-1", SlotId(date=date(2026, 4, 2), hour=9), NOW)
    assert result.reason is RuleViolation.SLOT_UNAVAILABLE


def test_full_slot_is_unavailable() -> None:
    service, slots, ledger = _build_service(capacity=1)
    _seed_booking(slots, ledger, "user-2", _slot_id(3, 9))

    result = service.can_book("user-1", _slot_id(3, 9), NOW)
    assert result.reason is RuleViolation.SLOT_UNAVAILABLE


def test_first_failing_rule_wins() -> None:
    service, _, _ = _build_service()
    # Missing and too soon: lead time is evaluated first.
    result = service.can_book("user-1", SlotId(date=date(2026, 3, 1), hour=6), NOW)
    assert result.reason is RuleViolation.INSUFFICIENT_LEAD_TIME


def test_other_users_bookings_do_not_count() -> None:
    service, slots, ledger = _build_service()
    _seed_booking(slots, ledger, "user-2", _slot_id(3, 9))
    _seed_booking(slots, ledger, "user-2", _slot_id(3, 15))

    assert service.can_book("user-1", _slot_id(3, 10), NOW).eligible


def test_can_book_does_not_mutate_stores() -> None:
    service, slots, ledger = _build_service()
    before = slots.get_slot(_slot_id(3, 9))
    service.can_book("user-1", _slot_id(3, 9), NOW)
    assert slots.get_slot(_slot_id(3, 9)) == before
    assert ledger.list_bookings() == []


def test_user_bookings_are_ordered_by_slot() -> None:
    service, slots, ledger = _build_service()
    _seed_booking(slots, ledger, "user-1", _slot_id(4, 15))
    _seed_booking(slots, ledger, "user-1", _slot_id(3, 18))
    _seed_booking(slots, ledger, "user-1", _slot_id(4, 9))

    joined = service.user_bookings("user-1")
    assert [item.slot.slot_id for item in joined] == [
        _slot_id(3, 18),
        _slot_id(4, 9),
        _slot_id(4, 15),
    ]


def test_booking_pointing_at_missing_slot_is_an_integrity_error() -> None:
    service, _, ledger = _build_service()
    ledger.record_booking("user-1", SlotId(date=date(2026, 5, 1), hour=9), NOW)

    with pytest.raises(LedgerIntegrityError):
        service.can_book("user-1", _slot_id(3, 9), NOW)


def test_invalid_rules_are_rejected_at_construction() -> None:
    with pytest.raises(ValueError):
        _build_service(
            rules=BookingRules(
                min_lead_days=1,
                max_sessions_per_day=0,
                max_sessions_per_week=3,
                adjacent_hour_gap=1,
            )
        )
