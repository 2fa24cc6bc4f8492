from __future__ import annotations

from datetime import date, datetime

import pytest

from gym_booking.domain.calendar import date_range, meets_lead_time, week_window
from gym_booking.domain.models import SlotId


# 2026-03-01 is a Sunday.

def test_week_window_starts_on_sunday_for_a_sunday() -> None:
    assert week_window(date(2026, 3, 1)) == (date(2026, 3, 1), date(2026, 3, 7))


def test_week_window_for_saturday_reaches_back_to_sunday() -> None:
    assert week_window(datetime(2026, 3, 7, 23, 59)) == (date(2026, 3, 1), date(2026, 3, 7))


def test_week_window_for_midweek_date() -> None:
    assert week_window(date(2026, 3, 4)) == (date(2026, 3, 1), date(2026, 3, 7))


def test_lead_time_uses_calendar_days_not_wall_clock() -> None:
    one_minute_before_midnight = datetime(2026, 3, 1, 23, 59)
    assert meets_lead_time(date(2026, 3, 2), one_minute_before_midnight, 1)


def test_lead_time_rejects_same_day() -> None:
    assert not meets_lead_time(date(2026, 3, 2), datetime(2026, 3, 2, 0, 0), 1)


def test_date_range_is_inclusive_and_empty_when_inverted() -> None:
    assert date_range(date(2026, 3, 1), date(2026, 3, 3)) == [
        date(2026, 3, 1),
        date(2026, 3, 2),
        date(2026, 3, 3),
    ]
    assert date_range(date(2026, 3, 3), date(2026, 3, 1)) == []


def test_slot_id_text_form() -> None:
    slot_id = SlotId(date=date(2026, 3, 2), hour=9)
    assert str(slot_id) == "slot-2026-03-02-9"
    assert SlotId.parse("slot-2026-03-02-9") == slot_id


def test_slot_ids_order_by_date_then_hour() -> None:
    ids = [
        SlotId(date(2026, 3, 3), 8),
        SlotId(date(2026, 3, 2), 20),
        SlotId(date(2026, 3, 2), 9),
    ]
    assert sorted(ids) == [
        SlotId(date(2026, 3, 2), 9),
        SlotId(date(2026, 3, 2), 20),
        SlotId(date(2026, 3, 3), 8),
    ]


@pytest.mark.parametrize(
    "value",
    ["2026-03-02-9", "slot-2026-03-02", "slot-2026-03-02-25", "slot-2026-13-02-9", "slot-x-9"],
)
def test_slot_id_parse_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValueError):
        SlotId.parse(value)
