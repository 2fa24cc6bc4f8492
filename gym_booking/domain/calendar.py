"""Calendar-date helpers shared by the eligibility engine and reporting.

All comparisons are by calendar date. A slot's time of day lives only in its
``hour`` field, so none of these helpers look at wall-clock time beyond the
date of the reference instant.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta


def reference_date(reference_now: datetime | date) -> date:
    """Start-of-day of the reference instant, as a calendar date."""
    if isinstance(reference_now, datetime):
        return reference_now.date()
    return reference_now


def days_since_sunday(day: date) -> int:
    # date.weekday(): Monday == 0 ... Sunday == 6
    return (day.weekday() + 1) % 7


def week_window(reference_now: datetime | date) -> tuple[date, date]:
    """Sunday-start, 7-day window containing the reference date (inclusive)."""
    today = reference_date(reference_now)
    start = today - timedelta(days=days_since_sunday(today))
    return start, start + timedelta(days=6)


def meets_lead_time(
    slot_date: date,
    reference_now: datetime | date,
    min_lead_days: int,
) -> bool:
    """True when the slot date is at least ``min_lead_days`` after today."""
    earliest = reference_date(reference_now) + timedelta(days=min_lead_days)
    return slot_date >= earliest


def date_range(start: date, end: date) -> list[date]:
    if end < start:
        return []
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]
