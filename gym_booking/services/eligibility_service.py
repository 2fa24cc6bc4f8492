"""Booking eligibility rules evaluated against read-only store views."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from gym_booking.domain.calendar import meets_lead_time, week_window
from gym_booking.domain.constraints import BookingRules, validate_booking_rules
from gym_booking.domain.models import EligibilityResult, RuleViolation, Slot, SlotId, UserBooking
from gym_booking.repository.base import BookingLedger, LedgerIntegrityError, SlotStore, StoreSession
from gym_booking.utils.config import Settings, get_settings
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)


def rules_from_settings(settings: Settings) -> BookingRules:
    return BookingRules(
        min_lead_days=settings.min_lead_days,
        max_sessions_per_day=settings.max_sessions_per_day,
        max_sessions_per_week=settings.max_sessions_per_week,
        adjacent_hour_gap=settings.adjacent_hour_gap,
    )


def evaluate_rules(
    *,
    target: SlotId,
    target_slot: Optional[Slot],
    existing: list[UserBooking],
    reference_now: datetime,
    rules: BookingRules,
) -> EligibilityResult:
    """Apply the rules in fixed order and return the first violation.

    ``existing`` is the user's current bookings joined with their slots.
    Rules 1-4 only need the target's identity, so a missing slot is reported
    by the last rule like any other unavailable slot.
    """
    if not meets_lead_time(target.date, reference_now, rules.min_lead_days):
        return EligibilityResult.denied(RuleViolation.INSUFFICIENT_LEAD_TIME)

    same_day = [item.slot for item in existing if item.slot.date == target.date]
    if len(same_day) >= rules.max_sessions_per_day:
        return EligibilityResult.denied(RuleViolation.DAILY_LIMIT_EXCEEDED)

    if any(abs(slot.hour - target.hour) == rules.adjacent_hour_gap for slot in same_day):
        return EligibilityResult.denied(RuleViolation.ADJACENT_SESSION_CONFLICT)

    week_start, week_end = week_window(reference_now)
    in_week = [item for item in existing if week_start <= item.slot.date <= week_end]
    if len(in_week) >= rules.max_sessions_per_week:
        return EligibilityResult.denied(RuleViolation.WEEKLY_LIMIT_EXCEEDED)

    if target_slot is None or target_slot.is_full:
        return EligibilityResult.denied(RuleViolation.SLOT_UNAVAILABLE)

    return EligibilityResult.allowed()


class EligibilityService:
    """Answers "may this user book this slot now?" without writing anything."""

    def __init__(
        self,
        slot_store: SlotStore,
        ledger: BookingLedger,
        settings: Optional[Settings] = None,
        rules: Optional[BookingRules] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._slot_store = slot_store
        self._ledger = ledger
        self._rules = rules or rules_from_settings(self._settings)
        validate_booking_rules(self._rules)

    @property
    def rules(self) -> BookingRules:
        return self._rules

    def _stores(self, session: Optional[StoreSession]) -> tuple[SlotStore, BookingLedger]:
        if session is None:
            return self._slot_store, self._ledger
        return session.slots, session.ledger

    def user_bookings(
        self,
        user_id: str,
        *,
        session: Optional[StoreSession] = None,
    ) -> list[UserBooking]:
        """Join the user's ledger entries with their slots, ordered by (date, hour).

        Reads go through ``session`` when one is given, so the orchestrator
        sees the state its own transaction will commit against.
        """
        slot_store, ledger = self._stores(session)
        joined: list[UserBooking] = []
        for booking in ledger.bookings_for_user(user_id):
            slot = slot_store.get_slot(booking.slot_id)
            if slot is None:
                raise LedgerIntegrityError(
                    f"Booking {booking.booking_id} references missing slot {booking.slot_id}"
                )
            joined.append(UserBooking(booking=booking, slot=slot))
        joined.sort(key=lambda item: item.slot.slot_id)
        return joined

    def can_book(
        self,
        user_id: str,
        slot_id: SlotId,
        reference_now: datetime,
        *,
        session: Optional[StoreSession] = None,
    ) -> EligibilityResult:
        slot_store, _ = self._stores(session)
        result = evaluate_rules(
            target=slot_id,
            target_slot=slot_store.get_slot(slot_id),
            existing=self.user_bookings(user_id, session=session),
            reference_now=reference_now,
            rules=self._rules,
        )
        logger.debug(
            "Eligibility evaluated | user_id=%s | slot_id=%s | eligible=%s | reason=%s",
            user_id,
            slot_id,
            result.eligible,
            result.reason.value if result.reason else None,
        )
        return result
