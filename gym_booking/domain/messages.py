"""Fixed user-facing strings for every booking outcome reason."""

from __future__ import annotations

from typing import Optional

from gym_booking.domain.models import BookingOutcome, RuleViolation, StoreFailure


RULE_VIOLATION_MESSAGES: dict[RuleViolation, str] = {
    RuleViolation.INSUFFICIENT_LEAD_TIME: "Bookings must be made at least 24 hours in advance",
    RuleViolation.DAILY_LIMIT_EXCEEDED: "Maximum 2 sessions per day allowed",
    RuleViolation.ADJACENT_SESSION_CONFLICT: "Cannot book consecutive sessions",
    RuleViolation.WEEKLY_LIMIT_EXCEEDED: "Maximum 3 sessions per week allowed",
    RuleViolation.SLOT_UNAVAILABLE: "No available spots in this slot",
}

STORE_FAILURE_MESSAGES: dict[StoreFailure, str] = {
    StoreFailure.NOT_FOUND: "Booking or slot not found",
    StoreFailure.ALREADY_BOOKED: "You have already booked this slot",
    StoreFailure.NOT_BOOKED: "You are not booked into this slot",
    StoreFailure.CAPACITY_EXCEEDED: "This slot was just filled by another booking",
}

BOOKING_SUCCESS_MESSAGE = "Booking successful"
CANCELLATION_SUCCESS_MESSAGE = "Booking cancelled successfully"


def violation_message(violation: RuleViolation) -> str:
    return RULE_VIOLATION_MESSAGES[violation]


def failure_message(failure: StoreFailure) -> str:
    return STORE_FAILURE_MESSAGES[failure]


def outcome_message(outcome: BookingOutcome, success_message: Optional[str] = None) -> str:
    if outcome.violation is not None:
        return violation_message(outcome.violation)
    if outcome.failure is not None:
        return failure_message(outcome.failure)
    return success_message or BOOKING_SUCCESS_MESSAGE
