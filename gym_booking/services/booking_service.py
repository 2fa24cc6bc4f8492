"""Booking orchestration: the only writer of slots and bookings.

Each attempt moves ``Requested -> Validating -> Committed | Rejected``.
Every attempt runs in one store session under the service lock. Eligibility
is re-evaluated through that session, and the slot store re-checks capacity
and membership inside ``reserve`` as well. On SQLite the session is a single
``BEGIN IMMEDIATE`` transaction, so the check and the writes commit together
across processes. Any exception escaping a session discards all of its writes.
"""

from __future__ import annotations

from datetime import date, datetime
from threading import RLock
from typing import Optional

from gym_booking.domain.models import (
    AttemptState,
    AuditAction,
    AuditEvent,
    Booking,
    BookingOutcome,
    EligibilityResult,
    RuleViolation,
    Slot,
    SlotId,
    StoreFailure,
    UserBooking,
)
from gym_booking.repository.base import (
    AlreadyBookedError,
    AuditLog,
    BookingLedger,
    CapacityExceededError,
    NotBookedError,
    SlotNotFoundError,
    SlotStore,
    UnitOfWork,
)
from gym_booking.repository.memory_repository import InProcessUnitOfWork
from gym_booking.services.eligibility_service import EligibilityService
from gym_booking.utils.config import Settings, get_settings
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)


class BookingValidationError(Exception):
    """Raised when a caller passes malformed input (not a business rule)."""


_SESSION_DETAILS = {
    AuditAction.LOGIN: "User logged in",
    AuditAction.LOGOUT: "User logged out",
}


def _rejected(
    *,
    violation: Optional[RuleViolation] = None,
    failure: Optional[StoreFailure] = None,
    booking_id: Optional[str] = None,
) -> BookingOutcome:
    return BookingOutcome(
        state=AttemptState.REJECTED,
        booking_id=booking_id,
        violation=violation,
        failure=failure,
    )


class BookingService:
    """Validates and commits reservations and cancellations atomically."""

    def __init__(
        self,
        slot_store: SlotStore,
        ledger: BookingLedger,
        audit_log: AuditLog,
        eligibility_service: Optional[EligibilityService] = None,
        settings: Optional[Settings] = None,
        unit_of_work: Optional[UnitOfWork] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._slot_store = slot_store
        self._ledger = ledger
        self._audit_log = audit_log
        self._unit_of_work = unit_of_work or InProcessUnitOfWork(slot_store, ledger, audit_log)
        self._eligibility = eligibility_service or EligibilityService(
            slot_store=slot_store,
            ledger=ledger,
            settings=self._settings,
        )
        self._lock = RLock()

    @property
    def eligibility(self) -> EligibilityService:
        return self._eligibility

    # ------------------------------------------------------------ read views

    def list_slots(
        self,
        date_from: date,
        date_to: date,
        *,
        available_only: bool = False,
    ) -> list[Slot]:
        if date_to < date_from:
            raise BookingValidationError("date_to must not be before date_from")
        slots = self._slot_store.list_slots(date_from, date_to)
        if available_only:
            return [slot for slot in slots if not slot.is_full]
        return slots

    def get_slot(self, slot_id: SlotId) -> Optional[Slot]:
        return self._slot_store.get_slot(slot_id)

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._ledger.get_booking(booking_id)

    def bookings_for_user(self, user_id: str) -> list[UserBooking]:
        return self._eligibility.user_bookings(user_id)

    def can_book(self, user_id: str, slot_id: SlotId, now: datetime) -> EligibilityResult:
        return self._eligibility.can_book(user_id, slot_id, now)

    # ------------------------------------------------------------- mutations

    def _transition(self, state: AttemptState, operation: str, subject: object) -> None:
        logger.debug(
            "Attempt state | operation=%s | subject=%s | state=%s",
            operation,
            subject,
            state.value,
        )

    def book(self, user_id: str, slot_id: SlotId, now: datetime) -> BookingOutcome:
        self._transition(AttemptState.REQUESTED, "book", slot_id)
        with self._lock, self._unit_of_work.session() as session:
            self._transition(AttemptState.VALIDATING, "book", slot_id)
            eligibility = self._eligibility.can_book(user_id, slot_id, now, session=session)
            if not eligibility.eligible:
                self._transition(AttemptState.REJECTED, "book", slot_id)
                logger.info(
                    "Booking rejected | user_id=%s | slot_id=%s | reason=%s",
                    user_id,
                    slot_id,
                    eligibility.reason.value if eligibility.reason else None,
                )
                return _rejected(violation=eligibility.reason)

            try:
                session.slots.reserve(slot_id, user_id)
            except SlotNotFoundError:
                return self._store_rejection("book", user_id, slot_id, StoreFailure.NOT_FOUND)
            except AlreadyBookedError:
                return self._store_rejection("book", user_id, slot_id, StoreFailure.ALREADY_BOOKED)
            except CapacityExceededError:
                return self._store_rejection("book", user_id, slot_id, StoreFailure.CAPACITY_EXCEEDED)

            booking_id: Optional[str] = None
            try:
                booking_id = session.ledger.record_booking(user_id, slot_id, now)
                session.audit_log.append(
                    actor_id=user_id,
                    action=AuditAction.BOOKING_CREATED,
                    detail=f"Booking created for slot {slot_id}",
                    timestamp=now,
                )
            except Exception:
                logger.exception(
                    "Booking commit failed; rolling back | user_id=%s | slot_id=%s",
                    user_id,
                    slot_id,
                )
                raise

        self._transition(AttemptState.COMMITTED, "book", slot_id)
        logger.info(
            "Booking committed | user_id=%s | slot_id=%s | booking_id=%s",
            user_id,
            slot_id,
            booking_id,
        )
        return BookingOutcome(state=AttemptState.COMMITTED, booking_id=booking_id)

    def cancel(
        self,
        booking_id: str,
        now: datetime,
        *,
        actor_id: Optional[str] = None,
    ) -> BookingOutcome:
        """Release the slot and drop the booking as one unit.

        ``actor_id`` defaults to the booking owner. When somebody else cancels
        (an administrator), an extra ``admin_action`` event records who did it
        and is committed or rolled back together with the cancellation.
        """
        self._transition(AttemptState.REQUESTED, "cancel", booking_id)
        with self._lock, self._unit_of_work.session() as session:
            self._transition(AttemptState.VALIDATING, "cancel", booking_id)
            booking = session.ledger.get_booking(booking_id)
            if booking is None:
                return self._store_rejection("cancel", actor_id, booking_id, StoreFailure.NOT_FOUND)

            try:
                session.slots.release(booking.slot_id, booking.user_id)
            except SlotNotFoundError:
                return self._store_rejection("cancel", actor_id, booking_id, StoreFailure.NOT_FOUND)
            except NotBookedError:
                return self._store_rejection("cancel", actor_id, booking_id, StoreFailure.NOT_BOOKED)

            try:
                session.ledger.remove_booking(booking_id)
                session.audit_log.append(
                    actor_id=booking.user_id,
                    action=AuditAction.BOOKING_CANCELLED,
                    detail=f"Booking {booking_id} cancelled for slot {booking.slot_id}",
                    timestamp=now,
                )
                if actor_id is not None and actor_id != booking.user_id:
                    session.audit_log.append(
                        actor_id=actor_id,
                        action=AuditAction.ADMIN_ACTION,
                        detail=f"Cancelled booking {booking_id} on behalf of {booking.user_id}",
                        timestamp=now,
                    )
            except Exception:
                logger.exception("Cancellation commit failed; rolling back | booking_id=%s", booking_id)
                raise

        self._transition(AttemptState.COMMITTED, "cancel", booking_id)
        logger.info(
            "Booking cancelled | booking_id=%s | user_id=%s | slot_id=%s",
            booking_id,
            booking.user_id,
            booking.slot_id,
        )
        return BookingOutcome(state=AttemptState.COMMITTED, booking_id=booking_id)

    def record_session_event(self, user_id: str, action: AuditAction, now: datetime) -> AuditEvent:
        """Append a login/logout event reported by the identity provider."""
        detail = _SESSION_DETAILS.get(action)
        if detail is None:
            raise BookingValidationError(f"{action.value} is not a session event")
        return self._audit_log.append(
            actor_id=user_id,
            action=action,
            detail=detail,
            timestamp=now,
        )

    def _store_rejection(
        self,
        operation: str,
        user_id: Optional[str],
        subject: object,
        failure: StoreFailure,
    ) -> BookingOutcome:
        self._transition(AttemptState.REJECTED, operation, subject)
        logger.warning(
            "Store rejected %s | user_id=%s | subject=%s | failure=%s",
            operation,
            user_id,
            subject,
            failure.value,
        )
        booking_id = subject if operation == "cancel" else None
        return _rejected(failure=failure, booking_id=booking_id)
