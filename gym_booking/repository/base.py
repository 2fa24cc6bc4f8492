"""Storage contracts for slots, bookings, audit events and users.

The eligibility engine and reporting only read through these contracts. The
booking orchestrator is the single writer of slots and bookings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import ContextManager, Iterable, Optional, Sequence

from gym_booking.domain.models import AuditAction, AuditEvent, Booking, GymUser, Slot, SlotId


class StoreError(Exception):
    """Base class for expected store-level conditions."""


class SlotNotFoundError(StoreError):
    """Raised when a slot id does not exist."""


class BookingNotFoundError(StoreError):
    """Raised when a booking id does not exist."""


class AlreadyBookedError(StoreError):
    """Raised when a user is already in a slot's booker set."""


class NotBookedError(StoreError):
    """Raised when releasing a user that is not in the booker set."""


class CapacityExceededError(StoreError):
    """Raised when a slot has no free spot left."""


class LedgerIntegrityError(RuntimeError):
    """Raised when a booking references a slot that does not exist."""


class SlotStore(ABC):
    @abstractmethod
    def add_slots(self, slots: Iterable[Slot]) -> int:
        """Insert slots that do not exist yet; return how many were added."""

    @abstractmethod
    def list_slots(self, date_from: date, date_to: date) -> list[Slot]:
        """Slots dated within ``[date_from, date_to]`` ordered by (date, hour)."""

    @abstractmethod
    def get_slot(self, slot_id: SlotId) -> Optional[Slot]:
        ...

    @abstractmethod
    def reserve(self, slot_id: SlotId, user_id: str) -> Slot:
        """Atomically check capacity/membership and add ``user_id``."""

    @abstractmethod
    def release(self, slot_id: SlotId, user_id: str) -> Slot:
        """Atomically remove ``user_id`` from the booker set."""


class BookingLedger(ABC):
    @abstractmethod
    def record_booking(self, user_id: str, slot_id: SlotId, timestamp: datetime) -> str:
        ...

    @abstractmethod
    def remove_booking(self, booking_id: str) -> Booking:
        ...

    @abstractmethod
    def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    @abstractmethod
    def bookings_for_user(self, user_id: str) -> list[Booking]:
        ...

    @abstractmethod
    def list_bookings(self) -> list[Booking]:
        """Bulk read for reporting."""


class AuditLog(ABC):
    @abstractmethod
    def append(
        self,
        actor_id: str,
        action: AuditAction,
        detail: str,
        timestamp: datetime,
    ) -> AuditEvent:
        ...

    @abstractmethod
    def list_events(
        self,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
        action: Optional[AuditAction] = None,
    ) -> list[AuditEvent]:
        """Events newest first."""

    @abstractmethod
    def count_events(self, action: Optional[AuditAction] = None) -> int:
        ...


class UserDirectory(ABC):
    @abstractmethod
    def upsert_users(self, users: Sequence[GymUser]) -> None:
        ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[GymUser]:
        ...

    @abstractmethod
    def list_users(self) -> list[GymUser]:
        ...


@dataclass(frozen=True)
class StoreSession:
    """Stores bound to one unit of work.

    Every write made through these stores commits or rolls back together as
    the session closes.
    """

    slots: SlotStore
    ledger: BookingLedger
    audit_log: AuditLog


class UnitOfWork(ABC):
    @abstractmethod
    def session(self) -> ContextManager[StoreSession]:
        """Open a session; an exception escaping it discards every write made in it."""
