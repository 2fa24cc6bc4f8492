"""In-process store implementations.

Each instance owns its state; nothing lives at module level, so separate
service compositions (and separate tests) never share slots or bookings.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from threading import RLock
from typing import Any, Iterable, Iterator, Optional, Sequence
from uuid import uuid4

from gym_booking.domain.models import AuditAction, AuditEvent, Booking, GymUser, Slot, SlotId
from gym_booking.repository.base import (
    AlreadyBookedError,
    AuditLog,
    BookingLedger,
    BookingNotFoundError,
    CapacityExceededError,
    NotBookedError,
    SlotNotFoundError,
    SlotStore,
    StoreSession,
    UnitOfWork,
    UserDirectory,
)


@dataclass
class _SlotState:
    capacity: int
    bookers: set[str] = field(default_factory=set)

    def snapshot(self, slot_id: SlotId) -> Slot:
        return Slot(slot_id=slot_id, capacity=self.capacity, bookers=frozenset(self.bookers))


class InMemorySlotStore(SlotStore):
    def __init__(self) -> None:
        self._lock = RLock()
        self._slots: dict[SlotId, _SlotState] = {}

    def add_slots(self, slots: Iterable[Slot]) -> int:
        added = 0
        with self._lock:
            for slot in slots:
                if slot.slot_id in self._slots:
                    continue
                if len(slot.bookers) > slot.capacity:
                    raise ValueError(f"slot {slot.slot_id} has more bookers than capacity")
                self._slots[slot.slot_id] = _SlotState(
                    capacity=slot.capacity,
                    bookers=set(slot.bookers),
                )
                added += 1
        return added

    def list_slots(self, date_from: date, date_to: date) -> list[Slot]:
        with self._lock:
            return [
                self._slots[slot_id].snapshot(slot_id)
                for slot_id in sorted(self._slots)
                if date_from <= slot_id.date <= date_to
            ]

    def get_slot(self, slot_id: SlotId) -> Optional[Slot]:
        with self._lock:
            state = self._slots.get(slot_id)
            return state.snapshot(slot_id) if state is not None else None

    def reserve(self, slot_id: SlotId, user_id: str) -> Slot:
        with self._lock:
            state = self._slots.get(slot_id)
            if state is None:
                raise SlotNotFoundError(f"Slot {slot_id} does not exist")
            if user_id in state.bookers:
                raise AlreadyBookedError(f"User {user_id} already booked slot {slot_id}")
            if len(state.bookers) >= state.capacity:
                raise CapacityExceededError(f"Slot {slot_id} is full")
            state.bookers.add(user_id)
            return state.snapshot(slot_id)

    def release(self, slot_id: SlotId, user_id: str) -> Slot:
        with self._lock:
            state = self._slots.get(slot_id)
            if state is None:
                raise SlotNotFoundError(f"Slot {slot_id} does not exist")
            if user_id not in state.bookers:
                raise NotBookedError(f"User {user_id} is not booked into slot {slot_id}")
            state.bookers.discard(user_id)
            return state.snapshot(slot_id)

    def checkpoint(self) -> dict[SlotId, tuple[int, frozenset[str]]]:
        with self._lock:
            return {
                slot_id: (state.capacity, frozenset(state.bookers))
                for slot_id, state in self._slots.items()
            }

    def restore(self, saved: dict[SlotId, tuple[int, frozenset[str]]]) -> None:
        with self._lock:
            self._slots = {
                slot_id: _SlotState(capacity=capacity, bookers=set(bookers))
                for slot_id, (capacity, bookers) in saved.items()
            }


class InMemoryBookingLedger(BookingLedger):
    def __init__(self) -> None:
        self._lock = RLock()
        self._bookings: dict[str, Booking] = {}

    def record_booking(self, user_id: str, slot_id: SlotId, timestamp: datetime) -> str:
        booking = Booking(
            booking_id=f"booking-{uuid4().hex}",
            user_id=user_id,
            slot_id=slot_id,
            created_at=timestamp,
        )
        with self._lock:
            self._bookings[booking.booking_id] = booking
        return booking.booking_id

    def remove_booking(self, booking_id: str) -> Booking:
        with self._lock:
            booking = self._bookings.pop(booking_id, None)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} does not exist")
        return booking

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            return self._bookings.get(booking_id)

    def bookings_for_user(self, user_id: str) -> list[Booking]:
        with self._lock:
            return [booking for booking in self._bookings.values() if booking.user_id == user_id]

    def list_bookings(self) -> list[Booking]:
        with self._lock:
            return list(self._bookings.values())

    def checkpoint(self) -> dict[str, Booking]:
        with self._lock:
            return dict(self._bookings)

    def restore(self, saved: dict[str, Booking]) -> None:
        with self._lock:
            self._bookings = dict(saved)


class InMemoryAuditLog(AuditLog):
    def __init__(self) -> None:
        self._lock = RLock()
        self._events: list[AuditEvent] = []
        self._last_id = 0

    def append(
        self,
        actor_id: str,
        action: AuditAction,
        detail: str,
        timestamp: datetime,
    ) -> AuditEvent:
        with self._lock:
            self._last_id += 1
            event = AuditEvent(
                event_id=f"log-{self._last_id}",
                actor_id=actor_id,
                action=action,
                detail=detail,
                timestamp=timestamp,
            )
            self._events.append(event)
        return event

    def _filtered(self, action: Optional[AuditAction]) -> list[AuditEvent]:
        if action is None:
            return list(self._events)
        return [event for event in self._events if event.action is action]

    def list_events(
        self,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
        action: Optional[AuditAction] = None,
    ) -> list[AuditEvent]:
        # newest first by insertion order
        with self._lock:
            events = list(reversed(self._filtered(action)))
        end = None if limit is None else offset + limit
        return events[offset:end]

    def count_events(self, action: Optional[AuditAction] = None) -> int:
        with self._lock:
            return len(self._filtered(action))

    def checkpoint(self) -> tuple[int, int]:
        with self._lock:
            return len(self._events), self._last_id

    def restore(self, saved: tuple[int, int]) -> None:
        with self._lock:
            length, self._last_id = saved
            del self._events[length:]


class InMemoryUserDirectory(UserDirectory):
    def __init__(self) -> None:
        self._lock = RLock()
        self._users: dict[str, GymUser] = {}

    def upsert_users(self, users: Sequence[GymUser]) -> None:
        with self._lock:
            for user in users:
                self._users[user.user_id] = user

    def get_user(self, user_id: str) -> Optional[GymUser]:
        with self._lock:
            return self._users.get(user_id)

    def list_users(self) -> list[GymUser]:
        with self._lock:
            return sorted(self._users.values(), key=lambda user: user.user_id)


class InProcessUnitOfWork(UnitOfWork):
    """Runs sessions over the in-process stores one at a time.

    The stores stay locked for the whole session. Their state is checkpointed
    when the session opens and restored if an exception escapes it, so a
    session commits all of its writes or none of them.
    """

    def __init__(self, slots: SlotStore, ledger: BookingLedger, audit_log: AuditLog) -> None:
        stores = (slots, ledger, audit_log)
        expected = (InMemorySlotStore, InMemoryBookingLedger, InMemoryAuditLog)
        if not all(isinstance(store, kind) for store, kind in zip(stores, expected)):
            raise TypeError(
                "InProcessUnitOfWork needs the in-memory stores; "
                "pass the storage bundle's unit_of_work for other backends"
            )
        self._lock = RLock()
        self._slots = slots
        self._ledger = ledger
        self._audit_log = audit_log
        self._session = StoreSession(slots=slots, ledger=ledger, audit_log=audit_log)

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        stores: tuple[Any, ...] = (self._slots, self._ledger, self._audit_log)
        with self._lock, self._slots._lock, self._ledger._lock, self._audit_log._lock:
            saved = [store.checkpoint() for store in stores]
            try:
                yield self._session
            except BaseException:
                for store, state in zip(stores, saved):
                    store.restore(state)
                raise
