"""Domain models for gym slot booking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class RuleViolation(str, Enum):
    """Expected, user-facing reasons a booking is not allowed."""

    INSUFFICIENT_LEAD_TIME = "InsufficientLeadTime"
    DAILY_LIMIT_EXCEEDED = "DailyLimitExceeded"
    ADJACENT_SESSION_CONFLICT = "AdjacentSessionConflict"
    WEEKLY_LIMIT_EXCEEDED = "WeeklyLimitExceeded"
    SLOT_UNAVAILABLE = "SlotUnavailable"


class StoreFailure(str, Enum):
    """Store-level outcomes that signal a race or inconsistent state."""

    NOT_FOUND = "NotFound"
    ALREADY_BOOKED = "AlreadyBooked"
    NOT_BOOKED = "NotBooked"
    CAPACITY_EXCEEDED = "CapacityExceeded"


class AttemptState(str, Enum):
    REQUESTED = "requested"
    VALIDATING = "validating"
    COMMITTED = "committed"
    REJECTED = "rejected"


class AuditAction(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    BOOKING_CREATED = "booking_created"
    BOOKING_CANCELLED = "booking_cancelled"
    ADMIN_ACTION = "admin_action"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True, order=True)
class SlotId:
    """Slot identity. Ordering follows (date, hour)."""

    date: date
    hour: int

    _PREFIX = "slot-"

    def __str__(self) -> str:
        return f"{self._PREFIX}{self.date.isoformat()}-{self.hour}"

    @classmethod
    def parse(cls, value: str) -> "SlotId":
        """Parse ``slot-YYYY-MM-DD-H``; raises ``ValueError`` on bad input."""
        if not value.startswith(cls._PREFIX):
            raise ValueError(f"slot id must start with '{cls._PREFIX}': {value!r}")
        body = value[len(cls._PREFIX):]
        date_part, sep, hour_part = body.rpartition("-")
        if not sep or not hour_part.isdigit():
            raise ValueError(f"slot id must end with an hour: {value!r}")
        hour = int(hour_part)
        if not 0 <= hour <= 23:
            raise ValueError(f"slot hour must be between 0 and 23: {value!r}")
        return cls(date=date.fromisoformat(date_part), hour=hour)


@dataclass(frozen=True)
class Slot:
    """Read-only snapshot of a bookable slot."""

    slot_id: SlotId
    capacity: int
    bookers: frozenset[str] = frozenset()

    @property
    def date(self) -> date:
        return self.slot_id.date

    @property
    def hour(self) -> int:
        return self.slot_id.hour

    @property
    def occupancy(self) -> int:
        return len(self.bookers)

    @property
    def available_spots(self) -> int:
        return self.capacity - self.occupancy

    @property
    def is_full(self) -> bool:
        return self.occupancy >= self.capacity


@dataclass(frozen=True)
class Booking:
    booking_id: str
    user_id: str
    slot_id: SlotId
    created_at: datetime


@dataclass(frozen=True)
class UserBooking:
    """Booking joined with the slot it references."""

    booking: Booking
    slot: Slot


@dataclass(frozen=True)
class AuditEvent:
    event_id: str
    actor_id: str
    action: AuditAction
    detail: str
    timestamp: datetime


@dataclass(frozen=True)
class GymUser:
    user_id: str
    email: str
    name: str
    gender: str
    department: str


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: Optional[RuleViolation] = None

    @classmethod
    def allowed(cls) -> "EligibilityResult":
        return cls(eligible=True)

    @classmethod
    def denied(cls, reason: RuleViolation) -> "EligibilityResult":
        return cls(eligible=False, reason=reason)


@dataclass(frozen=True)
class BookingOutcome:
    """Terminal result of a book or cancel attempt."""

    state: AttemptState
    booking_id: Optional[str] = None
    violation: Optional[RuleViolation] = None
    failure: Optional[StoreFailure] = None

    @property
    def succeeded(self) -> bool:
        return self.state is AttemptState.COMMITTED

    @property
    def reason_code(self) -> Optional[str]:
        if self.violation is not None:
            return self.violation.value
        if self.failure is not None:
            return self.failure.value
        return None
