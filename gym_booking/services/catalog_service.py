"""Slot catalog generation and deterministic demo data seeding."""

from __future__ import annotations

import random
from datetime import date, datetime, timedelta
from typing import Optional

from gym_booking.domain.calendar import date_range, reference_date
from gym_booking.domain.constraints import CatalogConfig, validate_catalog_config
from gym_booking.domain.models import AuditAction, GymUser, Slot, SlotId
from gym_booking.repository.base import SlotStore, UserDirectory
from gym_booking.services.booking_service import BookingService
from gym_booking.utils.config import Settings, get_settings
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)

DEMO_DEPARTMENTS = ("Engineering", "Marketing", "HR", "Finance", "Sales", "Product", "Design")


def catalog_from_settings(settings: Settings) -> CatalogConfig:
    return CatalogConfig(
        slot_capacity=settings.slot_capacity,
        horizon_days=settings.slot_horizon_days,
        first_hour=settings.slot_first_hour,
        last_hour=settings.slot_last_hour,
        blocked_hours=tuple(settings.slot_blocked_hours),
    )


def build_slots(today: date, config: CatalogConfig) -> list[Slot]:
    """Empty slots for ``today+1 .. today+horizon`` over every bookable hour."""
    days = date_range(today + timedelta(days=1), today + timedelta(days=config.horizon_days))
    return [
        Slot(slot_id=SlotId(date=day, hour=hour), capacity=config.slot_capacity)
        for day in days
        for hour in config.bookable_hours
    ]


def build_demo_users(count: int) -> list[GymUser]:
    users: list[GymUser] = []
    for index in range(1, count + 1):
        if index % 3 == 0:
            gender = "female"
        elif index % 5 == 0:
            gender = "other"
        else:
            gender = "male"
        users.append(
            GymUser(
                user_id=f"user-{index}",
                email=f"employee{index}@company.com",
                name=f"Employee {index}",
                gender=gender,
                department=DEMO_DEPARTMENTS[index % len(DEMO_DEPARTMENTS)],
            )
        )
    return users


class CatalogService:
    """Keeps the rolling slot horizon populated and seeds demo activity."""

    def __init__(
        self,
        slot_store: SlotStore,
        user_directory: UserDirectory,
        booking_service: BookingService,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._slot_store = slot_store
        self._users = user_directory
        self._booking_service = booking_service
        self._config = catalog_from_settings(self._settings)
        validate_catalog_config(self._config)

    @property
    def config(self) -> CatalogConfig:
        return self._config

    def ensure_horizon(self, now: datetime | date) -> int:
        """Create missing slots up to the horizon. Existing slots are untouched."""
        today = reference_date(now)
        added = self._slot_store.add_slots(build_slots(today, self._config))
        logger.info(
            "Slot horizon ensured | from=%s | days=%s | added=%s",
            today + timedelta(days=1),
            self._config.horizon_days,
            added,
        )
        return added

    def seed_demo_data(self, now: datetime) -> int:
        """Seed demo users and booking activity when the directory is empty.

        Bookings go through the orchestrator, so the seeded state obeys every
        rule and store invariant. Returns the number of committed bookings.
        """
        if self._users.list_users():
            logger.info("Demo data already present; skipping seed")
            return 0

        users = build_demo_users(self._settings.synthetic_user_count)
        self._users.upsert_users(users)
        for user in users:
            self._booking_service.record_session_event(user.user_id, AuditAction.LOGIN, now)

        today = reference_date(now)
        slots = self._slot_store.list_slots(
            today + timedelta(days=1),
            today + timedelta(days=self._config.horizon_days),
        )
        if not slots or not users:
            return 0

        rng = random.Random(self._settings.synthetic_random_seed)
        committed = 0
        for _ in range(self._settings.synthetic_booking_attempts):
            user = rng.choice(users)
            slot = rng.choice(slots)
            outcome = self._booking_service.book(user.user_id, slot.slot_id, now)
            if outcome.succeeded:
                committed += 1

        logger.info(
            "Demo seed completed | users=%s | attempts=%s | bookings=%s",
            len(users),
            self._settings.synthetic_booking_attempts,
            committed,
        )
        return committed
