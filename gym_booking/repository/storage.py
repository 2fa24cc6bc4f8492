"""Factory selecting the storage backend behind the store contracts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from gym_booking.repository.base import AuditLog, BookingLedger, SlotStore, UnitOfWork, UserDirectory
from gym_booking.repository.data_repository import DataRepository
from gym_booking.repository.memory_repository import (
    InMemoryAuditLog,
    InProcessUnitOfWork,
    InMemoryBookingLedger,
    InMemorySlotStore,
    InMemoryUserDirectory,
)
from gym_booking.utils.config import Settings, get_settings
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)

SUPPORTED_BACKENDS = ("memory", "sqlite")


@dataclass(frozen=True)
class StorageBundle:
    slots: SlotStore
    ledger: BookingLedger
    audit_log: AuditLog
    users: UserDirectory
    unit_of_work: UnitOfWork


def build_in_memory_storage() -> StorageBundle:
    slots = InMemorySlotStore()
    ledger = InMemoryBookingLedger()
    audit_log = InMemoryAuditLog()
    return StorageBundle(
        slots=slots,
        ledger=ledger,
        audit_log=audit_log,
        users=InMemoryUserDirectory(),
        unit_of_work=InProcessUnitOfWork(slots, ledger, audit_log),
    )


def build_sqlite_storage(settings: Settings) -> StorageBundle:
    repository = DataRepository(settings)
    repository.initialize_database()
    return StorageBundle(
        slots=repository,
        ledger=repository,
        audit_log=repository,
        users=repository,
        unit_of_work=repository,
    )


def build_storage(settings: Optional[Settings] = None) -> StorageBundle:
    resolved = settings or get_settings()
    backend = resolved.storage_backend.lower()
    if backend == "memory":
        logger.info("Using in-memory storage backend")
        return build_in_memory_storage()
    if backend == "sqlite":
        logger.info("Using SQLite storage backend | path=%s", resolved.database_path)
        return build_sqlite_storage(resolved)
    raise ValueError(
        f"Unsupported storage_backend {resolved.storage_backend!r}; "
        f"expected one of {', '.join(SUPPORTED_BACKENDS)}"
    )
