#!/usr/bin/env python3
"""Validate local gym booking environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from gym_booking.domain.models import SlotId
from gym_booking.repository.storage import build_sqlite_storage
from gym_booking.services.booking_service import BookingService
from gym_booking.services.catalog_service import CatalogService
from gym_booking.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="gym-booking-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = ["fastapi", "uvicorn", "pydantic", "numpy", "pandas", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        settings = replace(
            get_settings(),
            storage_backend="sqlite",
            database_path=Path(temp_dir) / "gym_booking_validation.db",
        )
        now = datetime(2026, 3, 1, 9, 0)

        # CHECK 3: Database initialization
        try:
            storage = build_sqlite_storage(settings)
            ok, line = _print_result("Database initialization", True)
        except RuntimeError as exc:
            storage = None
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        if storage is not None:
            booking_service = BookingService(
                slot_store=storage.slots,
                ledger=storage.ledger,
                audit_log=storage.audit_log,
                settings=settings,
                unit_of_work=storage.unit_of_work,
            )
            catalog_service = CatalogService(
                slot_store=storage.slots,
                user_directory=storage.users,
                booking_service=booking_service,
                settings=settings,
            )

            # CHECK 4: Slot horizon generation
            expected = settings.slot_horizon_days * len(catalog_service.config.bookable_hours)
            added = catalog_service.ensure_horizon(now)
            ok, line = _print_result(
                f"Slot horizon: {expected} slots",
                added == expected,
                "" if added == expected else f"expected {expected}, got {added}",
            )
            results.append(line)
            all_passed = all_passed and ok

            # CHECK 5: Book and cancel round trip
            target = SlotId(date=now.date() + timedelta(days=2), hour=settings.slot_first_hour)
            booked = booking_service.book("validation-user", target, now)
            cancelled = (
                booking_service.cancel(str(booked.booking_id), now)
                if booked.succeeded
                else booked
            )
            slot = storage.slots.get_slot(target)
            round_trip_ok = (
                booked.succeeded
                and cancelled.succeeded
                and slot is not None
                and slot.occupancy == 0
            )
            ok, line = _print_result(
                "Booking round trip",
                round_trip_ok,
                "" if round_trip_ok else f"book={booked.reason_code} cancel={cancelled.reason_code}",
            )
            results.append(line)
            all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Gym Booking Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
