"""FastAPI application bootstrap and lifecycle wiring."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from gym_booking.controllers.admin_controller import router as admin_router
from gym_booking.controllers.booking_controller import router as booking_router
from gym_booking.controllers.dependencies import Clock, system_clock
from gym_booking.repository.storage import StorageBundle, build_storage
from gym_booking.services.analytics_service import AnalyticsService
from gym_booking.services.booking_service import BookingService
from gym_booking.services.catalog_service import CatalogService
from gym_booking.services.eligibility_service import EligibilityService
from gym_booking.utils.config import Settings, get_settings
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageBundle] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Build the app with every dependency wired explicitly through app.state."""
    settings = settings or get_settings()
    storage = storage or build_storage(settings)
    clock = clock or system_clock

    eligibility_service = EligibilityService(
        slot_store=storage.slots,
        ledger=storage.ledger,
        settings=settings,
    )
    booking_service = BookingService(
        slot_store=storage.slots,
        ledger=storage.ledger,
        audit_log=storage.audit_log,
        eligibility_service=eligibility_service,
        settings=settings,
        unit_of_work=storage.unit_of_work,
    )
    catalog_service = CatalogService(
        slot_store=storage.slots,
        user_directory=storage.users,
        booking_service=booking_service,
        settings=settings,
    )
    analytics_service = AnalyticsService(
        ledger=storage.ledger,
        audit_log=storage.audit_log,
        user_directory=storage.users,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.include_router(booking_router)
    app.include_router(admin_router)

    app.state.settings = settings
    app.state.storage = storage
    app.state.clock = clock
    app.state.eligibility_service = eligibility_service
    app.state.booking_service = booking_service
    app.state.catalog_service = catalog_service
    app.state.analytics_service = analytics_service

    return app


def startup(app: FastAPI) -> None:
    """Extend the slot horizon and, when enabled, seed demo activity.

    Safe to re-run: existing slots are kept and seeding skips a populated
    user directory.
    """
    settings: Settings = app.state.settings
    catalog_service: CatalogService = app.state.catalog_service
    now = app.state.clock()

    catalog_service.ensure_horizon(now)
    if settings.seed_demo_data:
        catalog_service.seed_demo_data(now)
    logger.info("System startup completed")


app = create_app()
