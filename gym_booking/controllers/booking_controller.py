"""HTTP controller layer for slot browsing, booking and cancellation."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from gym_booking.controllers.dependencies import (
    Clock,
    Identity,
    get_booking_service,
    get_app_settings,
    get_clock,
    get_identity,
)
from gym_booking.domain.messages import (
    BOOKING_SUCCESS_MESSAGE,
    CANCELLATION_SUCCESS_MESSAGE,
    failure_message,
    outcome_message,
    violation_message,
)
from gym_booking.domain.models import AuditAction, BookingOutcome, Slot, SlotId, StoreFailure
from gym_booking.services.booking_service import BookingService, BookingValidationError
from gym_booking.utils.config import Settings
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)
router = APIRouter(tags=["booking"])


def _parse_slot_id(value: str) -> SlotId:
    try:
        return SlotId.parse(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


class SlotResponse(BaseModel):
    slot_id: str
    date: date
    hour: int = Field(ge=0, le=23)
    capacity: int = Field(gt=0)
    occupancy: int = Field(ge=0)
    available_spots: int = Field(ge=0)

    @classmethod
    def from_slot(cls, slot: Slot) -> "SlotResponse":
        return cls(
            slot_id=str(slot.slot_id),
            date=slot.date,
            hour=slot.hour,
            capacity=slot.capacity,
            occupancy=slot.occupancy,
            available_spots=slot.available_spots,
        )


class SlotListResponse(BaseModel):
    slots: list[SlotResponse]


class EligibilityResponse(BaseModel):
    slot_id: str
    eligible: bool
    reason: Optional[str] = None
    message: Optional[str] = None


class CreateBookingRequest(BaseModel):
    slot_id: str = Field(min_length=1)

    @field_validator("slot_id")
    @classmethod
    def validate_slot_id(cls, value: str) -> str:
        SlotId.parse(value)
        return value


class BookingResultResponse(BaseModel):
    booking_id: str
    message: str


class UserBookingResponse(BaseModel):
    booking_id: str
    slot_id: str
    date: date
    hour: int = Field(ge=0, le=23)
    created_at: datetime


class UserBookingListResponse(BaseModel):
    bookings: list[UserBookingResponse]


class SessionEventResponse(BaseModel):
    event_id: str
    action: str


def _raise_for_outcome(outcome: BookingOutcome) -> None:
    detail = {"reason": outcome.reason_code, "message": outcome_message(outcome)}
    if outcome.failure is StoreFailure.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/slots", response_model=SlotListResponse, status_code=status.HTTP_200_OK)
async def list_slots(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    available_only: bool = Query(default=False),
    service: BookingService = Depends(get_booking_service),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_app_settings),
    _: Identity = Depends(get_identity),
) -> SlotListResponse:
    """List slots; the default window is tomorrow through the catalog horizon."""
    today = clock().date()
    try:
        slots = service.list_slots(
            date_from or today + timedelta(days=1),
            date_to or today + timedelta(days=settings.slot_horizon_days),
            available_only=available_only,
        )
        return SlotListResponse(slots=[SlotResponse.from_slot(slot) for slot in slots])
    except BookingValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected slot listing failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list slots",
        ) from exc


@router.get(
    "/slots/{slot_id}/eligibility",
    response_model=EligibilityResponse,
    status_code=status.HTTP_200_OK,
)
async def slot_eligibility(
    slot_id: str,
    service: BookingService = Depends(get_booking_service),
    clock: Clock = Depends(get_clock),
    identity: Identity = Depends(get_identity),
) -> EligibilityResponse:
    target = _parse_slot_id(slot_id)
    try:
        result = service.can_book(identity.user_id, target, clock())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected eligibility failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to evaluate eligibility",
        ) from exc
    return EligibilityResponse(
        slot_id=str(target),
        eligible=result.eligible,
        reason=result.reason.value if result.reason else None,
        message=violation_message(result.reason) if result.reason else None,
    )


@router.post(
    "/bookings",
    response_model=BookingResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    payload: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    clock: Clock = Depends(get_clock),
    identity: Identity = Depends(get_identity),
) -> BookingResultResponse:
    try:
        outcome = service.book(identity.user_id, SlotId.parse(payload.slot_id), clock())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc
    if not outcome.succeeded:
        _raise_for_outcome(outcome)
    return BookingResultResponse(
        booking_id=str(outcome.booking_id),
        message=BOOKING_SUCCESS_MESSAGE,
    )


@router.delete(
    "/bookings/{booking_id}",
    response_model=BookingResultResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_booking(
    booking_id: str,
    service: BookingService = Depends(get_booking_service),
    clock: Clock = Depends(get_clock),
    identity: Identity = Depends(get_identity),
) -> BookingResultResponse:
    booking = service.get_booking(booking_id)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "reason": StoreFailure.NOT_FOUND.value,
                "message": failure_message(StoreFailure.NOT_FOUND),
            },
        )
    if booking.user_id != identity.user_id and not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the booking owner or an administrator may cancel it",
        )
    try:
        outcome = service.cancel(booking_id, clock(), actor_id=identity.user_id)
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel booking",
        ) from exc
    if not outcome.succeeded:
        _raise_for_outcome(outcome)
    return BookingResultResponse(booking_id=booking_id, message=CANCELLATION_SUCCESS_MESSAGE)


@router.get("/me/bookings", response_model=UserBookingListResponse, status_code=status.HTTP_200_OK)
async def my_bookings(
    service: BookingService = Depends(get_booking_service),
    identity: Identity = Depends(get_identity),
) -> UserBookingListResponse:
    try:
        joined = service.bookings_for_user(identity.user_id)
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking history failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load bookings",
        ) from exc
    return UserBookingListResponse(
        bookings=[
            UserBookingResponse(
                booking_id=item.booking.booking_id,
                slot_id=str(item.slot.slot_id),
                date=item.slot.date,
                hour=item.slot.hour,
                created_at=item.booking.created_at,
            )
            for item in joined
        ]
    )


async def _record_session(
    action: AuditAction,
    service: BookingService,
    clock: Clock,
    identity: Identity,
) -> SessionEventResponse:
    event = service.record_session_event(identity.user_id, action, clock())
    return SessionEventResponse(event_id=event.event_id, action=event.action.value)


@router.post(
    "/session/login",
    response_model=SessionEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def session_login(
    service: BookingService = Depends(get_booking_service),
    clock: Clock = Depends(get_clock),
    identity: Identity = Depends(get_identity),
) -> SessionEventResponse:
    return await _record_session(AuditAction.LOGIN, service, clock, identity)


@router.post(
    "/session/logout",
    response_model=SessionEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def session_logout(
    service: BookingService = Depends(get_booking_service),
    clock: Clock = Depends(get_clock),
    identity: Identity = Depends(get_identity),
) -> SessionEventResponse:
    return await _record_session(AuditAction.LOGOUT, service, clock, identity)
