"""Controller layer for administrator analytics and audit endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from gym_booking.controllers.dependencies import (
    Clock,
    Identity,
    get_analytics_service,
    get_clock,
    require_admin,
)
from gym_booking.domain.models import AuditAction
from gym_booking.services.analytics_service import AnalyticsService, AnalyticsValidationError
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class TopUserRow(BaseModel):
    user_id: str
    name: str
    email: str
    department: str
    bookings_count: int = Field(ge=0)


class UsageStatsResponse(BaseModel):
    total_bookings: int = Field(ge=0)
    bookings_by_day_of_week: list[int] = Field(min_length=7, max_length=7)
    gender_distribution: dict[str, int]
    department_distribution: dict[str, int]
    top_users: list[TopUserRow]
    active_users: int = Field(ge=0)


class AuditLogRow(BaseModel):
    id: str
    user_id: str
    user_name: str
    user_email: str
    action: str
    details: str
    timestamp: str


class AuditLogPageResponse(BaseModel):
    logs: list[AuditLogRow]
    total_count: int = Field(ge=0)
    page: int = Field(ge=1)
    total_pages: int = Field(ge=0)


@router.get("/usage", response_model=UsageStatsResponse, status_code=status.HTTP_200_OK)
async def usage_stats(
    service: AnalyticsService = Depends(get_analytics_service),
    clock: Clock = Depends(get_clock),
    _: Identity = Depends(require_admin),
) -> UsageStatsResponse:
    try:
        return UsageStatsResponse(**service.usage_stats(clock()))
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected usage stats failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute usage statistics",
        ) from exc


@router.get(
    "/audit_logs",
    response_model=AuditLogPageResponse,
    status_code=status.HTTP_200_OK,
)
async def audit_logs(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    action: Optional[AuditAction] = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
    _: Identity = Depends(require_admin),
) -> AuditLogPageResponse:
    try:
        result = service.audit_log_page(page=page, limit=limit, action=action)
        return AuditLogPageResponse(**result.to_dict())
    except AnalyticsValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected audit log failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load audit logs",
        ) from exc
