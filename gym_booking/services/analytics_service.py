"""Read-only usage analytics and audit log browsing for administrators."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import numpy as np
import pandas as pd

from gym_booking.domain.calendar import week_window
from gym_booking.domain.models import AuditAction
from gym_booking.repository.base import AuditLog, BookingLedger, UserDirectory
from gym_booking.utils.config import Settings, get_settings
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)

GENDERS = ("male", "female", "other")
UNKNOWN = "Unknown"


class AnalyticsValidationError(Exception):
    """Raised when paging or filter arguments are invalid."""


@dataclass(frozen=True)
class AuditLogPage:
    logs: list[dict[str, Any]]
    total_count: int
    page: int
    total_pages: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": self.logs,
            "total_count": self.total_count,
            "page": self.page,
            "total_pages": self.total_pages,
        }


class AnalyticsService:
    """Aggregates ledger, slot and directory data without mutating anything."""

    def __init__(
        self,
        ledger: BookingLedger,
        audit_log: AuditLog,
        user_directory: UserDirectory,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._ledger = ledger
        self._audit_log = audit_log
        self._users = user_directory

    def _bookings_frame(self) -> pd.DataFrame:
        bookings = self._ledger.list_bookings()
        frame = pd.DataFrame(
            [
                {
                    "user_id": booking.user_id,
                    "slot_date": booking.slot_id.date,
                    "hour": booking.slot_id.hour,
                }
                for booking in bookings
            ],
            columns=["user_id", "slot_date", "hour"],
        )
        frame["slot_date"] = pd.to_datetime(frame["slot_date"])
        users = pd.DataFrame(
            [
                {
                    "user_id": user.user_id,
                    "name": user.name,
                    "email": user.email,
                    "gender": user.gender,
                    "department": user.department,
                }
                for user in self._users.list_users()
            ],
            columns=["user_id", "name", "email", "gender", "department"],
        )
        return frame.merge(users, on="user_id", how="left")

    @staticmethod
    def _bookings_by_day_of_week(frame: pd.DataFrame) -> list[int]:
        if frame.empty:
            return [0] * 7
        # pandas: Monday == 0; report Sunday-first
        sunday_first = (frame["slot_date"].dt.dayofweek.to_numpy() + 1) % 7
        return np.bincount(sunday_first, minlength=7).astype(int).tolist()

    @staticmethod
    def _gender_distribution(frame: pd.DataFrame) -> dict[str, int]:
        distribution = {gender: 0 for gender in GENDERS}
        known = frame.dropna(subset=["gender"])
        for gender, count in known["gender"].value_counts().items():
            distribution[str(gender)] = int(count)
        return distribution

    @staticmethod
    def _department_distribution(frame: pd.DataFrame) -> dict[str, int]:
        known = frame.dropna(subset=["department"])
        counts = known["department"].value_counts().sort_index()
        return {str(department): int(count) for department, count in counts.items()}

    def _top_users(self, frame: pd.DataFrame) -> list[dict[str, Any]]:
        if frame.empty:
            return []
        # bookings by users missing from the directory are not ranked
        known = frame.dropna(subset=["name"])
        if known.empty:
            return []
        grouped = (
            known.groupby("user_id", sort=True)
            .agg(
                bookings_count=("user_id", "size"),
                name=("name", "first"),
                email=("email", "first"),
                department=("department", "first"),
            )
            .reset_index()
            .sort_values(["bookings_count", "user_id"], ascending=[False, True], kind="mergesort")
            .head(self._settings.analytics_top_users)
        )
        return [
            {
                "user_id": str(row.user_id),
                "name": str(row.name),
                "email": str(row.email),
                "department": str(row.department),
                "bookings_count": int(row.bookings_count),
            }
            for row in grouped.itertuples(index=False)
        ]

    def usage_stats(self, now: datetime) -> dict[str, Any]:
        frame = self._bookings_frame()
        week_start, week_end = week_window(now)
        in_week = frame[
            (frame["slot_date"] >= pd.Timestamp(week_start))
            & (frame["slot_date"] <= pd.Timestamp(week_end))
        ]
        stats = {
            "total_bookings": int(len(frame)),
            "bookings_by_day_of_week": self._bookings_by_day_of_week(frame),
            "gender_distribution": self._gender_distribution(frame),
            "department_distribution": self._department_distribution(frame),
            "top_users": self._top_users(frame),
            "active_users": int(in_week["user_id"].nunique()),
        }
        logger.info(
            "Usage stats computed | total_bookings=%s | active_users=%s",
            stats["total_bookings"],
            stats["active_users"],
        )
        return stats

    def audit_log_page(
        self,
        *,
        page: int = 1,
        limit: Optional[int] = None,
        action: Optional[AuditAction] = None,
    ) -> AuditLogPage:
        if page < 1:
            raise AnalyticsValidationError("page must be >= 1")
        resolved_limit = limit if limit is not None else self._settings.audit_page_size_default
        if resolved_limit < 1:
            raise AnalyticsValidationError("limit must be >= 1")
        resolved_limit = min(resolved_limit, self._settings.audit_page_size_max)

        total_count = self._audit_log.count_events(action)
        events = self._audit_log.list_events(
            offset=(page - 1) * resolved_limit,
            limit=resolved_limit,
            action=action,
        )
        rows: list[dict[str, Any]] = []
        for event in events:
            user = self._users.get_user(event.actor_id)
            rows.append(
                {
                    "id": event.event_id,
                    "user_id": event.actor_id,
                    "user_name": user.name if user else UNKNOWN,
                    "user_email": user.email if user else UNKNOWN,
                    "action": event.action.value,
                    "details": event.detail,
                    "timestamp": event.timestamp.isoformat(),
                }
            )
        return AuditLogPage(
            logs=rows,
            total_count=total_count,
            page=page,
            total_pages=math.ceil(total_count / resolved_limit),
        )
