# backend/gymbook/services/schedule_service.py
"""Read-only roster and schedule queries."""

from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.constants import MEMBER_HISTORY_LIMIT
from ..core.exceptions import ValidationException
from ..core.timeutils import parse_date_string
from ..models.attendance import Attendance
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .weekly_usage_service import WeeklyUsageService


def serialize_attendance(row: Attendance) -> Dict[str, Any]:
    return {
        "id": row.id,
        "class_id": row.class_id,
        "class_name": row.class_name,
        "instructor_name": row.instructor_name,
        "date_string": row.date_string,
        "class_time": row.class_time,
        "class_timestamp": row.class_timestamp,
        "member_id": row.member_id,
        "member_name": row.member_name,
        "member_photo": row.member_photo,
        "status": row.status,
        "booking_type": row.booking_type,
        "cost_used": row.cost_used,
        "booked_at": row.booked_at,
        "promoted_at": row.promoted_at,
        "cancelled_at": row.cancelled_at,
        "checked_in_at": row.checked_in_at,
        "refunded": row.refunded,
        "late_cancel": row.late_cancel,
    }


def _check_range(start: str, end: str) -> None:
    if parse_date_string(start) > parse_date_string(end):
        raise ValidationException("start date must not be after end date")


class ScheduleService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.attendance_repository = RepositoryFactory.create_attendance_repository(db)
        self.weekly_usage = WeeklyUsageService(db)

    @BaseService.measure_operation("get_class_roster")
    def get_class_roster(
        self, gym_id: str, class_id: str, date_string: str
    ) -> List[Dict[str, Any]]:
        parse_date_string(date_string)
        return [
            serialize_attendance(row)
            for row in self.attendance_repository.get_roster(class_id, date_string)
            if row.gym_id == gym_id
        ]

    @BaseService.measure_operation("get_member_attendance")
    def get_member_attendance(self, gym_id: str, member_id: str) -> List[Dict[str, Any]]:
        """Latest bookings for a member by class time, newest first."""
        rows = self.attendance_repository.get_member_history(
            gym_id, member_id, MEMBER_HISTORY_LIMIT
        )
        return [serialize_attendance(row) for row in rows]

    @BaseService.measure_operation("get_member_schedule")
    def get_member_schedule(
        self, gym_id: str, member_id: str, start: str, end: str
    ) -> Dict[str, Dict[str, str]]:
        """Map of ``"{class_id}_{date}"`` to the member's live booking in that session."""
        _check_range(start, end)
        rows = self.attendance_repository.get_member_range(gym_id, member_id, start, end)
        return {
            f"{row.class_id}_{row.date_string}": {"status": row.status, "id": row.id}
            for row in rows
        }

    @BaseService.measure_operation("get_weekly_attendance_counts")
    def get_weekly_attendance_counts(self, gym_id: str, start: str, end: str) -> Dict[str, int]:
        _check_range(start, end)
        return self.attendance_repository.active_counts_in_range(gym_id, start, end)

    def get_weekly_class_count(
        self, gym_id: str, member_id: str, date_string: str
    ) -> Dict[str, Any]:
        return self.weekly_usage.get_week_summary(gym_id, member_id, date_string)
