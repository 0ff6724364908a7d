# backend/gymbook/services/weekly_usage_service.py
"""
Weekly usage counter.

Tracks each member's active (booked/attended) bookings per gym and
Monday-Sunday week, so the weekly-limit check inside a booking reads one
locked row instead of querying the member's history. Every mutating method
must be called inside a transaction that already holds the member's row lock,
and before the attendance row's status changes: a missing counter is seeded
from the live count.
"""

from typing import Any, Dict

from sqlalchemy.orm import Session

from ..core.timeutils import get_week_range
from ..models.weekly_usage import MemberWeeklyUsage
from ..repositories.factory import RepositoryFactory
from .base import BaseService


class WeeklyUsageService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.usage_repository = RepositoryFactory.create_weekly_usage_repository(db)
        self.attendance_repository = RepositoryFactory.create_attendance_repository(db)

    def _counter(self, gym_id: str, member_id: str, date_string: str) -> MemberWeeklyUsage:
        start, end = get_week_range(date_string)
        return self.usage_repository.get_or_seed(
            gym_id,
            member_id,
            start,
            seed=lambda: self.attendance_repository.count_member_active_in_range(
                gym_id, member_id, start, end
            ),
        )

    def current_count(self, gym_id: str, member_id: str, date_string: str) -> int:
        return int(self._counter(gym_id, member_id, date_string).active_count)

    def increment(self, gym_id: str, member_id: str, date_string: str) -> int:
        usage = self.usage_repository.adjust(self._counter(gym_id, member_id, date_string), 1)
        return int(usage.active_count)

    def decrement(self, gym_id: str, member_id: str, date_string: str) -> int:
        usage = self.usage_repository.adjust(self._counter(gym_id, member_id, date_string), -1)
        return int(usage.active_count)

    @BaseService.measure_operation("get_weekly_class_count")
    def get_week_summary(self, gym_id: str, member_id: str, date_string: str) -> Dict[str, Any]:
        """The member's active bookings in the week containing ``date_string`` (read-only)."""
        start, end = get_week_range(date_string)
        rows = self.attendance_repository.get_member_range(
            gym_id, member_id, start, end, active_only=True
        )
        return {
            "count": len(rows),
            "classes": [
                {
                    "id": row.id,
                    "class_name": row.class_name,
                    "date_string": row.date_string,
                    "class_time": row.class_time,
                    "status": row.status,
                }
                for row in rows
            ],
            "start": start,
            "end": end,
        }
