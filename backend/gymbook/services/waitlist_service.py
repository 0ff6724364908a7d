# backend/gymbook/services/waitlist_service.py
"""
Capacity and waitlist management.

A new booking is placed on the waitlist when the session is full or anyone
is already waiting, so a late arrival can never jump the queue. Promotion is
strictly FIFO by ``booked_at`` and never charges the member again.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import BookingStatus
from ..core.exceptions import NotFoundException
from ..core.timeutils import utcnow
from ..database import with_db_retry
from ..models.attendance import Attendance
from ..models.gym_class import GymClass
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .weekly_usage_service import WeeklyUsageService


def resolve_booking_status(
    active_count: int, waitlist_count: int, capacity: int, *, force: bool = False
) -> BookingStatus:
    if force:
        return BookingStatus.BOOKED
    if active_count >= capacity or waitlist_count > 0:
        return BookingStatus.WAITLISTED
    return BookingStatus.BOOKED


class WaitlistService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.class_repository = RepositoryFactory.create_class_repository(db)
        self.attendance_repository = RepositoryFactory.create_attendance_repository(db)
        self.member_repository = RepositoryFactory.create_member_repository(db)
        self.weekly_usage = WeeklyUsageService(db)

    def capacity_for(self, gym_class: GymClass) -> int:
        return gym_class.effective_capacity(settings.unlimited_capacity)

    def next_in_line(self, class_id: str, date_string: str, seats: int) -> List[Attendance]:
        if seats <= 0:
            return []
        return self.attendance_repository.get_waitlist(class_id, date_string, limit=seats)

    def promote(self, gym_id: str, entries: Sequence[Attendance], now: datetime) -> int:
        """
        Move ``entries`` onto the active roster.

        The caller must hold the class row lock and the promoted members' row locks.
        """
        for entry in entries:
            self.weekly_usage.increment(gym_id, entry.member_id, entry.date_string)
            entry.status = BookingStatus.BOOKED.value
            entry.promoted_at = now
            self.logger.info(
                "Promoted from waitlist",
                extra={"attendance_id": entry.id, "member_id": entry.member_id},
            )
        self.db.flush()
        return len(entries)

    @BaseService.measure_operation("process_waitlist")
    def process_waitlist(self, gym_id: str, class_id: str, date_string: str) -> Dict[str, object]:
        """Fill every free seat from the waitlist, earliest first."""

        def _process() -> int:
            with self.transaction():
                gym_class = self.class_repository.get_for_gym(gym_id, class_id, for_update=True)
                if gym_class is None:
                    raise NotFoundException("Class not found")
                if gym_class.is_session_cancelled(date_string):
                    return 0

                active = self.attendance_repository.count_active(class_id, date_string)
                seats = self.capacity_for(gym_class) - active
                entries = self.next_in_line(class_id, date_string, seats)
                if not entries:
                    return 0
                self.member_repository.lock_many(entry.member_id for entry in entries)
                return self.promote(gym_id, entries, utcnow())

        promoted = with_db_retry("process_waitlist", _process)
        prometheus_metrics.inc_booking_outcome("promoted", promoted)
        self.log_operation(
            "process_waitlist", class_id=class_id, date_string=date_string, promoted=promoted
        )
        return {"success": True, "promoted": promoted}
