# backend/gymbook/repositories/attendance_repository.py
"""
Attendance repository.

All roster and waitlist reads used for booking decisions run inside the
caller's transaction after the class row has been locked, so counts here
are stable for the rest of the unit of work.
"""

from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..models.attendance import Attendance
from .base_repository import BaseRepository

_ACTIVE = [status.value for status in BookingStatus.active()]
_LIVE = [status.value for status in BookingStatus.live()]


class AttendanceRepository(BaseRepository[Attendance]):
    def __init__(self, db: Session):
        super().__init__(db, Attendance)

    def get_for_gym(
        self, gym_id: str, attendance_id: str, *, for_update: bool = False
    ) -> Optional[Attendance]:
        query = self._build_query().filter(
            Attendance.id == attendance_id, Attendance.gym_id == gym_id
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _session_query(self, class_id: str, date_string: str):
        return self._build_query().filter(
            Attendance.class_id == class_id, Attendance.date_string == date_string
        )

    def count_active(self, class_id: str, date_string: str) -> int:
        return (
            self._session_query(class_id, date_string)
            .filter(Attendance.status.in_(_ACTIVE))
            .count()
        )

    def count_waitlisted(self, class_id: str, date_string: str) -> int:
        return (
            self._session_query(class_id, date_string)
            .filter(Attendance.status == BookingStatus.WAITLISTED.value)
            .count()
        )

    def get_waitlist(
        self,
        class_id: str,
        date_string: str,
        limit: Optional[int] = None,
        *,
        lock: bool = True,
    ) -> List[Attendance]:
        """Waitlisted entries, earliest ``booked_at`` first (ties broken by id)."""
        query = (
            self._session_query(class_id, date_string)
            .filter(Attendance.status == BookingStatus.WAITLISTED.value)
            .order_by(Attendance.booked_at.asc(), Attendance.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        if lock:
            query = query.with_for_update()
        return self._execute_query(query)

    def get_roster(self, class_id: str, date_string: str) -> List[Attendance]:
        query = self._session_query(class_id, date_string).order_by(
            Attendance.booked_at.asc(), Attendance.id.asc()
        )
        return self._execute_query(query)

    def get_member_history(self, gym_id: str, member_id: str, limit: int) -> List[Attendance]:
        query = (
            self._build_query()
            .filter(Attendance.gym_id == gym_id, Attendance.member_id == member_id)
            .order_by(Attendance.class_timestamp.desc(), Attendance.id.desc())
            .limit(limit)
        )
        return self._execute_query(query)

    def get_member_range(
        self,
        gym_id: str,
        member_id: str,
        start: str,
        end: str,
        *,
        active_only: bool = False,
    ) -> List[Attendance]:
        statuses = _ACTIVE if active_only else _LIVE
        query = (
            self._build_query()
            .filter(
                Attendance.gym_id == gym_id,
                Attendance.member_id == member_id,
                Attendance.date_string >= start,
                Attendance.date_string <= end,
                Attendance.status.in_(statuses),
            )
            .order_by(Attendance.class_timestamp.asc(), Attendance.id.asc())
        )
        return self._execute_query(query)

    def count_member_active_in_range(
        self, gym_id: str, member_id: str, start: str, end: str
    ) -> int:
        query = self.db.query(func.count(Attendance.id)).filter(
            Attendance.gym_id == gym_id,
            Attendance.member_id == member_id,
            Attendance.date_string >= start,
            Attendance.date_string <= end,
            Attendance.status.in_(_ACTIVE),
        )
        return int(self._execute_scalar(query) or 0)

    def active_counts_in_range(self, gym_id: str, start: str, end: str) -> Dict[str, int]:
        """Active bookings per ``"{class_id}_{date_string}"`` key."""
        rows = (
            self.db.query(Attendance.class_id, Attendance.date_string, func.count(Attendance.id))
            .filter(
                Attendance.gym_id == gym_id,
                Attendance.date_string >= start,
                Attendance.date_string <= end,
                Attendance.status.in_(_ACTIVE),
            )
            .group_by(Attendance.class_id, Attendance.date_string)
            .all()
        )
        return {f"{class_id}_{date_string}": int(count) for class_id, date_string, count in rows}
