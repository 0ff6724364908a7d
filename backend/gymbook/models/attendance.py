# backend/gymbook/models/attendance.py
"""
Attendance (booking) model.

One row per (class, session date, member). The primary key is the composite
string ``"{class_id}_{date_string}_{member_id}"`` so a second concurrent
insert for the same member and session fails on the key itself. Cancelled
rows are kept and reactivated in place on rebooking.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String

from ..core.enums import BookingStatus
from ..database import Base
from ._types import utc_now


def attendance_id_for(class_id: str, date_string: str, member_id: str) -> str:
    return f"{class_id}_{date_string}_{member_id}"


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        Index("ix_attendance_session_status", "class_id", "date_string", "status"),
        Index("ix_attendance_member_date", "gym_id", "member_id", "date_string"),
        Index("ix_attendance_gym_date", "gym_id", "date_string"),
    )

    id = Column(String(128), primary_key=True)
    gym_id = Column(String(26), ForeignKey("gyms.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(String(26), ForeignKey("gym_classes.id"), nullable=False)
    member_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    date_string = Column(String(10), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.BOOKED.value)
    booking_type = Column(String(20), nullable=False)
    cost_used = Column(Integer, nullable=False, default=0)

    # Denormalized for roster and history display
    class_name = Column(String(200), nullable=True)
    class_time = Column(String(5), nullable=True)
    class_timestamp = Column(DateTime(timezone=True), nullable=True)
    instructor_name = Column(String(200), nullable=True)
    member_name = Column(String(200), nullable=True)
    member_photo = Column(String(500), nullable=True)

    booked_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    promoted_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    refunded = Column(Boolean, nullable=False, default=False)
    late_cancel = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status in (BookingStatus.BOOKED.value, BookingStatus.ATTENDED.value)

    @property
    def is_waitlisted(self) -> bool:
        return self.status == BookingStatus.WAITLISTED.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    def __repr__(self) -> str:
        return f"<Attendance {self.id} {self.status}>"
