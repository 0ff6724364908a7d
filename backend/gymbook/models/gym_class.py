# backend/gymbook/models/gym_class.py
"""
Class series model.

A series recurs on ``days`` at ``time`` from ``start_date``; a session is one
(series, local date string) pair. Sessions are not stored, only attendance.
"""

from typing import Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..core.constants import UNLIMITED_CAPACITY
from ..core.enums import ClassStatus
from ..database import Base
from ._types import new_id, utc_now


class GymClass(Base):
    __tablename__ = "gym_classes"

    id = Column(String(26), primary_key=True, default=new_id)
    gym_id = Column(String(26), ForeignKey("gyms.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    instructor_name = Column(String(200), nullable=True)
    program_id = Column(String(64), nullable=True)

    days = Column(JSON, nullable=False, default=list)
    start_date = Column(String(10), nullable=True)
    time = Column(String(5), nullable=False)
    duration = Column(Integer, nullable=False, default=60)

    max_capacity = Column(Integer, nullable=True)
    credit_cost = Column(Integer, nullable=False, default=0)
    drop_in_enabled = Column(Boolean, nullable=False, default=False)
    allowed_membership_ids = Column(JSON, nullable=False, default=list)
    cancelled_dates = Column(JSON, nullable=False, default=list)
    booking_rules = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default=ClassStatus.ACTIVE.value)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    gym = relationship("Gym", back_populates="classes")

    def effective_capacity(self, unlimited: int = UNLIMITED_CAPACITY) -> int:
        """Capacity used for booking decisions; unset or zero means ``unlimited``."""
        capacity: Optional[int] = self.max_capacity
        return capacity if capacity and capacity > 0 else unlimited

    def is_session_cancelled(self, date_string: str) -> bool:
        return date_string in (self.cancelled_dates or [])

    @property
    def is_archived(self) -> bool:
        return self.status == ClassStatus.ARCHIVED.value

    def __repr__(self) -> str:
        return f"<GymClass {self.id} {self.name!r} {self.time}>"
