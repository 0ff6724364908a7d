# backend/gymbook/models/weekly_usage.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from ..database import Base
from ._types import utc_now


class MemberWeeklyUsage(Base):
    """
    Count of a member's active bookings in one gym for one Monday-Sunday week.

    Only written while the member's ``users`` row is locked, so it stays
    equal to the number of booked/attended rows in that week.
    """

    __tablename__ = "member_weekly_usage"

    gym_id = Column(String(26), ForeignKey("gyms.id", ondelete="CASCADE"), primary_key=True)
    member_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    week_start = Column(String(10), primary_key=True)
    active_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
