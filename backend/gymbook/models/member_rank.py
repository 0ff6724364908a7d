# backend/gymbook/models/member_rank.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from ..database import Base
from ._types import utc_now


class MemberRank(Base):
    """A member's position in one of a gym's grading programs."""

    __tablename__ = "member_ranks"

    member_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    gym_id = Column(String(26), ForeignKey("gyms.id", ondelete="CASCADE"), primary_key=True)
    program_id = Column(String(64), primary_key=True)
    rank_id = Column(String(64), nullable=False)
    stripes = Column(Integer, nullable=False, default=0)
    credits = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
