# backend/gymbook/models/membership_tier.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..database import Base
from ._types import new_id, utc_now


class MembershipTier(Base):
    """A purchasable plan. ``weekly_limit`` of None or 0 means unlimited."""

    __tablename__ = "membership_tiers"

    id = Column(String(26), primary_key=True, default=new_id)
    gym_id = Column(String(26), ForeignKey("gyms.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    interval = Column(String(20), nullable=False, default="month")
    weekly_limit = Column(Integer, nullable=True)
    visibility = Column(String(20), nullable=False, default="public")
    active = Column(Boolean, nullable=False, default=True)
    stripe_price_id = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    gym = relationship("Gym", back_populates="membership_tiers")

    @property
    def has_weekly_limit(self) -> bool:
        return bool(self.weekly_limit) and self.weekly_limit > 0
