# backend/gymbook/models/member.py
"""
Member models.

``User`` holds the global credit balance and the member-level status;
``GymMembership`` links a user to one gym's membership tier.
"""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..core.enums import MembershipStatus
from ..database import Base
from ._types import new_id, utc_now


class User(Base):
    """
    A gym member (or staff/owner account).

    Attributes:
        class_credits: Spendable credit balance, never negative
        status: Member-level status (``banned`` blocks credit and drop-in access)
        attendance_count: Number of check-ins across all gyms
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=True)
    name = Column(String(200), nullable=True)
    photo_url = Column(String(500), nullable=True)

    class_credits = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=MembershipStatus.PROSPECT.value)
    attendance_count = Column(Integer, nullable=False, default=0)
    last_attended = Column(DateTime(timezone=True), nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)

    stripe_customer_id = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    memberships = relationship(
        "GymMembership", back_populates="user", lazy="selectin", cascade="all, delete-orphan"
    )

    def membership_for(self, gym_id: str) -> "GymMembership | None":
        """Return this user's membership entry for ``gym_id`` (first match)."""
        for membership in self.memberships:
            if membership.gym_id == gym_id:
                return membership
        return None

    @property
    def display_name(self) -> str:
        return self.name or "Unknown Member"

    def __repr__(self) -> str:
        return f"<User {self.id} credits={self.class_credits}>"


class GymMembership(Base):
    __tablename__ = "gym_memberships"
    __table_args__ = (UniqueConstraint("user_id", "gym_id", name="uq_gym_membership_user_gym"),)

    id = Column(String(26), primary_key=True, default=new_id)
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    gym_id = Column(String(26), ForeignKey("gyms.id", ondelete="CASCADE"), nullable=False)
    membership_id = Column(String(26), ForeignKey("membership_tiers.id"), nullable=True)
    status = Column(String(20), nullable=False, default=MembershipStatus.PROSPECT.value)
    stripe_subscription_id = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    user = relationship("User", back_populates="memberships")
    tier = relationship("MembershipTier", lazy="joined")

    @property
    def normalized_status(self) -> str:
        return (self.status or "").strip().lower()

    def __repr__(self) -> str:
        return f"<GymMembership {self.user_id}@{self.gym_id} {self.status}>"
