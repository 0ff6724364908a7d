# backend/gymbook/models/gym.py
"""
Gym model.

A gym owns its classes, membership tiers and attendance records. Gym-level
``booking_rules`` are the defaults that a class's own rules override.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from ..database import Base
from ._types import new_id, utc_now


class Gym(Base):
    """
    Attributes:
        owner_id: User allowed to manage billing and Stripe onboarding
        timezone: IANA name used to interpret session date/time strings
        booking_rules: ``{"cancel_window_hours": float | None, "booking_window_days": int | None}``
        grading_programs: ``[{"id", "name", "ranks": [{"id", "name"}, ...]}, ...]``
    """

    __tablename__ = "gyms"

    id = Column(String(26), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    owner_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    booking_rules = Column(JSON, nullable=True)
    grading_programs = Column(JSON, nullable=False, default=list)

    stripe_account_id = Column(String(64), nullable=True, unique=True)
    stripe_account_status = Column(String(32), nullable=True)
    stripe_charges_enabled = Column(Boolean, nullable=False, default=False)
    stripe_payouts_enabled = Column(Boolean, nullable=False, default=False)
    stripe_details_submitted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)

    classes = relationship("GymClass", back_populates="gym", lazy="select")
    membership_tiers = relationship("MembershipTier", back_populates="gym", lazy="select")

    def find_program(self, program_id: str) -> dict | None:
        for program in self.grading_programs or []:
            if program.get("id") == program_id:
                return program
        return None

    def __repr__(self) -> str:
        return f"<Gym {self.id} {self.name!r}>"
