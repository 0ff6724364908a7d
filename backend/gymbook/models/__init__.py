# backend/gymbook/models/__init__.py
"""
SQLAlchemy models. Importing this package registers every table on ``Base.metadata``.
"""

from .attendance import Attendance, attendance_id_for
from .credit_log import CreditLog
from .gym import Gym
from .gym_class import GymClass
from .member import GymMembership, User
from .member_rank import MemberRank
from .membership_tier import MembershipTier
from .stripe_event import StripeEvent
from .weekly_usage import MemberWeeklyUsage

__all__ = [
    "Attendance",
    "CreditLog",
    "Gym",
    "GymClass",
    "GymMembership",
    "MemberRank",
    "MemberWeeklyUsage",
    "MembershipTier",
    "StripeEvent",
    "User",
    "attendance_id_for",
]
