# backend/gymbook/core/enums.py
"""
Core enums for the booking engine.

Values are stored as plain strings in the database, so every enum
subclasses ``str`` and compares equal to its stored value.
"""

from enum import Enum


class RoleName(str, Enum):
    """Caller roles carried in the bearer token."""

    ADMIN = "admin"
    STAFF = "staff"
    MEMBER = "member"


class BookingStatus(str, Enum):
    BOOKED = "booked"
    WAITLISTED = "waitlisted"
    ATTENDED = "attended"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"

    @classmethod
    def active(cls) -> tuple["BookingStatus", ...]:
        """Statuses that occupy a seat and count toward weekly limits."""
        return (cls.BOOKED, cls.ATTENDED)

    @classmethod
    def live(cls) -> tuple["BookingStatus", ...]:
        return (cls.BOOKED, cls.WAITLISTED, cls.ATTENDED)


class BookingType(str, Enum):
    MEMBERSHIP = "membership"
    CREDIT = "credit"
    DROP_IN = "drop-in"
    COMP = "comp"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    PROSPECT = "prospect"
    ARCHIVED = "archived"
    BANNED = "banned"

    @classmethod
    def bookable(cls) -> tuple["MembershipStatus", ...]:
        return (cls.ACTIVE, cls.TRIALING)


class CreditLogType(str, Enum):
    BOOKING = "booking"
    REFUND = "refund"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    PURCHASE = "purchase"


class RefundPolicy(str, Enum):
    REFUND = "refund"
    FORFEIT = "forfeit"


class ClassStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class StripeAccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RESTRICTED = "RESTRICTED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    PENDING = "PENDING"
    NOT_CONNECTED = "NOT_CONNECTED"
