# backend/gymbook/repositories/factory.py
"""
Repository Factory

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .attendance_repository import AttendanceRepository
    from .class_repository import ClassRepository
    from .credit_log_repository import CreditLogRepository
    from .gym_repository import GymRepository
    from .member_repository import MemberRepository
    from .rank_repository import RankRepository
    from .stripe_event_repository import StripeEventRepository
    from .tier_repository import TierRepository
    from .weekly_usage_repository import WeeklyUsageRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_gym_repository(db: Session) -> "GymRepository":
        from .gym_repository import GymRepository

        return GymRepository(db)

    @staticmethod
    def create_member_repository(db: Session) -> "MemberRepository":
        from .member_repository import MemberRepository

        return MemberRepository(db)

    @staticmethod
    def create_class_repository(db: Session) -> "ClassRepository":
        from .class_repository import ClassRepository

        return ClassRepository(db)

    @staticmethod
    def create_tier_repository(db: Session) -> "TierRepository":
        from .tier_repository import TierRepository

        return TierRepository(db)

    @staticmethod
    def create_attendance_repository(db: Session) -> "AttendanceRepository":
        """Create repository for roster, waitlist and attendance history queries."""
        from .attendance_repository import AttendanceRepository

        return AttendanceRepository(db)

    @staticmethod
    def create_credit_log_repository(db: Session) -> "CreditLogRepository":
        from .credit_log_repository import CreditLogRepository

        return CreditLogRepository(db)

    @staticmethod
    def create_weekly_usage_repository(db: Session) -> "WeeklyUsageRepository":
        from .weekly_usage_repository import WeeklyUsageRepository

        return WeeklyUsageRepository(db)

    @staticmethod
    def create_rank_repository(db: Session) -> "RankRepository":
        from .rank_repository import RankRepository

        return RankRepository(db)

    @staticmethod
    def create_stripe_event_repository(db: Session) -> "StripeEventRepository":
        from .stripe_event_repository import StripeEventRepository

        return StripeEventRepository(db)
