# backend/gymbook/repositories/weekly_usage_repository.py
"""
Weekly usage counter repository.

Callers must hold the member's row lock before calling any mutating method.
"""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..models.weekly_usage import MemberWeeklyUsage
from .base_repository import BaseRepository


class WeeklyUsageRepository(BaseRepository[MemberWeeklyUsage]):
    def __init__(self, db: Session):
        super().__init__(db, MemberWeeklyUsage)

    def get(self, gym_id: str, member_id: str, week_start: str) -> Optional[MemberWeeklyUsage]:
        return self.db.get(MemberWeeklyUsage, (gym_id, member_id, week_start))

    def get_or_seed(
        self,
        gym_id: str,
        member_id: str,
        week_start: str,
        seed: Callable[[], int],
    ) -> MemberWeeklyUsage:
        """Return the counter row, creating it from ``seed()`` (a live count) when missing."""
        usage = self.get(gym_id, member_id, week_start)
        if usage is None:
            usage = MemberWeeklyUsage(
                gym_id=gym_id,
                member_id=member_id,
                week_start=week_start,
                active_count=seed(),
            )
            self.db.add(usage)
            self.db.flush()
        return usage

    def adjust(self, usage: MemberWeeklyUsage, delta: int) -> MemberWeeklyUsage:
        usage.active_count = max(0, (usage.active_count or 0) + delta)
        self.db.flush()
        return usage
