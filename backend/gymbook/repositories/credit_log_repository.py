from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.credit_log import CreditLog
from .base_repository import BaseRepository


class CreditLogRepository(BaseRepository[CreditLog]):
    def __init__(self, db: Session):
        super().__init__(db, CreditLog)

    def get_history(
        self, user_id: str, gym_id: Optional[str] = None, limit: int = 50
    ) -> List[CreditLog]:
        """Newest first."""
        query = self._build_query().filter(CreditLog.user_id == user_id)
        if gym_id is not None:
            query = query.filter(CreditLog.gym_id == gym_id)
        query = query.order_by(CreditLog.created_at.desc(), CreditLog.id.desc()).limit(limit)
        return self._execute_query(query)

    def sum_for_user(self, user_id: str) -> int:
        query = self.db.query(func.coalesce(func.sum(CreditLog.amount), 0)).filter(
            CreditLog.user_id == user_id
        )
        return int(self._execute_scalar(query) or 0)
