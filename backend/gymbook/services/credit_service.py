# backend/gymbook/services/credit_service.py
"""
Credit ledger service.

Every balance change writes exactly one ``credit_logs`` row with the signed
amount in the same transaction. Methods that take a ``User`` expect the
caller to hold that user's row lock; the public admin/purchase operations
take the lock themselves.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import SYSTEM_ACTOR
from ..core.enums import CreditLogType
from ..core.exceptions import InsufficientCreditsException, NotFoundException, ValidationException
from ..database import with_db_retry
from ..models.credit_log import CreditLog
from ..models.member import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def serialize_credit_log(entry: CreditLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "amount": entry.amount,
        "balance_after": entry.balance_after,
        "type": entry.type,
        "description": entry.description,
        "created_by": entry.created_by,
        "gym_id": entry.gym_id,
        "created_at": entry.created_at,
    }


class CreditService(BaseService):
    """Mutates member credit balances through the append-only ledger."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.member_repository = RepositoryFactory.create_member_repository(db)
        self.credit_log_repository = RepositoryFactory.create_credit_log_repository(db)

    def _apply(
        self,
        user: User,
        amount: int,
        log_type: CreditLogType,
        description: str,
        *,
        gym_id: Optional[str],
        created_by: str,
    ) -> CreditLog:
        balance = int(user.class_credits or 0)
        new_balance = balance + amount
        if new_balance < 0:
            raise InsufficientCreditsException(required=-amount, available=balance)

        user.class_credits = new_balance
        entry = self.credit_log_repository.create(
            user_id=user.id,
            gym_id=gym_id,
            amount=amount,
            balance_after=new_balance,
            type=log_type.value,
            description=description,
            created_by=created_by,
        )
        prometheus_metrics.inc_credit_entry(log_type.value)
        self.logger.info(
            "Credit ledger entry",
            extra={
                "user_id": user.id,
                "amount": amount,
                "balance_after": new_balance,
                "type": log_type.value,
            },
        )
        return entry

    def debit(
        self,
        user: User,
        amount: int,
        description: str,
        *,
        gym_id: Optional[str] = None,
        created_by: str = SYSTEM_ACTOR,
        log_type: CreditLogType = CreditLogType.BOOKING,
    ) -> CreditLog:
        if amount <= 0:
            raise ValidationException("Debit amount must be positive")
        return self._apply(
            user, -amount, log_type, description, gym_id=gym_id, created_by=created_by
        )

    def credit(
        self,
        user: User,
        amount: int,
        description: str,
        *,
        gym_id: Optional[str] = None,
        created_by: str = SYSTEM_ACTOR,
        log_type: CreditLogType = CreditLogType.REFUND,
    ) -> CreditLog:
        if amount <= 0:
            raise ValidationException("Credit amount must be positive")
        return self._apply(user, amount, log_type, description, gym_id=gym_id, created_by=created_by)

    def _lock_user(self, user_id: str) -> User:
        user = self.member_repository.get_by_id(user_id, for_update=True)
        if user is None:
            raise NotFoundException("User not found", code="not-found")
        return user

    @BaseService.measure_operation("adjust_user_credits")
    def adjust_user_credits(
        self,
        user_id: str,
        amount: int,
        reason: Optional[str],
        admin_id: str,
        *,
        gym_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Admin adjustment by a non-zero signed amount."""
        if not amount:
            raise ValidationException("Amount must be non-zero")

        def _adjust() -> Dict[str, Any]:
            with self.transaction():
                user = self._lock_user(user_id)
                entry = self._apply(
                    user,
                    amount,
                    CreditLogType.ADMIN_ADJUSTMENT,
                    reason or "Admin manual adjustment",
                    gym_id=gym_id,
                    created_by=admin_id,
                )
                return {"success": True, "new_balance": entry.balance_after, "log_id": entry.id}

        return with_db_retry("adjust_user_credits", _adjust)

    @BaseService.measure_operation("purchase_credits")
    def purchase_credits(
        self,
        user_id: str,
        amount: int,
        description: str,
        *,
        gym_id: Optional[str] = None,
        created_by: str = SYSTEM_ACTOR,
        use_transaction: bool = True,
    ) -> CreditLog:
        """Credit a purchased class pack to the member's balance."""
        if amount <= 0:
            raise ValidationException("Purchased credit amount must be positive")

        def _purchase() -> CreditLog:
            user = self._lock_user(user_id)
            return self.credit(
                user,
                amount,
                description,
                gym_id=gym_id,
                created_by=created_by,
                log_type=CreditLogType.PURCHASE,
            )

        if not use_transaction:
            return _purchase()
        with self.transaction():
            return _purchase()

    @BaseService.measure_operation("get_user_credit_history")
    def get_user_credit_history(
        self, user_id: str, gym_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        limit = limit or settings.credit_history_limit
        entries = self.credit_log_repository.get_history(user_id, gym_id=gym_id, limit=limit)
        return [serialize_credit_log(entry) for entry in entries]
