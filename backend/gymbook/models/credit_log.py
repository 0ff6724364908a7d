# backend/gymbook/models/credit_log.py
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from ..database import Base
from ._types import new_id, utc_now


class CreditLog(Base):
    """Append-only ledger entry; ``amount`` is signed (negative for debits)."""

    __tablename__ = "credit_logs"
    __table_args__ = (Index("ix_credit_logs_user_created", "user_id", "created_at"),)

    id = Column(String(26), primary_key=True, default=new_id)
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    gym_id = Column(String(26), ForeignKey("gyms.id"), nullable=True)
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    type = Column(String(32), nullable=False)
    description = Column(String(500), nullable=False, default="")
    created_by = Column(String(64), nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
