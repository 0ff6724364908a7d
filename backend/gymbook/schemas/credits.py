from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from .base import StandardizedModel, StrictRequestModel


class CreditAdjustRequest(StrictRequestModel):
    amount: int = Field(..., description="Signed, non-zero number of credits")
    reason: Optional[str] = Field(None, max_length=500)
    gym_id: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("Amount must be non-zero")
        return v


class CreditAdjustResponse(StandardizedModel):
    success: bool = True
    new_balance: int
    log_id: str


class CreditLogOut(StandardizedModel):
    id: str
    amount: int
    balance_after: int
    type: str
    description: str
    created_by: str
    gym_id: Optional[str] = None
    created_at: datetime


class CreditHistoryResponse(StandardizedModel):
    success: bool = True
    logs: List[CreditLogOut]
