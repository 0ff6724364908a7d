# backend/gymbook/routes/credits.py
"""
Credit ledger routes - API v1

Endpoints:
    POST /users/{user_id}/credits/adjust - Admin adjustment (staff)
    GET /users/{user_id}/credits/history - Ledger entries, newest first
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_credit_service, get_current_principal, require_staff
from ..auth import Principal
from ..schemas.credits import (
    CreditAdjustRequest,
    CreditAdjustResponse,
    CreditHistoryResponse,
    CreditLogOut,
)
from ..services.credit_service import CreditService
from .bookings import ensure_self_or_staff

router = APIRouter(tags=["credits-v1"])


@router.post("/users/{user_id}/credits/adjust", response_model=CreditAdjustResponse)
def adjust_credits(
    user_id: str,
    payload: CreditAdjustRequest,
    principal: Principal = Depends(require_staff),
    credit_service: CreditService = Depends(get_credit_service),
) -> CreditAdjustResponse:
    result = credit_service.adjust_user_credits(
        user_id, payload.amount, payload.reason, principal.uid, gym_id=payload.gym_id
    )
    return CreditAdjustResponse(**result)


@router.get("/users/{user_id}/credits/history", response_model=CreditHistoryResponse)
def credit_history(
    user_id: str,
    gym_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=500),
    principal: Principal = Depends(get_current_principal),
    credit_service: CreditService = Depends(get_credit_service),
) -> CreditHistoryResponse:
    ensure_self_or_staff(principal, user_id)
    logs = credit_service.get_user_credit_history(user_id, gym_id, limit)
    return CreditHistoryResponse(logs=[CreditLogOut(**entry) for entry in logs])
