# backend/gymbook/routes/classes.py
"""
Class series and membership tier routes - API v1

Reads are open to any signed-in user; every write requires staff.

Endpoints (all under /api/v1/gyms/{gym_id}):
    GET /classes - List class series
    POST /classes - Create a class series
    GET /classes/{class_id} - Class details
    PATCH /classes/{class_id} - Update a class series
    DELETE /classes/{class_id} - Retire a series (archive or delete)
    POST /classes/{class_id}/sessions/{date_string}/cancel - Cancel one session
    POST /classes/{class_id}/sessions/{date_string}/restore - Undo a session cancellation
    GET /membership-tiers - List tiers
    POST /membership-tiers - Create a tier
    PATCH /membership-tiers/{tier_id} - Update a tier
    DELETE /membership-tiers/{tier_id} - Delete or deactivate a tier
"""

from fastapi import APIRouter, Depends, Query, status

from ..api.dependencies import get_class_service, get_current_principal, require_staff
from ..auth import Principal
from ..schemas.classes import (
    ClassCreate,
    ClassListResponse,
    ClassOut,
    ClassUpdate,
    RetireClassResponse,
    SessionCancelResponse,
    TierCreate,
    TierDeleteResponse,
    TierListResponse,
    TierOut,
    TierUpdate,
)
from ..services.class_service import ClassService

router = APIRouter(tags=["classes-v1"])


@router.get("/gyms/{gym_id}/classes", response_model=ClassListResponse)
def list_classes(
    gym_id: str,
    include_archived: bool = Query(False),
    _: Principal = Depends(get_current_principal),
    class_service: ClassService = Depends(get_class_service),
) -> ClassListResponse:
    classes = class_service.list_classes(gym_id, include_archived=include_archived)
    return ClassListResponse(classes=[ClassOut.model_validate(c) for c in classes])


@router.post(
    "/gyms/{gym_id}/classes", response_model=ClassOut, status_code=status.HTTP_201_CREATED
)
def create_class(
    gym_id: str,
    payload: ClassCreate,
    _: Principal = Depends(require_staff),
    class_service: ClassService = Depends(get_class_service),
) -> ClassOut:
    return ClassOut.model_validate(class_service.create_class(gym_id, payload))


@router.get("/gyms/{gym_id}/classes/{class_id}", response_model=ClassOut)
def get_class(
    gym_id: str,
    class_id: str,
    _: Principal = Depends(get_current_principal),
    class_service: ClassService = Depends(get_class_service),
) -> ClassOut:
    return ClassOut.model_validate(class_service.get_class(gym_id, class_id))


@router.patch("/gyms/{gym_id}/classes/{class_id}", response_model=ClassOut)
def update_class(
    gym_id: str,
    class_id: str,
    payload: ClassUpdate,
    _: Principal = Depends(require_staff),
    class_service: ClassService = Depends(get_class_service),
) -> ClassOut:
    return ClassOut.model_validate(class_service.update_class(gym_id, class_id, payload))


@router.delete("/gyms/{gym_id}/classes/{class_id}", response_model=RetireClassResponse)
def retire_class(
    gym_id: str,
    class_id: str,
    _: Principal = Depends(require_staff),
    class_service: ClassService = Depends(get_class_service),
) -> RetireClassResponse:
    return RetireClassResponse(action=class_service.retire_class(gym_id, class_id))


@router.post(
    "/gyms/{gym_id}/classes/{class_id}/sessions/{date_string}/cancel",
    response_model=SessionCancelResponse,
)
def cancel_session(
    gym_id: str,
    class_id: str,
    date_string: str,
    principal: Principal = Depends(require_staff),
    class_service: ClassService = Depends(get_class_service),
) -> SessionCancelResponse:
    result = class_service.cancel_session(
        gym_id, class_id, date_string, actor_id=principal.uid
    )
    return SessionCancelResponse(**result)


@router.post(
    "/gyms/{gym_id}/classes/{class_id}/sessions/{date_string}/restore",
    response_model=SessionCancelResponse,
)
def restore_session(
    gym_id: str,
    class_id: str,
    date_string: str,
    _: Principal = Depends(require_staff),
    class_service: ClassService = Depends(get_class_service),
) -> SessionCancelResponse:
    dates = class_service.restore_session(gym_id, class_id, date_string)
    return SessionCancelResponse(cancelled_dates=dates)


@router.get("/gyms/{gym_id}/membership-tiers", response_model=TierListResponse)
def list_tiers(
    gym_id: str,
    active_only: bool = Query(False),
    _: Principal = Depends(get_current_principal),
    class_service: ClassService = Depends(get_class_service),
) -> TierListResponse:
    tiers = class_service.list_tiers(gym_id, active_only=active_only)
    return TierListResponse(tiers=[TierOut.model_validate(t) for t in tiers])


@router.post(
    "/gyms/{gym_id}/membership-tiers",
    response_model=TierOut,
    status_code=status.HTTP_201_CREATED,
)
def create_tier(
    gym_id: str,
    payload: TierCreate,
    _: Principal = Depends(require_staff),
    class_service: ClassService = Depends(get_class_service),
) -> TierOut:
    return TierOut.model_validate(class_service.create_tier(gym_id, payload))


@router.patch("/gyms/{gym_id}/membership-tiers/{tier_id}", response_model=TierOut)
def update_tier(
    gym_id: str,
    tier_id: str,
    payload: TierUpdate,
    _: Principal = Depends(require_staff),
    class_service: ClassService = Depends(get_class_service),
) -> TierOut:
    return TierOut.model_validate(class_service.update_tier(gym_id, tier_id, payload))


@router.delete("/gyms/{gym_id}/membership-tiers/{tier_id}", response_model=TierDeleteResponse)
def delete_tier(
    gym_id: str,
    tier_id: str,
    _: Principal = Depends(require_staff),
    class_service: ClassService = Depends(get_class_service),
) -> TierDeleteResponse:
    return TierDeleteResponse(action=class_service.delete_tier(gym_id, tier_id))
