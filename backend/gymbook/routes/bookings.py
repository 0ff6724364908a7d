# backend/gymbook/routes/bookings.py
"""
Class booking routes - API v1

Endpoints (all under /api/v1/gyms/{gym_id}):
    POST /bookings - Book a member into a class session
    POST /bookings/{attendance_id}/cancel - Cancel a booking
    POST /bookings/{attendance_id}/check-in - Check a booked member in (staff)
    POST /classes/{class_id}/sessions/{date_string}/process-waitlist - Fill free seats (staff)
    GET /classes/{class_id}/sessions/{date_string}/roster - Session roster (staff)
    POST /eligibility - Booking pre-flight
    GET /members/{member_id}/attendance - Latest bookings of a member
    GET /members/{member_id}/schedule - Member's bookings in a date range
    GET /members/{member_id}/weekly-count - Member's active bookings in a week
    GET /attendance-counts - Active bookings per session in a date range

All business logic delegated to the booking, waitlist, eligibility and
schedule services.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from ..api.dependencies import (
    get_booking_service,
    get_current_principal,
    get_eligibility_service,
    get_schedule_service,
    get_waitlist_service,
    require_staff,
)
from ..auth import Principal
from ..core.exceptions import ForbiddenException
from ..schemas.booking import (
    AttendanceCountsResponse,
    BookingCancel,
    BookingCreate,
    BookingResponse,
    CancelResponse,
    CheckInResponse,
    EligibilityRequest,
    EligibilityResponse,
    HistoryResponse,
    ProcessWaitlistResponse,
    RosterResponse,
    ScheduleResponse,
    WeeklyCountResponse,
)
from ..services.booking_service import BookingOptions, BookingService, SessionRef
from ..services.eligibility_service import ClassDescriptor, EligibilityService
from ..services.schedule_service import ScheduleService
from ..services.waitlist_service import WaitlistService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings-v1"])


def ensure_self_or_staff(principal: Principal, member_id: str) -> None:
    if member_id != principal.uid and not principal.is_staff:
        raise ForbiddenException("You can only access your own bookings.")


@router.post("/gyms/{gym_id}/bookings", response_model=BookingResponse)
def book_class(
    gym_id: str,
    payload: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    member_id = payload.member_id or principal.uid
    ensure_self_or_staff(principal, member_id)

    result = booking_service.book_member(
        gym_id,
        SessionRef(class_id=payload.class_id, date_string=payload.date_string, time=payload.time),
        member_id,
        BookingOptions(
            force=payload.force,
            booking_type=payload.booking_type,
            waive_cost=payload.waive_cost,
            credit_cost_override=payload.credit_cost_override,
            is_staff=principal.is_staff,
        ),
        actor_id=principal.uid,
    )
    return BookingResponse(**result.to_payload())


@router.post("/gyms/{gym_id}/bookings/{attendance_id}/cancel", response_model=CancelResponse)
def cancel_booking(
    gym_id: str,
    attendance_id: str,
    payload: Optional[BookingCancel] = Body(None),
    principal: Principal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> CancelResponse:
    result = booking_service.cancel_booking(
        gym_id,
        attendance_id,
        is_staff=principal.is_staff,
        refund_policy=payload.refund_policy if payload is not None else None,
        actor_id=principal.uid,
    )
    return CancelResponse(**result)


@router.post(
    "/gyms/{gym_id}/bookings/{attendance_id}/check-in", response_model=CheckInResponse
)
def check_in(
    gym_id: str,
    attendance_id: str,
    _: Principal = Depends(require_staff),
    booking_service: BookingService = Depends(get_booking_service),
) -> CheckInResponse:
    return CheckInResponse(**booking_service.check_in_member(gym_id, attendance_id))


@router.post(
    "/gyms/{gym_id}/classes/{class_id}/sessions/{date_string}/process-waitlist",
    response_model=ProcessWaitlistResponse,
)
def process_waitlist(
    gym_id: str,
    class_id: str,
    date_string: str,
    _: Principal = Depends(require_staff),
    waitlist_service: WaitlistService = Depends(get_waitlist_service),
) -> ProcessWaitlistResponse:
    result = waitlist_service.process_waitlist(gym_id, class_id, date_string)
    return ProcessWaitlistResponse(promoted=int(result["promoted"]))


@router.get(
    "/gyms/{gym_id}/classes/{class_id}/sessions/{date_string}/roster",
    response_model=RosterResponse,
)
def class_roster(
    gym_id: str,
    class_id: str,
    date_string: str,
    _: Principal = Depends(require_staff),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> RosterResponse:
    roster = schedule_service.get_class_roster(gym_id, class_id, date_string)
    return RosterResponse(roster=roster)


@router.post("/gyms/{gym_id}/eligibility", response_model=EligibilityResponse)
def check_eligibility(
    gym_id: str,
    payload: EligibilityRequest,
    principal: Principal = Depends(get_current_principal),
    eligibility_service: EligibilityService = Depends(get_eligibility_service),
) -> EligibilityResponse:
    member_id = payload.member_id or principal.uid
    ensure_self_or_staff(principal, member_id)
    data = eligibility_service.check_booking_eligibility(
        gym_id,
        member_id,
        payload.class_id,
        payload.date_string,
        descriptor=ClassDescriptor(
            allowed_membership_ids=tuple(payload.allowed_membership_ids),
            credit_cost=payload.credit_cost,
            drop_in_enabled=payload.drop_in_enabled,
        ),
        instructor_name=payload.instructor_name,
    )
    return EligibilityResponse(data=data)


@router.get("/gyms/{gym_id}/members/{member_id}/attendance", response_model=HistoryResponse)
def member_attendance(
    gym_id: str,
    member_id: str,
    principal: Principal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> HistoryResponse:
    ensure_self_or_staff(principal, member_id)
    return HistoryResponse(history=schedule_service.get_member_attendance(gym_id, member_id))


@router.get("/gyms/{gym_id}/members/{member_id}/schedule", response_model=ScheduleResponse)
def member_schedule(
    gym_id: str,
    member_id: str,
    start: str = Query(..., description="First date (YYYY-MM-DD), inclusive"),
    end: str = Query(..., description="Last date (YYYY-MM-DD), inclusive"),
    principal: Principal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleResponse:
    ensure_self_or_staff(principal, member_id)
    return ScheduleResponse(
        schedule=schedule_service.get_member_schedule(gym_id, member_id, start, end)
    )


@router.get(
    "/gyms/{gym_id}/members/{member_id}/weekly-count", response_model=WeeklyCountResponse
)
def member_weekly_count(
    gym_id: str,
    member_id: str,
    date_string: str = Query(..., alias="date"),
    principal: Principal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> WeeklyCountResponse:
    ensure_self_or_staff(principal, member_id)
    return WeeklyCountResponse(
        **schedule_service.get_weekly_class_count(gym_id, member_id, date_string)
    )


@router.get("/gyms/{gym_id}/attendance-counts", response_model=AttendanceCountsResponse)
def attendance_counts(
    gym_id: str,
    start: str = Query(...),
    end: str = Query(...),
    _: Principal = Depends(get_current_principal),
    schedule_service: ScheduleService = Depends(get_schedule_service),
) -> AttendanceCountsResponse:
    return AttendanceCountsResponse(
        counts=schedule_service.get_weekly_attendance_counts(gym_id, start, end)
    )
