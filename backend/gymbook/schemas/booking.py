# backend/gymbook/schemas/booking.py
"""Booking request/response schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from .base import StandardizedModel, StrictRequestModel, ensure_date_only, ensure_time


class BookingCreate(StrictRequestModel):
    """
    Book a member into one class session.

    ``member_id`` defaults to the caller; booking someone else and every
    override flag require a staff token.
    """

    class_id: str
    date_string: str = Field(..., description="Session date in the gym's local calendar")
    time: Optional[str] = Field(None, description="Session start time, defaults to the class time")
    member_id: Optional[str] = None
    force: bool = False
    booking_type: Optional[Literal["comp", "credit"]] = None
    waive_cost: bool = False
    credit_cost_override: Optional[int] = Field(None, ge=0)

    @field_validator("date_string", mode="before")
    @classmethod
    def _date_only(cls, v: object) -> object:
        return ensure_date_only(v, "date_string")

    @field_validator("time", mode="before")
    @classmethod
    def _time(cls, v: object) -> object:
        return ensure_time(v, "time")


class BookingCancel(StrictRequestModel):
    refund_policy: Optional[Literal["refund", "forfeit"]] = None


class EligibilityRequest(StrictRequestModel):
    class_id: str
    date_string: str
    member_id: Optional[str] = None
    allowed_membership_ids: List[str] = Field(default_factory=list)
    credit_cost: int = Field(0, ge=0)
    drop_in_enabled: bool = False
    instructor_name: Optional[str] = None

    @field_validator("date_string", mode="before")
    @classmethod
    def _date_only(cls, v: object) -> object:
        return ensure_date_only(v, "date_string")


class BookingResponse(StandardizedModel):
    success: bool = True
    status: str
    id: str
    recovered: bool = False
    booking_type: str
    cost_used: int = 0


class CancelResponse(StandardizedModel):
    success: bool = True
    refunded: bool
    late_cancel: bool
    promoted: int
    promoted_id: Optional[str] = None


class CheckInResponse(StandardizedModel):
    success: bool = True
    attendance_count: int
    member_status: str


class ProcessWaitlistResponse(StandardizedModel):
    success: bool = True
    promoted: int


class AttendanceOut(StandardizedModel):
    id: str
    class_id: str
    class_name: Optional[str] = None
    instructor_name: Optional[str] = None
    date_string: str
    class_time: Optional[str] = None
    class_timestamp: Optional[datetime] = None
    member_id: str
    member_name: Optional[str] = None
    member_photo: Optional[str] = None
    status: str
    booking_type: str
    cost_used: int = 0
    booked_at: Optional[datetime] = None
    promoted_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    refunded: bool = False
    late_cancel: bool = False


class RosterResponse(StandardizedModel):
    success: bool = True
    roster: List[AttendanceOut]


class HistoryResponse(StandardizedModel):
    success: bool = True
    history: List[AttendanceOut]


class ScheduleResponse(StandardizedModel):
    success: bool = True
    schedule: Dict[str, Dict[str, str]]


class AttendanceCountsResponse(StandardizedModel):
    success: bool = True
    counts: Dict[str, int]


class WeeklyCountResponse(StandardizedModel):
    success: bool = True
    count: int
    classes: List[Dict[str, Any]]
    start: str
    end: str


class EligibilityResponse(StandardizedModel):
    success: bool = True
    data: Dict[str, Any]
