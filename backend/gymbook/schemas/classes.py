# backend/gymbook/schemas/classes.py
"""Class series and membership tier schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from .base import Money, StandardizedModel, StrictRequestModel, ensure_date_only, ensure_time

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class BookingRules(StrictRequestModel):
    cancel_window_hours: Optional[float] = Field(None, ge=0)
    booking_window_days: Optional[int] = Field(None, ge=0)


class _ClassFields(StrictRequestModel):
    @field_validator("days", mode="before", check_fields=False)
    @classmethod
    def _normalize_days(cls, v: object) -> object:
        if v is None:
            return v
        if not isinstance(v, list):
            raise ValueError("days must be a list of weekday names")
        days = [str(day).strip().lower() for day in v]
        unknown = [day for day in days if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        return days

    @field_validator("start_date", mode="before", check_fields=False)
    @classmethod
    def _date_only(cls, v: object) -> object:
        return ensure_date_only(v, "start_date")

    @field_validator("time", mode="before", check_fields=False)
    @classmethod
    def _time(cls, v: object) -> object:
        return ensure_time(v, "time")


class ClassCreate(_ClassFields):
    name: str = Field(..., min_length=1, max_length=200)
    time: str
    days: List[str] = Field(default_factory=list)
    start_date: Optional[str] = None
    duration: int = Field(60, gt=0, le=1440)
    instructor_name: Optional[str] = None
    program_id: Optional[str] = None
    max_capacity: Optional[int] = Field(None, ge=0)
    credit_cost: int = Field(0, ge=0)
    drop_in_enabled: bool = False
    allowed_membership_ids: List[str] = Field(default_factory=list)
    booking_rules: Optional[BookingRules] = None


class ClassUpdate(_ClassFields):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    time: Optional[str] = None
    days: Optional[List[str]] = None
    start_date: Optional[str] = None
    duration: Optional[int] = Field(None, gt=0, le=1440)
    instructor_name: Optional[str] = None
    program_id: Optional[str] = None
    max_capacity: Optional[int] = Field(None, ge=0)
    credit_cost: Optional[int] = Field(None, ge=0)
    drop_in_enabled: Optional[bool] = None
    allowed_membership_ids: Optional[List[str]] = None
    booking_rules: Optional[BookingRules] = None


class ClassOut(StandardizedModel):
    id: str
    gym_id: str
    name: str
    instructor_name: Optional[str] = None
    program_id: Optional[str] = None
    days: List[str]
    start_date: Optional[str] = None
    time: str
    duration: int
    max_capacity: Optional[int] = None
    credit_cost: int
    drop_in_enabled: bool
    allowed_membership_ids: List[str]
    cancelled_dates: List[str]
    booking_rules: Optional[Dict[str, Any]] = None
    status: str
    created_at: datetime


class ClassListResponse(StandardizedModel):
    success: bool = True
    classes: List[ClassOut]


class RetireClassResponse(StandardizedModel):
    success: bool = True
    action: Literal["archived", "deleted"]


class SessionCancelResponse(StandardizedModel):
    success: bool = True
    cancelled_dates: List[str]
    cancelled_bookings: int = 0


class TierCreate(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=200)
    price: Money = Field(default=Money("0"))
    interval: Literal["week", "month", "year", "one_time"] = "month"
    weekly_limit: Optional[int] = Field(None, ge=0)
    visibility: Literal["public", "private"] = "public"
    active: bool = True


class TierUpdate(StrictRequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    price: Optional[Money] = None
    interval: Optional[Literal["week", "month", "year", "one_time"]] = None
    weekly_limit: Optional[int] = Field(None, ge=0)
    visibility: Optional[Literal["public", "private"]] = None
    active: Optional[bool] = None


class TierOut(StandardizedModel):
    id: str
    gym_id: str
    name: str
    price: Money
    interval: str
    weekly_limit: Optional[int] = None
    visibility: str
    active: bool


class TierListResponse(StandardizedModel):
    success: bool = True
    tiers: List[TierOut]


class TierDeleteResponse(StandardizedModel):
    success: bool = True
    action: Literal["deactivated", "deleted"]
