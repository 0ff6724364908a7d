"""Cancellation and booking-window policy evaluation for class sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from ..core.config import Settings, settings as default_settings
from ..core.enums import RefundPolicy
from ..core.exceptions import BusinessRuleException
from ..core.timeutils import ensure_aware, local_today, parse_date_string
from ..models.attendance import Attendance
from ..models.gym import Gym
from ..models.gym_class import GymClass

_MISSING = object()


@dataclass(frozen=True)
class CancellationDecision:
    within_window: bool
    was_waitlisted: bool
    is_staff: bool
    refund: bool
    late_cancel: bool
    minutes_until_class: int
    window_minutes: int
    policy_basis: str = ""

    def to_payload(self) -> dict[str, object]:
        return {
            "within_window": self.within_window,
            "refund": self.refund,
            "late_cancel": self.late_cancel,
            "minutes_until_class": self.minutes_until_class,
            "window_minutes": self.window_minutes,
            "policy_basis": self.policy_basis,
        }


def _rule(rules: Optional[Mapping[str, Any]], key: str) -> Any:
    if not rules or key not in rules:
        return _MISSING
    return rules[key]


class BookingPolicy:
    """Resolves class rules over gym rules over configured defaults."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    def _resolve(self, gym: Optional[Gym], gym_class: Optional[GymClass], key: str) -> Any:
        for rules in (
            gym_class.booking_rules if gym_class is not None else None,
            gym.booking_rules if gym is not None else None,
        ):
            value = _rule(rules, key)
            if value is not _MISSING:
                return value
        return _MISSING

    def cancel_window_minutes(self, gym: Optional[Gym], gym_class: Optional[GymClass]) -> int:
        value = self._resolve(gym, gym_class, "cancel_window_hours")
        if value is _MISSING:
            value = self.config.default_cancel_window_hours
        # An explicit null rule means cancellations are never late
        if value is None:
            return 0
        return int(round(float(value) * 60))

    def booking_window_days(self, gym: Optional[Gym], gym_class: Optional[GymClass]) -> Optional[int]:
        value = self._resolve(gym, gym_class, "booking_window_days")
        if value is _MISSING:
            return self.config.default_booking_window_days
        return None if value is None else int(value)

    def check_booking_window(
        self,
        gym: Gym,
        gym_class: GymClass,
        date_string: str,
        starts_at: datetime,
        now: datetime,
    ) -> None:
        """Reject member self-bookings for sessions already started or not yet open."""
        if ensure_aware(starts_at) <= now:
            raise BusinessRuleException(
                "This class has already started.", code="session-started"
            )
        days = self.booking_window_days(gym, gym_class)
        if days is None:
            return
        last_open_day = local_today(gym.timezone, now) + timedelta(days=days)
        if parse_date_string(date_string) > last_open_day:
            raise BusinessRuleException(
                f"Booking opens {days} days before the class.",
                code="booking-window-closed",
                details={"booking_window_days": days},
            )

    def evaluate_cancellation(
        self,
        attendance: Attendance,
        gym: Optional[Gym],
        gym_class: Optional[GymClass],
        *,
        is_staff: bool,
        refund_policy: Optional[str],
        now: datetime,
    ) -> CancellationDecision:
        window = self.cancel_window_minutes(gym, gym_class)
        if attendance.class_timestamp is not None:
            delta = ensure_aware(attendance.class_timestamp) - now
            minutes_until = int(delta.total_seconds() // 60)
        else:
            minutes_until = 0

        within_window = minutes_until >= window
        was_waitlisted = attendance.is_waitlisted

        if refund_policy == RefundPolicy.REFUND.value:
            refund, basis = True, "Refund requested by staff"
        elif refund_policy == RefundPolicy.FORFEIT.value:
            refund, basis = False, "Credits forfeited by staff"
        elif was_waitlisted:
            refund, basis = True, "Waitlisted booking never held a seat"
        elif within_window:
            refund, basis = True, f"Cancelled at least {window} minutes before class"
        elif is_staff:
            refund, basis = True, "Staff cancellation"
        else:
            refund, basis = False, f"Late cancellation (under {window} minutes)"

        return CancellationDecision(
            within_window=within_window,
            was_waitlisted=was_waitlisted,
            is_staff=is_staff,
            refund=refund,
            late_cancel=not within_window and not was_waitlisted and not is_staff,
            minutes_until_class=minutes_until,
            window_minutes=window,
            policy_basis=basis,
        )
