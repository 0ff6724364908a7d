# backend/gymbook/services/class_service.py
"""
Class series and membership tier management.

Series with booking history are archived rather than deleted so attendance
and refund history keep their class reference; tiers still referenced by a
member or class are deactivated for the same reason.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, ClassStatus, RefundPolicy
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timeutils import parse_date_string, utcnow
from ..database import with_db_retry
from ..models.gym_class import GymClass
from ..models.membership_tier import MembershipTier
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.classes import BookingRules, ClassCreate, ClassUpdate, TierCreate, TierUpdate
from .base import BaseService
from .booking_service import BookingService


def _rules_payload(rules: Optional[BookingRules]) -> Optional[Dict[str, Any]]:
    if rules is None:
        return None
    # Only keys the caller sent; an explicit null overrides the gym default
    return rules.model_dump(exclude_unset=True)


class ClassService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.gym_repository = RepositoryFactory.create_gym_repository(db)
        self.class_repository = RepositoryFactory.create_class_repository(db)
        self.tier_repository = RepositoryFactory.create_tier_repository(db)
        self.member_repository = RepositoryFactory.create_member_repository(db)
        self.attendance_repository = RepositoryFactory.create_attendance_repository(db)

    def _require_gym(self, gym_id: str) -> None:
        if self.gym_repository.get_by_id(gym_id) is None:
            raise NotFoundException("Gym not found.")

    def get_class(self, gym_id: str, class_id: str) -> GymClass:
        gym_class = self.class_repository.get_for_gym(gym_id, class_id)
        if gym_class is None:
            raise NotFoundException("Class not found")
        return gym_class

    def list_classes(self, gym_id: str, *, include_archived: bool = False) -> List[GymClass]:
        return self.class_repository.list_for_gym(gym_id, include_archived=include_archived)

    @BaseService.measure_operation("create_class")
    def create_class(self, gym_id: str, data: ClassCreate) -> GymClass:
        self._require_gym(gym_id)
        payload = data.model_dump(exclude={"booking_rules"})
        payload["booking_rules"] = _rules_payload(data.booking_rules)
        with self.transaction():
            gym_class = self.class_repository.create(
                gym_id=gym_id, cancelled_dates=[], status=ClassStatus.ACTIVE.value, **payload
            )
        self.log_operation("create_class", gym_id=gym_id, class_id=gym_class.id)
        return gym_class

    @BaseService.measure_operation("update_class")
    def update_class(self, gym_id: str, class_id: str, data: ClassUpdate) -> GymClass:
        changes = data.model_dump(exclude_unset=True, exclude={"booking_rules"})
        if "booking_rules" in data.model_fields_set:
            changes["booking_rules"] = _rules_payload(data.booking_rules)
        for required in ("name", "time", "days", "duration", "credit_cost", "drop_in_enabled"):
            if required in changes and changes[required] is None:
                raise ValidationException(f"{required} cannot be null")
        with self.transaction():
            gym_class = self.class_repository.get_for_gym(gym_id, class_id, for_update=True)
            if gym_class is None:
                raise NotFoundException("Class not found")
            self.class_repository.update(gym_class, **changes)
        return gym_class

    @BaseService.measure_operation("cancel_session")
    def cancel_session(
        self, gym_id: str, class_id: str, date_string: str, *, actor_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Cancel one session date of a series.

        Live bookings on that date are cancelled as staff cancellations with a
        full refund; nobody is promoted into a cancelled session. The date and
        every refund are written in one transaction.
        """
        parse_date_string(date_string)
        booking_service = BookingService(self.db)

        def _cancel() -> Dict[str, Any]:
            with self.transaction():
                gym = self.gym_repository.get_by_id(gym_id)
                if gym is None:
                    raise NotFoundException("Gym not found.")
                gym_class = self.class_repository.get_for_gym(gym_id, class_id, for_update=True)
                if gym_class is None:
                    raise NotFoundException("Class not found")
                dates = list(gym_class.cancelled_dates or [])
                if date_string not in dates:
                    dates.append(date_string)
                    gym_class.cancelled_dates = sorted(dates)

                live = [
                    row
                    for row in self.attendance_repository.get_roster(class_id, date_string)
                    if row.status in {status.value for status in BookingStatus.live()}
                ]
                self.member_repository.lock_many(row.member_id for row in live)
                now = utcnow()
                for row in live:
                    booking_service.cancel_locked(
                        gym,
                        gym_class,
                        row.id,
                        is_staff=True,
                        refund_policy=RefundPolicy.REFUND.value,
                        actor_id=actor_id,
                        now=now,
                    )
                return {
                    "success": True,
                    "cancelled_dates": list(gym_class.cancelled_dates),
                    "cancelled_bookings": len(live),
                }

        result = with_db_retry("cancel_session", _cancel)
        prometheus_metrics.inc_booking_outcome("cancelled", result["cancelled_bookings"])
        self.log_operation(
            "cancel_session",
            class_id=class_id,
            date_string=date_string,
            cancelled_bookings=result["cancelled_bookings"],
        )
        return result

    @BaseService.measure_operation("restore_session")
    def restore_session(self, gym_id: str, class_id: str, date_string: str) -> List[str]:
        with self.transaction():
            gym_class = self.class_repository.get_for_gym(gym_id, class_id, for_update=True)
            if gym_class is None:
                raise NotFoundException("Class not found")
            gym_class.cancelled_dates = [
                d for d in (gym_class.cancelled_dates or []) if d != date_string
            ]
            return list(gym_class.cancelled_dates)

    @BaseService.measure_operation("retire_class")
    def retire_class(self, gym_id: str, class_id: str) -> str:
        """Archive a series with booking history; delete one without. Returns the action taken."""
        with self.transaction():
            gym_class = self.class_repository.get_for_gym(gym_id, class_id, for_update=True)
            if gym_class is None:
                raise NotFoundException("Class not found")
            if self.class_repository.has_attendance(class_id):
                gym_class.status = ClassStatus.ARCHIVED.value
                action = "archived"
            else:
                self.class_repository.delete(gym_class)
                action = "deleted"
        self.log_operation("retire_class", class_id=class_id, action=action)
        return action

    # ------------------------------------------------------------------ #
    # Membership tiers
    # ------------------------------------------------------------------ #

    def list_tiers(self, gym_id: str, *, active_only: bool = False) -> List[MembershipTier]:
        return self.tier_repository.list_for_gym(gym_id, active_only=active_only)

    @BaseService.measure_operation("create_tier")
    def create_tier(self, gym_id: str, data: TierCreate) -> MembershipTier:
        self._require_gym(gym_id)
        with self.transaction():
            tier = self.tier_repository.create(gym_id=gym_id, **data.model_dump())
        return tier

    @BaseService.measure_operation("update_tier")
    def update_tier(self, gym_id: str, tier_id: str, data: TierUpdate) -> MembershipTier:
        changes = data.model_dump(exclude_unset=True)
        with self.transaction():
            tier = self.tier_repository.get_by_id(tier_id)
            if tier is None or tier.gym_id != gym_id:
                raise NotFoundException("Membership tier not found")
            self.tier_repository.update(tier, **changes)
        return tier

    @BaseService.measure_operation("delete_tier")
    def delete_tier(self, gym_id: str, tier_id: str) -> str:
        with self.transaction():
            tier = self.tier_repository.get_by_id(tier_id)
            if tier is None or tier.gym_id != gym_id:
                raise NotFoundException("Membership tier not found")
            referenced = self.member_repository.count_tier_references(tier_id) > 0 or bool(
                self.class_repository.referencing_tier(gym_id, tier_id)
            )
            if referenced:
                tier.active = False
                action = "deactivated"
            else:
                self.tier_repository.delete(tier)
                action = "deleted"
        self.log_operation("delete_tier", tier_id=tier_id, action=action)
        return action
