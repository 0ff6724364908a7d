# backend/gymbook/services/eligibility_service.py
"""
Eligibility resolution for class bookings.

``can_user_book`` decides how a member may pay for a class (membership,
credits, drop-in) or why they may not; ``apply_weekly_limit`` downgrades a
membership grant once the tier's weekly cap is used up. Both are pure and are
reused by the booking transaction and by the read-only pre-flight check.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from ..core.enums import BookingType, MembershipStatus
from ..core.exceptions import NotFoundException
from ..models.member import User
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .weekly_usage_service import WeeklyUsageService

logger = logging.getLogger(__name__)

DENIED = "denied"


class ClassAccessRules(Protocol):
    allowed_membership_ids: Sequence[str]
    credit_cost: Any
    drop_in_enabled: bool


@dataclass(frozen=True)
class EligibilityResult:
    allowed: bool
    type: str
    cost: int
    reason: str

    @property
    def is_membership(self) -> bool:
        return self.allowed and self.type == BookingType.MEMBERSHIP.value

    def to_payload(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "type": self.type,
            "cost": self.cost,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ClassDescriptor:
    """Access rules of a class as the resolver sees them."""

    allowed_membership_ids: Sequence[str] = field(default_factory=tuple)
    credit_cost: int = 0
    drop_in_enabled: bool = False


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _resolve_pay_per_class(
    rules: ClassAccessRules, member: User, credits: int, cost: int
) -> Optional[EligibilityResult]:
    if (member.status or "").strip().lower() == MembershipStatus.BANNED.value:
        return None
    if cost > 0 and credits >= cost:
        return EligibilityResult(
            allowed=True,
            type=BookingType.CREDIT.value,
            cost=cost,
            reason=f"{cost} Credit(s) applied",
        )
    if rules.drop_in_enabled and cost == 0:
        return EligibilityResult(
            allowed=True, type=BookingType.DROP_IN.value, cost=0, reason="Open Registration"
        )
    return None


def can_user_book(rules: ClassAccessRules, member: User, gym_id: str) -> EligibilityResult:
    """
    Resolve how ``member`` may book a class in ``gym_id``.

    Order: plan access in good standing, then credits, then free drop-in.
    Denial reasons are ranked: wrong status on the right plan, then
    insufficient credits, then a generic membership requirement.
    """
    allowed_plans = list(rules.allowed_membership_ids or [])
    cost = _as_int(rules.credit_cost)
    credits = _as_int(member.class_credits)

    membership = member.membership_for(gym_id)
    if membership is not None:
        plan_covers_class = membership.membership_id in allowed_plans
        good_standing = membership.normalized_status in {
            status.value for status in MembershipStatus.bookable()
        }
        if plan_covers_class and good_standing:
            return EligibilityResult(
                allowed=True,
                type=BookingType.MEMBERSHIP.value,
                cost=0,
                reason="Membership Access",
            )

    pay_per_class = _resolve_pay_per_class(rules, member, credits, cost)
    if pay_per_class is not None:
        return pay_per_class

    reason = "Membership required to book."
    if membership is not None and membership.membership_id in allowed_plans:
        reason = f"Your membership is currently {membership.status}."
    elif cost > 0:
        reason = f"Insufficient Credits. (Requires {cost}, you have {credits})"

    return EligibilityResult(allowed=False, type=DENIED, cost=cost, reason=reason)


def apply_weekly_limit(
    base: EligibilityResult,
    rules: ClassAccessRules,
    member: User,
    used: int,
    limit: Optional[int],
) -> EligibilityResult:
    """
    Downgrade a membership grant once ``used >= limit``.

    Past the cap only credit access remains; a free drop-in does not bypass it.
    """
    if not base.is_membership or not limit or limit <= 0 or used < limit:
        return base

    cost = _as_int(rules.credit_cost)
    fallback = _resolve_pay_per_class(rules, member, _as_int(member.class_credits), cost)
    if fallback is not None and fallback.type == BookingType.CREDIT.value:
        return EligibilityResult(
            allowed=True,
            type=fallback.type,
            cost=fallback.cost,
            reason=f"Weekly limit reached ({used}/{limit}). Using credits.",
        )

    return EligibilityResult(
        allowed=False,
        type=DENIED,
        cost=cost,
        reason=f"Weekly booking limit reached ({used}/{limit}).",
    )


class EligibilityService(BaseService):
    """Read-only booking pre-flight."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.class_repository = RepositoryFactory.create_class_repository(db)
        self.member_repository = RepositoryFactory.create_member_repository(db)
        self.tier_repository = RepositoryFactory.create_tier_repository(db)
        self.weekly_usage = WeeklyUsageService(db)

    @BaseService.measure_operation("check_booking_eligibility")
    def check_booking_eligibility(
        self,
        gym_id: str,
        user_id: str,
        class_id: str,
        date_string: str,
        *,
        descriptor: Optional[ClassDescriptor] = None,
        instructor_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Evaluate eligibility without writing anything.

        The stored class wins over the caller's ``descriptor``; the descriptor
        is only used for classes that are not stored.
        """
        member = self.member_repository.get_by_id(user_id)
        if member is None:
            raise NotFoundException("User profile not found")

        gym_class = self.class_repository.get_for_gym(gym_id, class_id)
        rules: ClassAccessRules
        if gym_class is not None:
            rules = gym_class
            instructor_name = gym_class.instructor_name or instructor_name
        elif descriptor is not None:
            rules = descriptor
        else:
            raise NotFoundException("Class does not exist.")

        eligibility = can_user_book(rules, member, gym_id)
        active_plan_name = ""
        weekly_usage: Optional[Dict[str, Any]] = None

        membership = member.membership_for(gym_id)
        if eligibility.is_membership and membership is not None and membership.tier is not None:
            tier = membership.tier
            active_plan_name = tier.name
            if tier.has_weekly_limit:
                week = self.weekly_usage.get_week_summary(gym_id, user_id, date_string)
                weekly_usage = {
                    "used": week["count"],
                    "limit": tier.weekly_limit,
                    "classes": week["classes"],
                }
                eligibility = apply_weekly_limit(
                    eligibility, rules, member, week["count"], tier.weekly_limit
                )

        eligible_public_plans: List[Dict[str, Any]] = []
        if not eligibility.allowed and rules.allowed_membership_ids:
            for tier in self.tier_repository.list_public_active(
                gym_id, rules.allowed_membership_ids
            ):
                eligible_public_plans.append(
                    {
                        "id": tier.id,
                        "name": tier.name,
                        "price": float(tier.price or 0),
                        "interval": tier.interval,
                    }
                )

        return {
            "instructor_name": instructor_name,
            "eligibility": eligibility.to_payload(),
            "active_plan_name": active_plan_name,
            "weekly_usage": weekly_usage,
            "eligible_public_plans": eligible_public_plans,
            "credits": member.class_credits,
        }
