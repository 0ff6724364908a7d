# backend/gymbook/services/booking_service.py
"""
Booking Service

Orchestrates the class-booking lifecycle as single units of work:
- book_member: eligibility, credit debit, capacity/waitlist placement
- cancel_booking: refund decision, late-cancel flag, FIFO promotion
- check_in_member: attendance, member stats, grading credits

Lock order inside every unit of work is the class row, then member rows
(ascending id), then attendance rows. The attendance composite primary key
is the last guard against double booking.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, BookingType, MembershipStatus, RefundPolicy
from ..core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    EligibilityDeniedException,
    ForbiddenException,
    InsufficientCreditsException,
    NotFoundException,
    ValidationException,
)
from ..core.timeutils import parse_date_string, session_start, utcnow
from ..database import with_db_retry
from ..models.attendance import attendance_id_for
from ..models.gym import Gym
from ..models.gym_class import GymClass
from ..models.member import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_policy import BookingPolicy
from .credit_service import CreditService
from .eligibility_service import EligibilityResult, apply_weekly_limit, can_user_book
from .waitlist_service import WaitlistService, resolve_booking_status
from .weekly_usage_service import WeeklyUsageService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionRef:
    """One occurrence of a class series."""

    class_id: str
    date_string: str
    time: Optional[str] = None
    name: Optional[str] = None
    instructor_name: Optional[str] = None


@dataclass(frozen=True)
class BookingOptions:
    force: bool = False
    booking_type: Optional[str] = None
    waive_cost: bool = False
    credit_cost_override: Optional[int] = None
    is_staff: bool = False

    @property
    def has_staff_overrides(self) -> bool:
        return bool(
            self.force
            or self.booking_type
            or self.waive_cost
            or self.credit_cost_override is not None
        )


@dataclass(frozen=True)
class BookingResult:
    status: str
    id: str
    recovered: bool = False
    booking_type: str = ""
    cost_used: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": True,
            "status": self.status,
            "id": self.id,
            "recovered": self.recovered,
            "booking_type": self.booking_type,
            "cost_used": self.cost_used,
        }


COMP_ACCESS = EligibilityResult(
    allowed=True, type=BookingType.COMP.value, cost=0, reason="Complimentary booking"
)


class BookingService(BaseService):
    """Atomic book / cancel / check-in operations on class sessions."""

    def __init__(self, db: Session, policy: Optional[BookingPolicy] = None):
        super().__init__(db)
        self.gym_repository = RepositoryFactory.create_gym_repository(db)
        self.class_repository = RepositoryFactory.create_class_repository(db)
        self.member_repository = RepositoryFactory.create_member_repository(db)
        self.attendance_repository = RepositoryFactory.create_attendance_repository(db)
        self.rank_repository = RepositoryFactory.create_rank_repository(db)
        self.credit_service = CreditService(db)
        self.waitlist_service = WaitlistService(db)
        self.weekly_usage = WeeklyUsageService(db)
        self.policy = policy or BookingPolicy()

    # ------------------------------------------------------------------ #
    # Loading helpers
    # ------------------------------------------------------------------ #

    def _get_gym(self, gym_id: str) -> Gym:
        gym = self.gym_repository.get_by_id(gym_id)
        if gym is None:
            raise NotFoundException("Gym not found.")
        return gym

    def _lock_class(self, gym_id: str, class_id: str) -> GymClass:
        gym_class = self.class_repository.get_for_gym(gym_id, class_id, for_update=True)
        if gym_class is None:
            raise NotFoundException("Class does not exist.")
        return gym_class

    def _lock_member(self, member_id: str) -> User:
        member = self.member_repository.get_by_id(member_id, for_update=True)
        if member is None:
            raise NotFoundException("User does not exist.")
        return member

    # ------------------------------------------------------------------ #
    # Book
    # ------------------------------------------------------------------ #

    def _resolve_access(
        self,
        gym_id: str,
        gym_class: GymClass,
        member: User,
        date_string: str,
        options: BookingOptions,
    ) -> EligibilityResult:
        if options.waive_cost or options.booking_type == BookingType.COMP.value:
            return COMP_ACCESS

        if options.booking_type == BookingType.CREDIT.value:
            cost = (
                options.credit_cost_override
                if options.credit_cost_override is not None
                else int(gym_class.credit_cost or 0)
            )
            if cost < 0:
                raise ValidationException("Credit cost cannot be negative")
            balance = int(member.class_credits or 0)
            if cost > balance:
                raise InsufficientCreditsException(required=cost, available=balance)
            return EligibilityResult(
                allowed=True,
                type=BookingType.CREDIT.value,
                cost=cost,
                reason=f"{cost} Credit(s) applied",
            )

        access = can_user_book(gym_class, member, gym_id)

        if access.is_membership and not options.force:
            membership = member.membership_for(gym_id)
            tier = membership.tier if membership is not None else None
            if tier is not None and tier.has_weekly_limit:
                used = self.weekly_usage.current_count(gym_id, member.id, date_string)
                access = apply_weekly_limit(access, gym_class, member, used, tier.weekly_limit)

        if not access.allowed:
            if options.force:
                return COMP_ACCESS
            raise EligibilityDeniedException(access.reason)
        return access

    def _book_once(
        self,
        gym_id: str,
        session: SessionRef,
        member_id: str,
        options: BookingOptions,
        actor_id: str,
    ) -> BookingResult:
        attendance_id = attendance_id_for(session.class_id, session.date_string, member_id)
        now = utcnow()

        with self.transaction():
            gym = self._get_gym(gym_id)
            gym_class = self._lock_class(gym_id, session.class_id)
            member = self._lock_member(member_id)
            existing = self.attendance_repository.get_for_gym(
                gym_id, attendance_id, for_update=True
            )

            if existing is not None and not existing.is_cancelled:
                raise BookingConflictException(details={"attendance_id": attendance_id})

            if gym_class.is_archived:
                raise BusinessRuleException(
                    "This class is no longer running.", code="class-archived"
                )
            if gym_class.is_session_cancelled(session.date_string):
                raise BusinessRuleException(
                    "This session has been cancelled.", code="session-cancelled"
                )

            class_time = session.time or gym_class.time
            class_name = session.name or gym_class.name
            starts_at = session_start(session.date_string, class_time, gym.timezone)
            if not options.is_staff:
                self.policy.check_booking_window(
                    gym, gym_class, session.date_string, starts_at, now
                )

            access = self._resolve_access(
                gym_id, gym_class, member, session.date_string, options
            )

            cost_used = 0
            if access.type == BookingType.CREDIT.value and access.cost > 0:
                self.credit_service.debit(
                    member,
                    access.cost,
                    f"Booked: {class_name} ({class_time})",
                    gym_id=gym_id,
                    created_by=actor_id,
                )
                cost_used = access.cost

            active = self.attendance_repository.count_active(
                session.class_id, session.date_string
            )
            waiting = self.attendance_repository.count_waitlisted(
                session.class_id, session.date_string
            )
            status = resolve_booking_status(
                active,
                waiting,
                self.waitlist_service.capacity_for(gym_class),
                force=options.force,
            )

            fields: Dict[str, Any] = {
                "gym_id": gym_id,
                "class_id": session.class_id,
                "member_id": member_id,
                "date_string": session.date_string,
                "status": status.value,
                "booking_type": access.type,
                "cost_used": cost_used,
                "class_name": class_name,
                "class_time": class_time,
                "class_timestamp": starts_at,
                "instructor_name": gym_class.instructor_name or session.instructor_name,
                "member_name": member.display_name,
                "member_photo": member.photo_url,
                "booked_at": now,
            }

            if status == BookingStatus.BOOKED:
                self.weekly_usage.increment(gym_id, member_id, session.date_string)

            recovered = existing is not None
            if existing is not None:
                self.attendance_repository.update(
                    existing,
                    cancelled_at=None,
                    refunded=False,
                    late_cancel=False,
                    promoted_at=None,
                    checked_in_at=None,
                    **fields,
                )
            else:
                self.attendance_repository.create(id=attendance_id, **fields)

        return BookingResult(
            status=status.value,
            id=attendance_id,
            recovered=recovered,
            booking_type=access.type,
            cost_used=cost_used,
        )

    @BaseService.measure_operation("book_member")
    def book_member(
        self,
        gym_id: str,
        session: SessionRef,
        member_id: str,
        options: Optional[BookingOptions] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> BookingResult:
        """
        Book ``member_id`` into one class session.

        Returns the final status (``booked`` or ``waitlisted``); a previously
        cancelled record is reactivated in place and reported as ``recovered``.
        """
        options = options or BookingOptions()
        if options.has_staff_overrides and not options.is_staff:
            raise ForbiddenException("Only staff can override booking rules.")
        if options.booking_type not in (None, BookingType.COMP.value, BookingType.CREDIT.value):
            raise ValidationException(f"Unsupported booking type override: {options.booking_type}")
        parse_date_string(session.date_string)

        def _attempt() -> BookingResult:
            try:
                return self._book_once(
                    gym_id, session, member_id, options, actor_id or member_id
                )
            except IntegrityError as exc:
                self.logger.warning(
                    "Concurrent duplicate booking rejected",
                    extra={"member_id": member_id, "class_id": session.class_id},
                )
                raise BookingConflictException() from exc

        result = with_db_retry("book_member", _attempt)
        prometheus_metrics.inc_booking_outcome(result.status)
        self.log_operation(
            "book_member",
            gym_id=gym_id,
            attendance_id=result.id,
            status=result.status,
            booking_type=result.booking_type,
            recovered=result.recovered,
        )
        return result

    # ------------------------------------------------------------------ #
    # Cancel
    # ------------------------------------------------------------------ #

    def cancel_locked(
        self,
        gym: Gym,
        gym_class: Optional[GymClass],
        attendance_id: str,
        *,
        is_staff: bool,
        refund_policy: Optional[str],
        actor_id: Optional[str],
        now: datetime,
    ) -> Dict[str, Any]:
        """
        Cancel one booking inside the caller's transaction.

        The caller must hold the class row lock. Member rows are locked next,
        then the attendance rows, so the waitlist read before locking cannot
        change underneath.
        """
        snapshot = self.attendance_repository.get_for_gym(gym.id, attendance_id)
        if snapshot is None:
            raise NotFoundException("Booking not found.")

        candidates = []
        if (
            snapshot.is_active
            and gym_class is not None
            and not gym_class.is_session_cancelled(snapshot.date_string)
        ):
            capacity = self.waitlist_service.capacity_for(gym_class)
            remaining = (
                self.attendance_repository.count_active(snapshot.class_id, snapshot.date_string)
                - 1
            )
            if remaining < capacity:
                candidates = self.attendance_repository.get_waitlist(
                    snapshot.class_id, snapshot.date_string, limit=1, lock=False
                )

        locked = self.member_repository.lock_many(
            [snapshot.member_id] + [entry.member_id for entry in candidates]
        )
        member = next((m for m in locked if m.id == snapshot.member_id), None)

        attendance = self.attendance_repository.get_for_gym(
            gym.id, attendance_id, for_update=True
        )
        if attendance is None:
            raise NotFoundException("Booking not found.")
        if attendance.is_cancelled:
            raise BusinessRuleException("Booking is already cancelled.", code="already-cancelled")
        if not is_staff and actor_id is not None and attendance.member_id != actor_id:
            raise ForbiddenException("You can only cancel your own bookings.")

        promotions = (
            self.waitlist_service.next_in_line(
                attendance.class_id, attendance.date_string, len(candidates)
            )
            if candidates
            else []
        )

        decision = self.policy.evaluate_cancellation(
            attendance,
            gym,
            gym_class,
            is_staff=is_staff,
            refund_policy=refund_policy,
            now=now,
        )

        refund_applied = False
        if (
            decision.refund
            and attendance.booking_type == BookingType.CREDIT.value
            and (attendance.cost_used or 0) > 0
            and member is not None
        ):
            source = "Admin Cancel" if is_staff else "User Cancel"
            self.credit_service.credit(
                member,
                int(attendance.cost_used),
                f"Refund: {attendance.class_name} ({source})",
                gym_id=gym.id,
                created_by=actor_id or attendance.member_id,
            )
            refund_applied = True

        if attendance.is_active and member is not None:
            self.weekly_usage.decrement(gym.id, member.id, attendance.date_string)

        self.attendance_repository.update(
            attendance,
            status=BookingStatus.CANCELLED.value,
            cancelled_at=now,
            refunded=refund_applied,
            late_cancel=decision.late_cancel,
        )
        promoted = self.waitlist_service.promote(gym.id, promotions, now)

        return {
            "success": True,
            "refunded": refund_applied,
            "late_cancel": decision.late_cancel,
            "promoted": promoted,
            "promoted_id": promotions[0].id if promotions else None,
        }

    def _cancel_once(
        self,
        gym_id: str,
        attendance_id: str,
        is_staff: bool,
        refund_policy: Optional[str],
        actor_id: Optional[str],
    ) -> Dict[str, Any]:
        with self.transaction():
            snapshot = self.attendance_repository.get_for_gym(gym_id, attendance_id)
            if snapshot is None:
                raise NotFoundException("Booking not found.")
            gym = self._get_gym(gym_id)
            gym_class = self.class_repository.get_for_gym(
                gym_id, snapshot.class_id, for_update=True
            )
            return self.cancel_locked(
                gym,
                gym_class,
                attendance_id,
                is_staff=is_staff,
                refund_policy=refund_policy,
                actor_id=actor_id,
                now=utcnow(),
            )

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        gym_id: str,
        attendance_id: str,
        *,
        is_staff: bool = False,
        refund_policy: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Cancel a booking, refunding credits when the policy allows.

        A caller-supplied ``refund_policy`` (staff only) overrides the window
        rule. Freeing a seat promotes the earliest waitlisted member.
        """
        if refund_policy is not None:
            if not is_staff:
                raise ForbiddenException("Only staff can choose a refund policy.")
            if refund_policy not in {policy.value for policy in RefundPolicy}:
                raise ValidationException(f"Unknown refund policy: {refund_policy}")

        result = with_db_retry(
            "cancel_booking",
            lambda: self._cancel_once(gym_id, attendance_id, is_staff, refund_policy, actor_id),
        )
        prometheus_metrics.inc_booking_outcome("cancelled")
        prometheus_metrics.inc_booking_outcome("promoted", result["promoted"])
        self.log_operation(
            "cancel_booking",
            gym_id=gym_id,
            attendance_id=attendance_id,
            refunded=result["refunded"],
            late_cancel=result["late_cancel"],
            promoted=result["promoted"],
        )
        return result

    # ------------------------------------------------------------------ #
    # Check-in
    # ------------------------------------------------------------------ #

    def _award_rank_credit(self, gym: Gym, member: User, program_id: str, now: datetime) -> None:
        rank = self.rank_repository.get(member.id, gym.id, program_id)
        if rank is not None:
            rank.credits = int(rank.credits or 0) + 1
            return

        program = gym.find_program(program_id)
        ranks = (program or {}).get("ranks") or []
        if not ranks:
            return

        self.rank_repository.create(
            member_id=member.id,
            gym_id=gym.id,
            program_id=program_id,
            rank_id=ranks[0]["id"],
            stripes=0,
            credits=1,
        )
        if (member.status or "").lower() == MembershipStatus.PROSPECT.value:
            member.status = MembershipStatus.ACTIVE.value
            member.converted_at = now

    def _check_in_once(self, gym_id: str, attendance_id: str) -> Dict[str, Any]:
        now = utcnow()
        with self.transaction():
            snapshot = self.attendance_repository.get_for_gym(gym_id, attendance_id)
            if snapshot is None:
                raise NotFoundException("Booking not found.")
            gym = self._get_gym(gym_id)
            gym_class = self.class_repository.get_for_gym(
                gym_id, snapshot.class_id, for_update=True
            )
            member = self._lock_member(snapshot.member_id)
            attendance = self.attendance_repository.get_for_gym(
                gym_id, attendance_id, for_update=True
            )
            if attendance is None:
                raise NotFoundException("Booking not found.")
            if attendance.status == BookingStatus.ATTENDED.value:
                raise BusinessRuleException(
                    "Member is already checked in.", code="already-checked-in"
                )
            if attendance.status != BookingStatus.BOOKED.value:
                raise BusinessRuleException(
                    f"Cannot check in a {attendance.status} booking.", code="not-booked"
                )

            attendance.status = BookingStatus.ATTENDED.value
            attendance.checked_in_at = now
            member.attendance_count = int(member.attendance_count or 0) + 1
            member.last_attended = now

            program_id = gym_class.program_id if gym_class is not None else None
            if program_id:
                self._award_rank_credit(gym, member, program_id, now)

            self.db.flush()
            return {
                "success": True,
                "attendance_count": member.attendance_count,
                "member_status": member.status,
            }

    @BaseService.measure_operation("check_in_member")
    def check_in_member(self, gym_id: str, attendance_id: str) -> Dict[str, Any]:
        """Mark a booked member as attended and credit their grading progress."""
        result = with_db_retry(
            "check_in_member", lambda: self._check_in_once(gym_id, attendance_id)
        )
        prometheus_metrics.inc_booking_outcome("attended")
        self.log_operation("check_in_member", gym_id=gym_id, attendance_id=attendance_id)
        return result
