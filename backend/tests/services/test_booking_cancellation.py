"""
Tests for BookingService.cancel_booking: refund policy, late-cancel flag and
waitlist promotion.
"""

import pytest

from gymbook.core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from gymbook.models import Attendance, CreditLog, MemberWeeklyUsage
from gymbook.services.booking_service import BookingOptions, BookingService, SessionRef

MONDAY = "2030-01-07"

# A window far longer than the time left until 2030 makes every cancel late
ALWAYS_LATE = {"cancel_window_hours": 1000000}


@pytest.fixture
def booking_service(db):
    return BookingService(db)


def _book(service, gym, gym_class, member, options=None):
    return service.book_member(
        gym.id,
        SessionRef(class_id=gym_class.id, date_string=MONDAY),
        member.id,
        options or BookingOptions(is_staff=True),
    )


def _refunds(db, member):
    return (
        db.query(CreditLog)
        .filter(CreditLog.user_id == member.id, CreditLog.type == "refund")
        .all()
    )


class TestRefundPolicy:
    def test_member_cancel_within_window_refunds(
        self, db, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(credit_cost=2)
        member = make_user(credits=2)
        booking = _book(booking_service, gym, gym_class, member)

        result = booking_service.cancel_booking(gym.id, booking.id, actor_id=member.id)

        assert result["refunded"] is True
        assert result["late_cancel"] is False
        assert member.class_credits == 2
        refunds = _refunds(db, member)
        assert len(refunds) == 1
        assert refunds[0].amount == 2
        assert refunds[0].description == "Refund: Fundamentals (User Cancel)"

        row = db.get(Attendance, booking.id)
        assert row.status == "cancelled"
        assert row.refunded is True
        assert row.cancelled_at is not None

    def test_member_late_cancel_forfeits(self, db, booking_service, gym, make_user, make_class):
        gym_class = make_class(credit_cost=2, booking_rules=ALWAYS_LATE)
        member = make_user(credits=2)
        booking = _book(booking_service, gym, gym_class, member)

        result = booking_service.cancel_booking(gym.id, booking.id, actor_id=member.id)

        assert result["refunded"] is False
        assert result["late_cancel"] is True
        assert member.class_credits == 0
        assert _refunds(db, member) == []
        assert db.get(Attendance, booking.id).late_cancel is True

    def test_staff_late_cancel_refunds(self, db, booking_service, gym, owner, make_user, make_class):
        gym_class = make_class(credit_cost=2, booking_rules=ALWAYS_LATE)
        member = make_user(credits=2)
        booking = _book(booking_service, gym, gym_class, member)

        result = booking_service.cancel_booking(
            gym.id, booking.id, is_staff=True, actor_id=owner.id
        )

        assert result["refunded"] is True
        assert result["late_cancel"] is False
        refund = _refunds(db, member)[0]
        assert refund.description == "Refund: Fundamentals (Admin Cancel)"
        assert refund.created_by == owner.id

    def test_staff_forfeit_overrides_window(self, booking_service, gym, make_user, make_class):
        gym_class = make_class(credit_cost=2)
        member = make_user(credits=2)
        booking = _book(booking_service, gym, gym_class, member)

        result = booking_service.cancel_booking(
            gym.id, booking.id, is_staff=True, refund_policy="forfeit"
        )

        assert result["refunded"] is False
        assert member.class_credits == 0

    def test_staff_refund_overrides_late_window(
        self, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(credit_cost=1, booking_rules=ALWAYS_LATE)
        member = make_user(credits=1)
        booking = _book(booking_service, gym, gym_class, member)

        result = booking_service.cancel_booking(
            gym.id, booking.id, is_staff=True, refund_policy="refund"
        )

        assert result["refunded"] is True
        assert member.class_credits == 1

    def test_member_cannot_choose_refund_policy(
        self, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(drop_in_enabled=True)
        member = make_user()
        booking = _book(booking_service, gym, gym_class, member)

        with pytest.raises(ForbiddenException):
            booking_service.cancel_booking(
                gym.id, booking.id, refund_policy="refund", actor_id=member.id
            )

    def test_unknown_refund_policy(self, booking_service, gym, make_user, make_class):
        gym_class = make_class(drop_in_enabled=True)
        booking = _book(booking_service, gym, gym_class, make_user())

        with pytest.raises(ValidationException):
            booking_service.cancel_booking(
                gym.id, booking.id, is_staff=True, refund_policy="half"
            )

    def test_waitlisted_late_cancel_is_refunded(
        self, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(max_capacity=1, credit_cost=1, booking_rules=ALWAYS_LATE)
        _book(booking_service, gym, gym_class, make_user(credits=1))
        member = make_user(credits=1)
        booking = _book(booking_service, gym, gym_class, member)
        assert booking.status == "waitlisted"

        result = booking_service.cancel_booking(gym.id, booking.id, actor_id=member.id)

        assert result["refunded"] is True
        assert result["late_cancel"] is False
        assert member.class_credits == 1

    def test_null_cancel_window_never_late(self, booking_service, gym, make_user, make_class):
        gym_class = make_class(credit_cost=1, booking_rules={"cancel_window_hours": None})
        member = make_user(credits=1)
        booking = _book(booking_service, gym, gym_class, member)

        result = booking_service.cancel_booking(gym.id, booking.id, actor_id=member.id)

        assert result["refunded"] is True
        assert result["late_cancel"] is False

    def test_non_credit_booking_has_nothing_to_refund(
        self, db, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(drop_in_enabled=True)
        member = make_user()
        booking = _book(booking_service, gym, gym_class, member)

        result = booking_service.cancel_booking(gym.id, booking.id, actor_id=member.id)

        assert result["refunded"] is False
        assert db.query(CreditLog).count() == 0


class TestCancelGuards:
    def test_double_cancel(self, booking_service, gym, make_user, make_class):
        gym_class = make_class(drop_in_enabled=True)
        booking = _book(booking_service, gym, gym_class, make_user())
        booking_service.cancel_booking(gym.id, booking.id, is_staff=True)

        with pytest.raises(BusinessRuleException) as exc:
            booking_service.cancel_booking(gym.id, booking.id, is_staff=True)
        assert exc.value.code == "already-cancelled"

    def test_member_cannot_cancel_someone_else(
        self, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(drop_in_enabled=True)
        booking = _book(booking_service, gym, gym_class, make_user())
        intruder = make_user()

        with pytest.raises(ForbiddenException):
            booking_service.cancel_booking(gym.id, booking.id, actor_id=intruder.id)

    def test_unknown_booking(self, booking_service, gym):
        with pytest.raises(NotFoundException):
            booking_service.cancel_booking(gym.id, "nope", is_staff=True)

    def test_booking_from_other_gym_not_found(
        self, db, booking_service, gym, make_user, make_class
    ):
        from gymbook.models import Gym

        other = Gym(name="Other Gym", timezone="UTC")
        db.add(other)
        db.commit()
        gym_class = make_class(drop_in_enabled=True)
        booking = _book(booking_service, gym, gym_class, make_user())

        with pytest.raises(NotFoundException):
            booking_service.cancel_booking(other.id, booking.id, is_staff=True)


class TestPromotion:
    def test_cancel_promotes_earliest_waitlisted(
        self, db, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(max_capacity=1, drop_in_enabled=True)
        seated, first_waiting, second_waiting = make_user(), make_user(), make_user()
        seat = _book(booking_service, gym, gym_class, seated)
        waiting_1 = _book(booking_service, gym, gym_class, first_waiting)
        waiting_2 = _book(booking_service, gym, gym_class, second_waiting)

        result = booking_service.cancel_booking(gym.id, seat.id, is_staff=True)

        assert result["promoted"] == 1
        assert result["promoted_id"] == waiting_1.id
        promoted = db.get(Attendance, waiting_1.id)
        assert promoted.status == "booked"
        assert promoted.promoted_at is not None
        assert db.get(Attendance, waiting_2.id).status == "waitlisted"
        usage = db.get(MemberWeeklyUsage, (gym.id, first_waiting.id, MONDAY))
        assert usage.active_count == 1

    def test_cancel_locks_class_then_members_then_booking(
        self, booking_service, gym, make_user, make_class, lock_log
    ):
        gym_class = make_class(max_capacity=1, drop_in_enabled=True)
        seat = _book(booking_service, gym, gym_class, make_user())
        _book(booking_service, gym, gym_class, make_user())
        lock_log(booking_service.class_repository, "get_for_gym", "class")
        lock_log(booking_service.member_repository, "lock_many", "members")
        locks = lock_log(booking_service.attendance_repository, "get_for_gym", "attendance")

        result = booking_service.cancel_booking(gym.id, seat.id, is_staff=True)

        assert result["promoted"] == 1
        assert locks == ["class", "members", "attendance"]

    def test_promotion_does_not_charge_again(
        self, db, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(max_capacity=1, credit_cost=1)
        seat = _book(booking_service, gym, gym_class, make_user(credits=1))
        waiting_member = make_user(credits=3)
        _book(booking_service, gym, gym_class, waiting_member)
        assert waiting_member.class_credits == 2

        booking_service.cancel_booking(gym.id, seat.id, is_staff=True)

        assert waiting_member.class_credits == 2
        debits = (
            db.query(CreditLog)
            .filter(CreditLog.user_id == waiting_member.id, CreditLog.amount < 0)
            .count()
        )
        assert debits == 1

    def test_no_promotion_when_overbooked(self, db, booking_service, gym, make_user, make_class):
        gym_class = make_class(max_capacity=1, drop_in_enabled=True)
        _book(booking_service, gym, gym_class, make_user())
        forced = _book(
            booking_service,
            gym,
            gym_class,
            make_user(),
            BookingOptions(is_staff=True, force=True),
        )
        waiting = _book(booking_service, gym, gym_class, make_user())

        result = booking_service.cancel_booking(gym.id, forced.id, is_staff=True)

        assert result["promoted"] == 0
        assert result["promoted_id"] is None
        assert db.get(Attendance, waiting.id).status == "waitlisted"

    def test_cancelling_waitlisted_entry_promotes_nobody(
        self, db, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(max_capacity=1, drop_in_enabled=True)
        _book(booking_service, gym, gym_class, make_user())
        first = _book(booking_service, gym, gym_class, make_user())
        second = _book(booking_service, gym, gym_class, make_user())

        result = booking_service.cancel_booking(gym.id, first.id, is_staff=True)

        assert result["promoted"] == 0
        assert db.get(Attendance, second.id).status == "waitlisted"

    def test_no_promotion_into_cancelled_session(
        self, db, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(max_capacity=1, drop_in_enabled=True)
        seat = _book(booking_service, gym, gym_class, make_user())
        waiting = _book(booking_service, gym, gym_class, make_user())
        gym_class.cancelled_dates = [MONDAY]
        db.commit()

        result = booking_service.cancel_booking(gym.id, seat.id, is_staff=True)

        assert result["promoted"] == 0
        assert db.get(Attendance, waiting.id).status == "waitlisted"

    def test_cancel_decrements_weekly_usage(
        self, db, booking_service, gym, make_user, make_class
    ):
        gym_class = make_class(drop_in_enabled=True)
        member = make_user()
        booking = _book(booking_service, gym, gym_class, member)
        assert db.get(MemberWeeklyUsage, (gym.id, member.id, MONDAY)).active_count == 1

        booking_service.cancel_booking(gym.id, booking.id, is_staff=True)

        assert db.get(MemberWeeklyUsage, (gym.id, member.id, MONDAY)).active_count == 0
