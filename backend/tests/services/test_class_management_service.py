"""
Tests for ClassService: class series lifecycle, session cancellation and
membership tiers.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from gymbook.core.exceptions import NotFoundException, ServiceException, ValidationException
from gymbook.models import Attendance, GymClass, MembershipTier
from gymbook.schemas.classes import ClassCreate, ClassUpdate, TierCreate, TierUpdate
from gymbook.services.booking_service import BookingOptions, BookingService, SessionRef
from gymbook.services.class_service import ClassService

MONDAY = "2030-01-07"


@pytest.fixture
def class_service(db):
    return ClassService(db)


def _book(db, gym, gym_class, member, date=MONDAY):
    return BookingService(db).book_member(
        gym.id,
        SessionRef(class_id=gym_class.id, date_string=date),
        member.id,
        BookingOptions(is_staff=True),
    )


class TestClassSeries:
    def test_create_class(self, class_service, gym):
        gym_class = class_service.create_class(
            gym.id,
            ClassCreate(
                name="No-Gi",
                time="19:30",
                days=["Tuesday", "thursday"],
                max_capacity=20,
                credit_cost=1,
                booking_rules={"cancel_window_hours": None},
            ),
        )

        assert gym_class.days == ["tuesday", "thursday"]
        assert gym_class.status == "active"
        assert gym_class.cancelled_dates == []
        assert gym_class.booking_rules == {"cancel_window_hours": None}

    def test_create_class_for_unknown_gym(self, class_service):
        with pytest.raises(NotFoundException):
            class_service.create_class("nope", ClassCreate(name="X", time="10:00"))

    def test_create_class_rejects_unknown_weekday(self):
        with pytest.raises(ValueError):
            ClassCreate(name="X", time="10:00", days=["someday"])

    def test_update_only_sent_fields(self, class_service, gym, make_class):
        gym_class = make_class(credit_cost=1)

        updated = class_service.update_class(
            gym.id, gym_class.id, ClassUpdate(max_capacity=4, instructor_name=None)
        )

        assert updated.max_capacity == 4
        assert updated.instructor_name is None
        assert updated.credit_cost == 1
        assert updated.name == "Fundamentals"

    def test_update_rejects_null_required_field(self, class_service, gym, make_class):
        gym_class = make_class()
        with pytest.raises(ValidationException):
            class_service.update_class(gym.id, gym_class.id, ClassUpdate(name=None))

    def test_list_hides_archived_by_default(self, db, class_service, gym, make_class):
        active = make_class(name="Active")
        retired = make_class(name="Retired")
        retired.status = "archived"
        db.commit()

        assert [c.id for c in class_service.list_classes(gym.id)] == [active.id]
        assert len(class_service.list_classes(gym.id, include_archived=True)) == 2

    def test_retire_unused_class_deletes(self, db, class_service, gym, make_class):
        gym_class = make_class()
        assert class_service.retire_class(gym.id, gym_class.id) == "deleted"
        assert db.query(GymClass).count() == 0

    def test_retire_class_with_history_archives(
        self, db, class_service, gym, make_user, make_class
    ):
        gym_class = make_class(drop_in_enabled=True)
        _book(db, gym, gym_class, make_user())

        assert class_service.retire_class(gym.id, gym_class.id) == "archived"
        assert db.get(GymClass, gym_class.id).status == "archived"


class TestSessionCancellation:
    def test_cancel_session_refunds_everyone(
        self, db, class_service, gym, owner, make_user, make_class
    ):
        gym_class = make_class(
            max_capacity=1, credit_cost=2, booking_rules={"cancel_window_hours": 1000000}
        )
        seated = make_user(credits=2)
        waiting = make_user(credits=2)
        seat = _book(db, gym, gym_class, seated)
        queued = _book(db, gym, gym_class, waiting)

        result = class_service.cancel_session(gym.id, gym_class.id, MONDAY, actor_id=owner.id)

        assert result == {
            "success": True,
            "cancelled_dates": [MONDAY],
            "cancelled_bookings": 2,
        }
        assert seated.class_credits == 2
        assert waiting.class_credits == 2
        for booking_id in (seat.id, queued.id):
            row = db.get(Attendance, booking_id)
            assert row.status == "cancelled"
            assert row.late_cancel is False

    def test_failed_refund_leaves_session_untouched(
        self, db, class_service, gym, make_user, make_class
    ):
        gym_class = make_class(credit_cost=1)
        members = [make_user(credits=1), make_user(credits=1)]
        bookings = [_book(db, gym, gym_class, member) for member in members]
        cancel_locked = BookingService.cancel_locked
        calls = []

        def fail_on_second(service, *args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise ServiceException("Database operation failed")
            return cancel_locked(service, *args, **kwargs)

        with patch.object(
            BookingService, "cancel_locked", autospec=True, side_effect=fail_on_second
        ):
            with pytest.raises(ServiceException):
                class_service.cancel_session(gym.id, gym_class.id, MONDAY)

        db.expire_all()
        assert len(calls) == 2
        assert db.get(GymClass, gym_class.id).cancelled_dates == []
        assert [db.get(Attendance, b.id).status for b in bookings] == ["booked", "booked"]
        assert [m.class_credits for m in members] == [0, 0]

    def test_cancel_session_is_idempotent(self, class_service, gym, make_class):
        gym_class = make_class()
        class_service.cancel_session(gym.id, gym_class.id, MONDAY)
        result = class_service.cancel_session(gym.id, gym_class.id, MONDAY)
        assert result["cancelled_dates"] == [MONDAY]
        assert result["cancelled_bookings"] == 0

    def test_restore_session(self, class_service, gym, make_class):
        gym_class = make_class()
        class_service.cancel_session(gym.id, gym_class.id, "2030-01-09")
        class_service.cancel_session(gym.id, gym_class.id, MONDAY)

        assert class_service.restore_session(gym.id, gym_class.id, MONDAY) == ["2030-01-09"]

    def test_cancel_session_bad_date(self, class_service, gym, make_class):
        gym_class = make_class()
        with pytest.raises(ValidationException):
            class_service.cancel_session(gym.id, gym_class.id, "Monday")


class TestMembershipTiers:
    def test_create_and_update_tier(self, class_service, gym):
        tier = class_service.create_tier(
            gym.id, TierCreate(name="Twice Weekly", price="79.50", weekly_limit=2)
        )
        assert tier.price == Decimal("79.50")

        updated = class_service.update_tier(gym.id, tier.id, TierUpdate(weekly_limit=3))
        assert updated.weekly_limit == 3
        assert updated.name == "Twice Weekly"

    def test_update_tier_from_other_gym(self, db, class_service, gym, make_tier):
        from gymbook.models import Gym

        tier = make_tier()
        other = Gym(name="Other", timezone="UTC")
        db.add(other)
        db.commit()

        with pytest.raises(NotFoundException):
            class_service.update_tier(other.id, tier.id, TierUpdate(name="Stolen"))

    def test_delete_unused_tier(self, db, class_service, gym, make_tier):
        tier = make_tier()
        assert class_service.delete_tier(gym.id, tier.id) == "deleted"
        assert db.query(MembershipTier).count() == 0

    def test_delete_tier_held_by_member_deactivates(
        self, db, class_service, gym, make_user, make_tier, make_membership
    ):
        tier = make_tier()
        make_membership(make_user(), tier)

        assert class_service.delete_tier(gym.id, tier.id) == "deactivated"
        assert db.get(MembershipTier, tier.id).active is False

    def test_delete_tier_used_by_class_deactivates(
        self, class_service, gym, make_tier, make_class
    ):
        tier = make_tier()
        make_class(allowed_membership_ids=[tier.id])

        assert class_service.delete_tier(gym.id, tier.id) == "deactivated"

    def test_list_active_tiers(self, class_service, gym, make_tier):
        make_tier(name="Basic")
        make_tier(name="Old", active=False)

        assert [t.name for t in class_service.list_tiers(gym.id, active_only=True)] == ["Basic"]
        assert len(class_service.list_tiers(gym.id)) == 2
