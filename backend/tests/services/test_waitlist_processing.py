"""
Tests for WaitlistService: placement rule and batch promotion.
"""

import pytest

from gymbook.core.enums import BookingStatus
from gymbook.core.exceptions import NotFoundException
from gymbook.models import Attendance
from gymbook.services.booking_service import BookingOptions, BookingService, SessionRef
from gymbook.services.waitlist_service import WaitlistService, resolve_booking_status

MONDAY = "2030-01-07"


@pytest.mark.parametrize(
    "active,waiting,capacity,expected",
    [
        (0, 0, 1, BookingStatus.BOOKED),
        (1, 0, 1, BookingStatus.WAITLISTED),
        (0, 1, 5, BookingStatus.WAITLISTED),
        (4, 0, 5, BookingStatus.BOOKED),
    ],
)
def test_resolve_booking_status(active, waiting, capacity, expected):
    assert resolve_booking_status(active, waiting, capacity) == expected


def test_force_always_books():
    assert resolve_booking_status(10, 3, 1, force=True) == BookingStatus.BOOKED


@pytest.fixture
def full_session(db, gym, make_user, make_class):
    """A one-seat session with one booked member and three on the waitlist."""
    gym_class = make_class(max_capacity=1, drop_in_enabled=True)
    service = BookingService(db)
    results = [
        service.book_member(
            gym.id,
            SessionRef(class_id=gym_class.id, date_string=MONDAY),
            make_user().id,
            BookingOptions(is_staff=True),
        )
        for _ in range(4)
    ]
    return gym_class, results


def test_process_waitlist_fills_new_seats_in_order(db, gym, full_session):
    gym_class, results = full_session
    gym_class.max_capacity = 3
    db.commit()

    result = WaitlistService(db).process_waitlist(gym.id, gym_class.id, MONDAY)

    assert result == {"success": True, "promoted": 2}
    statuses = [db.get(Attendance, r.id).status for r in results]
    assert statuses == ["booked", "booked", "booked", "waitlisted"]


def test_process_waitlist_is_idempotent(db, gym, full_session):
    gym_class, _ = full_session
    gym_class.max_capacity = 2
    db.commit()
    service = WaitlistService(db)

    assert service.process_waitlist(gym.id, gym_class.id, MONDAY)["promoted"] == 1
    assert service.process_waitlist(gym.id, gym_class.id, MONDAY)["promoted"] == 0


def test_process_waitlist_without_free_seats(db, gym, full_session):
    gym_class, _ = full_session
    assert WaitlistService(db).process_waitlist(gym.id, gym_class.id, MONDAY)["promoted"] == 0


def test_process_waitlist_skips_cancelled_session(db, gym, full_session):
    gym_class, _ = full_session
    gym_class.max_capacity = 10
    gym_class.cancelled_dates = [MONDAY]
    db.commit()

    assert WaitlistService(db).process_waitlist(gym.id, gym_class.id, MONDAY)["promoted"] == 0


def test_process_waitlist_unknown_class(db, gym):
    with pytest.raises(NotFoundException):
        WaitlistService(db).process_waitlist(gym.id, "missing", MONDAY)
