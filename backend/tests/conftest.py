# backend/tests/conftest.py
"""
Pytest configuration.

Settings are pinned to an in-memory SQLite database BEFORE any gymbook
import, so the module-level engine never points at a real database. Every
test gets a fresh schema.
"""

import os

# Set test configuration BEFORE any gymbook imports!
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["ALLOWED_ORIGINS"] = "http://localhost:5173,http://localhost:5174"

from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session

from gymbook import models  # noqa: F401  (register tables)
from gymbook.auth import create_access_token
from gymbook.core.enums import MembershipStatus, RoleName
from gymbook.database import Base, SessionLocal, engine
from gymbook.models import Gym, GymClass, GymMembership, MembershipTier, User


@pytest.fixture(autouse=True)
def _schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(
        *,
        name: Optional[str] = None,
        credits: int = 0,
        status: str = MembershipStatus.ACTIVE.value,
        email: Optional[str] = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"Member {counter['n']}",
            email=email or f"member{counter['n']}@example.com",
            class_credits=credits,
            status=status,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def owner(make_user: Callable[..., User]) -> User:
    return make_user(name="Gym Owner", email="owner@example.com")


@pytest.fixture
def gym(db: Session, owner: User) -> Gym:
    gym = Gym(
        name="Iron Temple",
        owner_id=owner.id,
        timezone="UTC",
        grading_programs=[
            {
                "id": "bjj",
                "name": "Brazilian Jiu-Jitsu",
                "ranks": [{"id": "white", "name": "White Belt"}, {"id": "blue", "name": "Blue"}],
            }
        ],
    )
    db.add(gym)
    db.commit()
    return gym


@pytest.fixture
def make_tier(db: Session, gym: Gym) -> Callable[..., MembershipTier]:
    def _make(
        *,
        name: str = "Unlimited",
        weekly_limit: Optional[int] = None,
        price: str = "99.00",
        visibility: str = "public",
        active: bool = True,
    ) -> MembershipTier:
        tier = MembershipTier(
            gym_id=gym.id,
            name=name,
            price=Decimal(price),
            weekly_limit=weekly_limit,
            visibility=visibility,
            active=active,
        )
        db.add(tier)
        db.commit()
        return tier

    return _make


@pytest.fixture
def make_class(db: Session, gym: Gym) -> Callable[..., GymClass]:
    def _make(
        *,
        name: str = "Fundamentals",
        time: str = "18:00",
        max_capacity: Optional[int] = 10,
        credit_cost: int = 0,
        drop_in_enabled: bool = False,
        allowed_membership_ids: Optional[List[str]] = None,
        program_id: Optional[str] = None,
        booking_rules: Optional[Dict[str, Any]] = None,
        instructor_name: Optional[str] = "Coach Sam",
    ) -> GymClass:
        gym_class = GymClass(
            gym_id=gym.id,
            name=name,
            time=time,
            days=["monday", "wednesday"],
            max_capacity=max_capacity,
            credit_cost=credit_cost,
            drop_in_enabled=drop_in_enabled,
            allowed_membership_ids=allowed_membership_ids or [],
            cancelled_dates=[],
            program_id=program_id,
            booking_rules=booking_rules,
            instructor_name=instructor_name,
        )
        db.add(gym_class)
        db.commit()
        return gym_class

    return _make


@pytest.fixture
def make_membership(db: Session, gym: Gym) -> Callable[..., GymMembership]:
    def _make(
        user: User,
        tier: MembershipTier,
        *,
        status: str = MembershipStatus.ACTIVE.value,
        subscription_id: Optional[str] = None,
    ) -> GymMembership:
        membership = GymMembership(
            gym_id=gym.id,
            membership_id=tier.id,
            status=status,
            stripe_subscription_id=subscription_id,
        )
        user.memberships.append(membership)
        db.commit()
        return membership

    return _make


@pytest.fixture
def lock_log(monkeypatch: pytest.MonkeyPatch) -> Callable[..., List[str]]:
    """Record, in order, which repository lookups take row locks."""
    entries: List[str] = []

    def _watch(repository: Any, method: str, label: str) -> List[str]:
        original = getattr(repository, method)

        def _recording(*args: Any, **kwargs: Any) -> Any:
            if method == "lock_many" or kwargs.get("for_update"):
                entries.append(label)
            return original(*args, **kwargs)

        monkeypatch.setattr(repository, method, _recording)
        return entries

    return _watch


# ============================================================================
# HTTP client
# ============================================================================


@pytest.fixture
def client() -> Iterator[TestClient]:
    from gymbook.main import app

    with TestClient(app) as test_client:
        yield test_client


def _bearer(user_id: str, role: str = RoleName.MEMBER.value) -> Dict[str, str]:
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    return _bearer


@pytest.fixture
def staff_headers(owner: User) -> Dict[str, str]:
    return _bearer(owner.id, RoleName.ADMIN.value)
