"""
Tests for CreditService: every balance change writes one signed ledger row.
"""

import pytest

from gymbook.core.exceptions import (
    InsufficientCreditsException,
    NotFoundException,
    ValidationException,
)
from gymbook.models import CreditLog
from gymbook.services.credit_service import CreditService


@pytest.fixture
def credit_service(db):
    return CreditService(db)


def test_admin_adjustment_adds_credits(db, credit_service, owner, make_user):
    member = make_user(credits=1)

    result = credit_service.adjust_user_credits(member.id, 5, "Comp for injury", owner.id)

    assert result["success"] is True
    assert result["new_balance"] == 6
    entry = db.get(CreditLog, result["log_id"])
    assert entry.amount == 5
    assert entry.balance_after == 6
    assert entry.type == "admin_adjustment"
    assert entry.description == "Comp for injury"
    assert entry.created_by == owner.id


def test_admin_adjustment_default_reason(db, credit_service, owner, make_user):
    member = make_user(credits=3)
    result = credit_service.adjust_user_credits(member.id, -2, None, owner.id)
    assert db.get(CreditLog, result["log_id"]).description == "Admin manual adjustment"
    assert member.class_credits == 1


def test_adjustment_cannot_go_negative(db, credit_service, owner, make_user):
    member = make_user(credits=2)

    with pytest.raises(InsufficientCreditsException) as exc:
        credit_service.adjust_user_credits(member.id, -3, "Oops", owner.id)

    assert exc.value.message == "Insufficient Credits. (Requires 3, you have 2)"
    assert member.class_credits == 2
    assert db.query(CreditLog).count() == 0


def test_zero_adjustment_rejected(credit_service, owner, make_user):
    member = make_user()
    with pytest.raises(ValidationException):
        credit_service.adjust_user_credits(member.id, 0, None, owner.id)


def test_adjusting_unknown_user(credit_service, owner):
    with pytest.raises(NotFoundException):
        credit_service.adjust_user_credits("ghost", 1, None, owner.id)


def test_purchase_credits(db, credit_service, gym, make_user):
    member = make_user(credits=0)

    entry = credit_service.purchase_credits(
        member.id, 10, "Purchased: 10 Class Pack", gym_id=gym.id
    )

    assert entry.type == "purchase"
    assert entry.amount == 10
    assert entry.balance_after == 10
    assert entry.created_by == "system"
    assert member.class_credits == 10


def test_purchase_rejects_non_positive(credit_service, make_user):
    member = make_user()
    with pytest.raises(ValidationException):
        credit_service.purchase_credits(member.id, 0, "Nothing")


def test_debit_and_credit_require_positive_amounts(credit_service, make_user):
    member = make_user(credits=5)
    with pytest.raises(ValidationException):
        credit_service.debit(member, 0, "zero")
    with pytest.raises(ValidationException):
        credit_service.credit(member, -1, "negative")


def test_ledger_sums_to_balance(db, credit_service, owner, make_user):
    from gymbook.repositories.factory import RepositoryFactory

    member = make_user(credits=0)
    credit_service.purchase_credits(member.id, 8, "Purchased: 8 class pack")
    credit_service.adjust_user_credits(member.id, -3, "Correction", owner.id)
    credit_service.adjust_user_credits(member.id, 1, "Goodwill", owner.id)

    repository = RepositoryFactory.create_credit_log_repository(db)
    assert repository.sum_for_user(member.id) == member.class_credits == 6


def test_history_newest_first_and_filtered(credit_service, owner, gym, make_user):
    member = make_user()
    credit_service.adjust_user_credits(member.id, 1, "first", owner.id, gym_id=gym.id)
    credit_service.adjust_user_credits(member.id, 2, "second", owner.id, gym_id=gym.id)
    credit_service.adjust_user_credits(member.id, 3, "elsewhere", owner.id)

    history = credit_service.get_user_credit_history(member.id)
    assert [entry["description"] for entry in history] == ["elsewhere", "second", "first"]

    for_gym = credit_service.get_user_credit_history(member.id, gym_id=gym.id)
    assert [entry["description"] for entry in for_gym] == ["second", "first"]

    limited = credit_service.get_user_credit_history(member.id, limit=1)
    assert len(limited) == 1
    assert limited[0]["balance_after"] == 6
