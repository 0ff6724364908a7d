"""
Tests for StripeWebhookService: signature verification, at-most-once
processing and each handled event type.
"""

from unittest.mock import patch

import pytest
import stripe

from gymbook.core.exceptions import ServiceException, ValidationException
from gymbook.models import CreditLog, StripeEvent
from gymbook.services.stripe_webhook_service import StripeWebhookService


@pytest.fixture
def webhook_service(db) -> StripeWebhookService:
    return StripeWebhookService(db, webhook_secret="whsec_test")


def _event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


class TestSignature:
    @patch("stripe.Webhook.construct_event")
    def test_valid_signature_dispatches(self, mock_construct, webhook_service):
        mock_construct.return_value = _event("evt_1", "payout.paid", {})

        result = webhook_service.handle_webhook(b"{}", "t=1,v1=abc")

        mock_construct.assert_called_once_with(b"{}", "t=1,v1=abc", "whsec_test")
        assert result == {"received": True, "duplicate": False, "handled": False}

    @patch("stripe.Webhook.construct_event")
    def test_invalid_signature(self, mock_construct, webhook_service):
        mock_construct.side_effect = stripe.SignatureVerificationError("Invalid", "sig")

        with pytest.raises(ValidationException) as exc:
            webhook_service.handle_webhook(b"{}", "sig")

        assert exc.value.code == "invalid-signature"
        assert exc.value.status_code == 400
        assert exc.value.message.startswith("Webhook Error:")

    @patch("stripe.Webhook.construct_event")
    def test_invalid_payload(self, mock_construct, webhook_service):
        mock_construct.side_effect = ValueError("Expecting value")

        with pytest.raises(ValidationException) as exc:
            webhook_service.handle_webhook(b"not json", "sig")
        assert exc.value.code == "invalid-payload"

    def test_requires_secret(self, db):
        service = StripeWebhookService(db, webhook_secret="")
        with pytest.raises(ServiceException, match="Webhook secret not configured"):
            service.handle_webhook(b"{}", "sig")


class TestIdempotency:
    def test_duplicate_event_is_skipped(self, db, webhook_service, gym, make_user):
        member = make_user(credits=0)
        event = _event(
            "evt_pack",
            "checkout.session.completed",
            {
                "id": "cs_1",
                "metadata": {
                    "type": "class_pack",
                    "gymId": gym.id,
                    "userId": member.id,
                    "credits": "5",
                },
            },
        )

        first = webhook_service.handle_webhook_event(event)
        second = webhook_service.handle_webhook_event(event)

        assert first == {"received": True, "duplicate": False, "handled": True}
        assert second == {"received": True, "duplicate": True, "handled": False}
        assert member.class_credits == 5
        stored = db.get(StripeEvent, "evt_pack")
        assert stored.processed is True
        assert stored.gym_id == gym.id

    def test_failed_handler_is_not_recorded(self, db, webhook_service, gym):
        event = _event(
            "evt_broken",
            "checkout.session.completed",
            {"metadata": {"type": "class_pack", "gymId": gym.id, "userId": "ghost", "credits": 3}},
        )

        result = webhook_service.handle_webhook_event(event)

        assert result["received"] is True
        assert result["handled"] is False
        assert "error" in result
        assert db.get(StripeEvent, "evt_broken") is None

    def test_unknown_event_type(self, db, webhook_service):
        result = webhook_service.handle_webhook_event(_event("evt_x", "charge.refunded", {}))
        assert result == {"received": True, "duplicate": False, "handled": False}
        assert db.get(StripeEvent, "evt_x") is None


class TestAccountUpdated:
    def test_updates_gym_by_metadata(self, db, webhook_service, gym):
        event = _event(
            "evt_acct",
            "account.updated",
            {
                "id": "acct_9",
                "metadata": {"gymId": gym.id},
                "charges_enabled": True,
                "payouts_enabled": False,
                "details_submitted": True,
                "requirements": {"disabled_reason": None},
            },
        )

        result = webhook_service.handle_webhook_event(event)

        assert result["handled"] is True
        assert gym.stripe_account_status == "PENDING_VERIFICATION"
        assert gym.stripe_charges_enabled is True
        assert gym.stripe_details_submitted is True

    def test_updates_gym_by_account_id(self, db, webhook_service, gym):
        gym.stripe_account_id = "acct_known"
        db.commit()
        event = _event(
            "evt_acct2",
            "account.updated",
            {"id": "acct_known", "charges_enabled": True, "payouts_enabled": True},
        )

        webhook_service.handle_webhook_event(event)

        assert gym.stripe_account_status == "ACTIVE"

    def test_unknown_account_is_ignored(self, webhook_service):
        result = webhook_service.handle_webhook_event(
            _event("evt_acct3", "account.updated", {"id": "acct_nobody"})
        )
        assert result["handled"] is False


class TestCheckoutCompleted:
    def test_class_pack_credits_member(self, db, webhook_service, gym, make_user):
        member = make_user(credits=2)
        event = _event(
            "evt_cp",
            "checkout.session.completed",
            {
                "id": "cs_2",
                "metadata": {
                    "type": "class_pack",
                    "gymId": gym.id,
                    "userId": member.id,
                    "credits": "10",
                    "packName": "10 Class Pack",
                },
            },
        )

        webhook_service.handle_webhook_event(event)

        assert member.class_credits == 12
        entry = db.query(CreditLog).filter(CreditLog.user_id == member.id).one()
        assert entry.type == "purchase"
        assert entry.amount == 10
        assert entry.description == "Purchased: 10 Class Pack"
        assert entry.gym_id == gym.id

    def test_membership_purchase_activates_prospect(
        self, db, webhook_service, gym, make_user, make_tier
    ):
        tier = make_tier(name="Unlimited")
        prospect = make_user(status="prospect")
        event = _event(
            "evt_mem",
            "checkout.session.completed",
            {
                "id": "cs_3",
                "customer": "cus_123",
                "subscription": "sub_123",
                "metadata": {
                    "type": "membership",
                    "gymId": gym.id,
                    "userId": prospect.id,
                    "membershipId": tier.id,
                },
            },
        )

        result = webhook_service.handle_webhook_event(event)

        assert result["handled"] is True
        membership = prospect.membership_for(gym.id)
        assert membership.status == "active"
        assert membership.membership_id == tier.id
        assert membership.stripe_subscription_id == "sub_123"
        assert prospect.status == "active"
        assert prospect.stripe_customer_id == "cus_123"

    def test_membership_purchase_updates_existing_membership(
        self, webhook_service, gym, make_user, make_tier, make_membership
    ):
        old_tier = make_tier(name="Basic")
        new_tier = make_tier(name="Unlimited")
        member = make_user()
        make_membership(member, old_tier, status="archived")
        event = _event(
            "evt_mem2",
            "checkout.session.completed",
            {
                "subscription": "sub_new",
                "metadata": {
                    "type": "membership",
                    "gymId": gym.id,
                    "userId": member.id,
                    "membershipId": new_tier.id,
                },
            },
        )

        webhook_service.handle_webhook_event(event)

        assert len(member.memberships) == 1
        assert member.memberships[0].membership_id == new_tier.id
        assert member.memberships[0].status == "active"

    def test_missing_gym_id_is_ignored(self, webhook_service, make_user):
        member = make_user()
        result = webhook_service.handle_webhook_event(
            _event(
                "evt_nogym",
                "checkout.session.completed",
                {"metadata": {"type": "class_pack", "userId": member.id, "credits": 5}},
            )
        )
        assert result["handled"] is False
        assert member.class_credits == 0

    def test_shop_order_is_acknowledged_only(self, webhook_service, gym, make_user):
        member = make_user()
        result = webhook_service.handle_webhook_event(
            _event(
                "evt_shop",
                "checkout.session.completed",
                {"metadata": {"type": "shop_order", "gymId": gym.id, "userId": member.id}},
            )
        )
        assert result == {"received": True, "duplicate": False, "handled": False}


class TestSubscriptionLifecycle:
    @pytest.fixture
    def subscribed(self, gym, make_user, make_tier, make_membership):
        member = make_user()
        return make_membership(member, make_tier(), subscription_id="sub_live")

    def test_payment_failed_marks_past_due(self, webhook_service, subscribed):
        webhook_service.handle_webhook_event(
            _event("evt_f", "invoice.payment_failed", {"subscription": "sub_live"})
        )
        assert subscribed.status == "past_due"

    def test_invoice_paid_reactivates(self, db, webhook_service, subscribed):
        subscribed.status = "past_due"
        db.commit()
        webhook_service.handle_webhook_event(
            _event("evt_p", "invoice.paid", {"subscription": "sub_live"})
        )
        assert subscribed.status == "active"

    @pytest.mark.parametrize(
        "stripe_status,expected",
        [
            ("trialing", "trialing"),
            ("unpaid", "past_due"),
            ("canceled", "archived"),
            ("incomplete_expired", "archived"),
        ],
    )
    def test_subscription_updated_maps_status(
        self, webhook_service, subscribed, stripe_status, expected
    ):
        webhook_service.handle_webhook_event(
            _event(
                f"evt_u_{stripe_status}",
                "customer.subscription.updated",
                {"id": "sub_live", "status": stripe_status},
            )
        )
        assert subscribed.status == expected

    def test_unmapped_status_left_alone(self, webhook_service, subscribed):
        result = webhook_service.handle_webhook_event(
            _event("evt_inc", "customer.subscription.updated", {"id": "sub_live", "status": "incomplete"})
        )
        assert result["handled"] is False
        assert subscribed.status == "active"

    def test_subscription_deleted_archives(self, webhook_service, subscribed):
        webhook_service.handle_webhook_event(
            _event("evt_d", "customer.subscription.deleted", {"id": "sub_live"})
        )
        assert subscribed.status == "archived"

    def test_unknown_subscription(self, webhook_service):
        result = webhook_service.handle_webhook_event(
            _event("evt_unknown_sub", "invoice.paid", {"subscription": "sub_missing"})
        )
        assert result["handled"] is False
