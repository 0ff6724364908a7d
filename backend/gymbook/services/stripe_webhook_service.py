# backend/gymbook/services/stripe_webhook_service.py
"""
Stripe webhook processing.

Events are verified against the signing secret, then applied at most once:
every handled event id is recorded in ``stripe_events`` in the same
transaction as its effects. Handler failures are logged and acknowledged so
Stripe does not redeliver an event that can never succeed; the event is not
marked processed and can be replayed by hand.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.constants import SYSTEM_ACTOR
from ..core.enums import MembershipStatus
from ..core.exceptions import ServiceException, ValidationException
from ..models.member import GymMembership
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .credit_service import CreditService
from .stripe_connect_service import apply_account_status, read_field

# Stripe subscription status -> gym membership status
SUBSCRIPTION_STATUS_MAP = {
    "active": MembershipStatus.ACTIVE.value,
    "trialing": MembershipStatus.TRIALING.value,
    "past_due": MembershipStatus.PAST_DUE.value,
    "unpaid": MembershipStatus.PAST_DUE.value,
    "canceled": MembershipStatus.ARCHIVED.value,
    "incomplete_expired": MembershipStatus.ARCHIVED.value,
}

HandlerResult = Tuple[bool, Optional[str], Dict[str, Any]]


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class StripeWebhookService(BaseService):
    def __init__(self, db: Session, webhook_secret: Optional[str] = None):
        super().__init__(db)
        self.webhook_secret = (
            webhook_secret
            if webhook_secret is not None
            else settings.stripe_webhook_secret.get_secret_value()
        )
        self.gym_repository = RepositoryFactory.create_gym_repository(db)
        self.member_repository = RepositoryFactory.create_member_repository(db)
        self.stripe_event_repository = RepositoryFactory.create_stripe_event_repository(db)
        self.credit_service = CreditService(db)

        self._handlers: Dict[str, Callable[[Dict[str, Any]], HandlerResult]] = {
            "account.updated": self._handle_account_updated,
            "checkout.session.completed": self._handle_checkout_completed,
            "invoice.paid": self._handle_invoice_paid,
            "invoice.payment_failed": self._handle_invoice_payment_failed,
            "customer.subscription.updated": self._handle_subscription_updated,
            "customer.subscription.deleted": self._handle_subscription_deleted,
        }

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Any:
        if not self.webhook_secret:
            raise ServiceException("Webhook secret not configured")
        try:
            return stripe.Webhook.construct_event(payload, signature or "", self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            self.logger.warning(f"Webhook signature verification failed: {str(e)}")
            raise ValidationException(f"Webhook Error: {str(e)}", code="invalid-signature")
        except ValueError as e:
            self.logger.warning(f"Invalid webhook payload: {str(e)}")
            raise ValidationException(f"Webhook Error: {str(e)}", code="invalid-payload")

    @BaseService.measure_operation("stripe_handle_webhook")
    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify and process one webhook delivery."""
        event = self.construct_event(payload, signature)
        return self.handle_webhook_event(event)

    def handle_webhook_event(self, event: Any) -> Dict[str, Any]:
        """Process an already-verified event."""
        event_id = read_field(event, "id")
        event_type = read_field(event, "type") or ""
        self.logger.info(f"Received Stripe event: {event_type} ({event_id})")

        if event_id and self.stripe_event_repository.is_processed(event_id):
            self.logger.info(f"Event {event_id} already processed, skipping.")
            prometheus_metrics.inc_webhook_event(event_type, "duplicate")
            return {"received": True, "duplicate": True, "handled": False}

        handler = self._handlers.get(event_type)
        if handler is None:
            self.logger.info(f"Unhandled webhook event type: {event_type}")
            prometheus_metrics.inc_webhook_event(event_type, "ignored")
            return {"received": True, "duplicate": False, "handled": False}

        data_object = read_field(read_field(event, "data"), "object") or {}
        try:
            with self.transaction():
                handled, gym_id, summary = handler(data_object)
                if event_id:
                    self.stripe_event_repository.record_processed(
                        event_id, event_type, gym_id=gym_id, summary=summary
                    )
        except Exception as e:
            self.logger.exception(f"Error processing webhook event {event_id}: {str(e)}")
            prometheus_metrics.inc_webhook_event(event_type, "error")
            return {"received": True, "duplicate": False, "handled": False, "error": str(e)}

        prometheus_metrics.inc_webhook_event(event_type, "handled" if handled else "ignored")
        return {"received": True, "duplicate": False, "handled": handled}

    # ------------------------------------------------------------------ #
    # Handlers: each returns (handled, gym_id, summary) and never commits
    # ------------------------------------------------------------------ #

    def _handle_account_updated(self, account: Dict[str, Any]) -> HandlerResult:
        account_id = read_field(account, "id")
        gym_id = read_field(read_field(account, "metadata"), "gymId")

        gym = self.gym_repository.get_by_id(gym_id) if gym_id else None
        if gym is None and account_id:
            gym = self.gym_repository.get_by_stripe_account(account_id)
        if gym is None:
            self.logger.info(f"No gym found for Stripe account {account_id}")
            return False, None, {"account_id": account_id}

        status = apply_account_status(gym, account)
        self.logger.info(f"Updated gym {gym.id} Stripe status to {status.value}")
        return (
            True,
            gym.id,
            {
                "status": status.value,
                "charges_enabled": gym.stripe_charges_enabled,
                "payouts_enabled": gym.stripe_payouts_enabled,
            },
        )

    def _handle_checkout_completed(self, session: Dict[str, Any]) -> HandlerResult:
        metadata = read_field(session, "metadata") or {}
        purchase_type = read_field(metadata, "type")
        gym_id = read_field(metadata, "gymId")
        user_id = read_field(metadata, "userId")
        summary: Dict[str, Any] = {
            "session_id": read_field(session, "id"),
            "purchase_type": purchase_type,
            "user_id": user_id,
            "amount_total": read_field(session, "amount_total"),
        }

        if not gym_id:
            self.logger.info("No gymId in session metadata, cannot process.")
            return False, None, summary
        if not user_id:
            self.logger.info(f"No userId in session metadata for {purchase_type} purchase")
            return False, gym_id, summary

        if purchase_type == "class_pack":
            credits = _as_int(read_field(metadata, "credits"))
            if credits <= 0:
                self.logger.warning(f"Class pack checkout without credits: {summary['session_id']}")
                return False, gym_id, summary
            pack_name = read_field(metadata, "packName") or f"{credits} class pack"
            entry = self.credit_service.purchase_credits(
                user_id,
                credits,
                f"Purchased: {pack_name}",
                gym_id=gym_id,
                created_by=SYSTEM_ACTOR,
                use_transaction=False,
            )
            summary.update(credits=credits, balance_after=entry.balance_after)
            return True, gym_id, summary

        if purchase_type == "membership":
            user = self.member_repository.get_by_id(user_id, for_update=True)
            if user is None:
                self.logger.warning(f"Membership checkout for unknown user {user_id}")
                return False, gym_id, summary
            fields: Dict[str, Any] = {"status": MembershipStatus.ACTIVE.value}
            tier_id = read_field(metadata, "membershipId")
            if tier_id:
                fields["membership_id"] = tier_id
            subscription_id = read_field(session, "subscription")
            if subscription_id:
                fields["stripe_subscription_id"] = subscription_id
            self.member_repository.upsert_membership(user_id, gym_id, **fields)

            customer_id = read_field(session, "customer")
            if customer_id and not user.stripe_customer_id:
                user.stripe_customer_id = customer_id
            if (user.status or "").lower() == MembershipStatus.PROSPECT.value:
                user.status = MembershipStatus.ACTIVE.value
            summary.update(membership_id=tier_id, subscription_id=subscription_id)
            return True, gym_id, summary

        self.logger.info(f"Unknown purchase type: {purchase_type}")
        return False, gym_id, summary

    def _set_subscription_status(
        self, subscription_id: Optional[str], status: str
    ) -> Tuple[bool, Optional[GymMembership]]:
        if not subscription_id:
            return False, None
        membership = self.member_repository.get_membership_by_subscription(subscription_id)
        if membership is None:
            self.logger.info(f"No membership found for subscription {subscription_id}")
            return False, None
        membership.status = status
        self.db.flush()
        return True, membership

    def _subscription_result(
        self, subscription_id: Optional[str], status: str
    ) -> HandlerResult:
        handled, membership = self._set_subscription_status(subscription_id, status)
        gym_id = membership.gym_id if membership is not None else None
        return handled, gym_id, {"subscription_id": subscription_id, "status": status}

    def _handle_invoice_paid(self, invoice: Dict[str, Any]) -> HandlerResult:
        return self._subscription_result(
            read_field(invoice, "subscription"), MembershipStatus.ACTIVE.value
        )

    def _handle_invoice_payment_failed(self, invoice: Dict[str, Any]) -> HandlerResult:
        return self._subscription_result(
            read_field(invoice, "subscription"), MembershipStatus.PAST_DUE.value
        )

    def _handle_subscription_updated(self, subscription: Dict[str, Any]) -> HandlerResult:
        stripe_status = read_field(subscription, "status")
        status = SUBSCRIPTION_STATUS_MAP.get(stripe_status or "")
        if status is None:
            self.logger.info(f"Subscription status {stripe_status} left unchanged")
            return False, None, {"subscription_id": read_field(subscription, "id")}
        return self._subscription_result(read_field(subscription, "id"), status)

    def _handle_subscription_deleted(self, subscription: Dict[str, Any]) -> HandlerResult:
        return self._subscription_result(
            read_field(subscription, "id"), MembershipStatus.ARCHIVED.value
        )
