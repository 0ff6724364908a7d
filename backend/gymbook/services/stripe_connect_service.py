# backend/gymbook/services/stripe_connect_service.py
"""
Stripe Connect onboarding for gyms.

Each gym connects one standard Stripe account. The account id and the last
known capability flags live on the gym row; the webhook keeps them current
and ``verify_stripe_account`` refreshes them on demand.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
import stripe

from ..auth import Principal
from ..core.config import settings
from ..core.enums import RoleName, StripeAccountStatus
from ..core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ServiceException,
    UnauthorizedException,
    ValidationException,
)
from ..models.gym import Gym
from ..repositories.factory import RepositoryFactory
from .base import BaseService

DEFAULT_RETURN_PATH = "/admin/settings"
STANDARD_DASHBOARD_URL = "https://dashboard.stripe.com"


def read_field(obj: Any, name: str) -> Any:
    """Read ``name`` from a Stripe object, plain dict or test double."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def derive_account_status(account: Any) -> StripeAccountStatus:
    if read_field(account, "charges_enabled") and read_field(account, "payouts_enabled"):
        return StripeAccountStatus.ACTIVE
    if read_field(read_field(account, "requirements"), "disabled_reason"):
        return StripeAccountStatus.RESTRICTED
    if read_field(account, "details_submitted"):
        return StripeAccountStatus.PENDING_VERIFICATION
    return StripeAccountStatus.PENDING


def apply_account_status(gym: Gym, account: Any) -> StripeAccountStatus:
    """Copy the account's capability flags onto ``gym``; the caller commits."""
    status = derive_account_status(account)
    gym.stripe_account_status = status.value
    gym.stripe_charges_enabled = bool(read_field(account, "charges_enabled"))
    gym.stripe_payouts_enabled = bool(read_field(account, "payouts_enabled"))
    gym.stripe_details_submitted = bool(read_field(account, "details_submitted"))
    return status


class StripeConnectService(BaseService):
    """Connected-account onboarding, refresh links and status checks."""

    def __init__(self, db: Session, api_key: Optional[str] = None):
        super().__init__(db)
        self.gym_repository = RepositoryFactory.create_gym_repository(db)
        self.member_repository = RepositoryFactory.create_member_repository(db)

        key = api_key if api_key is not None else settings.stripe_secret_key.get_secret_value()
        self.stripe_configured = bool(key)
        if self.stripe_configured:
            stripe.api_key = key
            stripe.max_network_retries = 1
        else:
            self.logger.warning("Stripe secret key not configured")

    def _check_stripe_configured(self) -> None:
        if not self.stripe_configured:
            raise ServiceException(
                "Stripe service not configured. Please check STRIPE_SECRET_KEY environment variable."
            )

    def _require_principal(self, principal: Optional[Principal]) -> Principal:
        if principal is None:
            raise UnauthorizedException("You must be logged in.")
        return principal

    def _check_origin(self, origin: str) -> None:
        if not settings.is_origin_allowed(origin):
            self.logger.warning("Rejected Stripe redirect origin", extra={"origin": origin})
            raise ForbiddenException("The provided origin is not allowed.")

    def _get_managed_gym(self, principal: Principal, gym_id: str) -> Gym:
        gym = self.gym_repository.get_by_id(gym_id)
        if gym is None:
            raise NotFoundException("Gym not found.")
        if gym.owner_id != principal.uid and principal.role != RoleName.ADMIN.value:
            raise ForbiddenException("You do not manage this gym.")
        return gym

    def _onboarding_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        account_link = stripe.AccountLink.create(
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        url_attr = read_field(account_link, "url")
        return str(url_attr) if url_attr is not None else ""

    @BaseService.measure_operation("stripe_create_account_link")
    def create_stripe_account_link(
        self, principal: Optional[Principal], gym_id: Optional[str], origin: Optional[str]
    ) -> Dict[str, str]:
        """
        Start (or resume) onboarding for a gym's connected account.

        Reuses the gym's existing Stripe account; otherwise creates a standard
        account tagged with the gym and user ids and marks the gym ``PENDING``.

        Returns:
            ``{"url": <account onboarding link>}``
        """
        principal = self._require_principal(principal)
        if not gym_id or not origin:
            raise ValidationException(
                "The function must be called with a 'gymId' and 'origin'.",
                code="invalid-argument",
            )
        self._check_origin(origin)
        gym = self._get_managed_gym(principal, gym_id)
        self._check_stripe_configured()

        refresh_url = f"{origin}/onboarding/step-6?gymId={gym_id}"
        return_url = f"{origin}/onboarding/stripe-success?gymId={gym_id}"

        try:
            account_id = gym.stripe_account_id
            if not account_id:
                owner = self.member_repository.get_by_id(principal.uid)
                account = stripe.Account.create(
                    type="standard",
                    email=principal.email or (owner.email if owner is not None else None),
                    metadata={"gymId": gym_id, "uid": principal.uid},
                )
                account_id = account.id
                with self.transaction():
                    gym.stripe_account_id = account_id
                    gym.stripe_account_status = StripeAccountStatus.PENDING.value
                self.logger.info(f"Created Stripe standard account {account_id} for gym {gym_id}")

            url = self._onboarding_link(account_id, refresh_url, return_url)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating account link: {str(e)}")
            raise ServiceException(f"An error occurred: {str(e)}")
        return {"url": url}

    @BaseService.measure_operation("stripe_create_account_link_refresh")
    def create_stripe_account_link_refresh(
        self,
        principal: Optional[Principal],
        gym_id: Optional[str],
        origin: Optional[str],
        return_path: Optional[str] = None,
    ) -> Dict[str, str]:
        """Fresh onboarding link for an already-connected account, returning to ``return_path``."""
        principal = self._require_principal(principal)
        if not gym_id or not origin:
            raise ValidationException("gymId and origin are required.", code="invalid-argument")
        self._check_origin(origin)
        gym = self._get_managed_gym(principal, gym_id)
        if not gym.stripe_account_id:
            raise BusinessRuleException(
                "No Stripe account connected. Please start fresh onboarding."
            )
        self._check_stripe_configured()

        base_path = return_path or DEFAULT_RETURN_PATH
        try:
            url = self._onboarding_link(
                gym.stripe_account_id,
                f"{origin}{base_path}?stripe_refresh=true&gymId={gym_id}",
                f"{origin}{base_path}?stripe_success=true&gymId={gym_id}",
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error refreshing account link: {str(e)}")
            raise ServiceException(f"Failed to create link: {str(e)}")
        return {"url": url}

    @BaseService.measure_operation("stripe_create_login_link")
    def create_stripe_login_link(
        self, principal: Optional[Principal], gym_id: Optional[str]
    ) -> Dict[str, str]:
        """
        Dashboard login link for the gym's connected account.

        Standard accounts cannot receive login links; they are sent to the
        regular Stripe dashboard instead.
        """
        principal = self._require_principal(principal)
        if not gym_id:
            raise ValidationException("gymId is required.", code="invalid-argument")
        gym = self._get_managed_gym(principal, gym_id)
        if not gym.stripe_account_id:
            raise BusinessRuleException("No Stripe account connected.")
        self._check_stripe_configured()

        try:
            link = stripe.Account.create_login_link(gym.stripe_account_id)
        except stripe.InvalidRequestError:
            return {
                "url": STANDARD_DASHBOARD_URL,
                "note": "Standard accounts should use dashboard.stripe.com directly",
            }
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating login link: {str(e)}")
            raise ServiceException(f"Failed to create login link: {str(e)}")
        return {"url": str(read_field(link, "url") or "")}

    @BaseService.measure_operation("stripe_verify_account")
    def verify_stripe_account(
        self, principal: Optional[Principal], gym_id: Optional[str]
    ) -> Dict[str, Any]:
        """Fetch the connected account from Stripe and store its current status on the gym."""
        principal = self._require_principal(principal)
        if not gym_id:
            raise ValidationException("gymId is required.", code="invalid-argument")
        gym = self._get_managed_gym(principal, gym_id)

        if not gym.stripe_account_id:
            return {
                "success": True,
                "status": StripeAccountStatus.NOT_CONNECTED.value,
                "charges_enabled": False,
                "payouts_enabled": False,
                "details_submitted": False,
                "requirements": None,
            }

        self._check_stripe_configured()
        try:
            account = stripe.Account.retrieve(gym.stripe_account_id)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error verifying account: {str(e)}")
            raise ServiceException(f"Failed to verify account: {str(e)}")

        with self.transaction():
            status = apply_account_status(gym, account)

        requirements = read_field(account, "requirements")
        if requirements is not None and not isinstance(requirements, dict):
            to_dict = getattr(requirements, "to_dict", None)
            requirements = to_dict() if callable(to_dict) else None

        self.log_operation("verify_stripe_account", gym_id=gym_id, status=status.value)
        return {
            "success": True,
            "status": status.value,
            "charges_enabled": gym.stripe_charges_enabled,
            "payouts_enabled": gym.stripe_payouts_enabled,
            "details_submitted": gym.stripe_details_submitted,
            "requirements": requirements,
        }
