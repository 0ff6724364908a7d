# backend/gymbook/routes/stripe_connect.py
"""
Stripe Connect routes - API v1

Endpoints:
    POST /stripe/account-link - Start or resume gym onboarding
    POST /stripe/account-link/refresh - New onboarding link for a connected gym
    POST /stripe/login-link - Dashboard link for the connected account
    POST /stripe/verify-account - Refresh the gym's connected-account status
    POST /stripe/webhook - Stripe event receiver (signature-verified, no auth)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ..api.dependencies import (
    get_optional_principal,
    get_stripe_connect_service,
    get_stripe_webhook_service,
)
from ..auth import Principal
from ..schemas.stripe import (
    AccountLinkRequest,
    AccountLinkResponse,
    AccountStatusResponse,
    VerifyAccountRequest,
    WebhookAck,
)
from ..services.stripe_connect_service import StripeConnectService
from ..services.stripe_webhook_service import StripeWebhookService

router = APIRouter(prefix="/stripe", tags=["stripe-v1"])


@router.post("/account-link", response_model=AccountLinkResponse)
def create_account_link(
    payload: AccountLinkRequest,
    principal: Optional[Principal] = Depends(get_optional_principal),
    connect_service: StripeConnectService = Depends(get_stripe_connect_service),
) -> AccountLinkResponse:
    result = connect_service.create_stripe_account_link(principal, payload.gym_id, payload.origin)
    return AccountLinkResponse(**result)


@router.post("/account-link/refresh", response_model=AccountLinkResponse)
def refresh_account_link(
    payload: AccountLinkRequest,
    principal: Optional[Principal] = Depends(get_optional_principal),
    connect_service: StripeConnectService = Depends(get_stripe_connect_service),
) -> AccountLinkResponse:
    result = connect_service.create_stripe_account_link_refresh(
        principal, payload.gym_id, payload.origin, payload.return_path
    )
    return AccountLinkResponse(**result)


@router.post("/login-link", response_model=AccountLinkResponse)
def create_login_link(
    payload: VerifyAccountRequest,
    principal: Optional[Principal] = Depends(get_optional_principal),
    connect_service: StripeConnectService = Depends(get_stripe_connect_service),
) -> AccountLinkResponse:
    result = connect_service.create_stripe_login_link(principal, payload.gym_id)
    return AccountLinkResponse(**result)


@router.post("/verify-account", response_model=AccountStatusResponse)
def verify_account(
    payload: VerifyAccountRequest,
    principal: Optional[Principal] = Depends(get_optional_principal),
    connect_service: StripeConnectService = Depends(get_stripe_connect_service),
) -> AccountStatusResponse:
    result = connect_service.verify_stripe_account(principal, payload.gym_id)
    return AccountStatusResponse(**result)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    webhook_service: StripeWebhookService = Depends(get_stripe_webhook_service),
) -> WebhookAck:
    payload = await request.body()
    return WebhookAck(**webhook_service.handle_webhook(payload, stripe_signature))
