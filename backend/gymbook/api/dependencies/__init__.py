# backend/gymbook/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from ...auth import get_current_principal, get_optional_principal, require_staff
from .database import get_db
from .services import (
    get_booking_service,
    get_class_service,
    get_credit_service,
    get_eligibility_service,
    get_schedule_service,
    get_stripe_connect_service,
    get_stripe_webhook_service,
    get_waitlist_service,
)

__all__ = [
    # Auth
    "get_current_principal",
    "get_optional_principal",
    "require_staff",
    # Database
    "get_db",
    # Services
    "get_booking_service",
    "get_class_service",
    "get_credit_service",
    "get_eligibility_service",
    "get_schedule_service",
    "get_stripe_connect_service",
    "get_stripe_webhook_service",
    "get_waitlist_service",
]
