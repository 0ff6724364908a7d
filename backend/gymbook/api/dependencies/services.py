# backend/gymbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets service instances bound to its own database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.class_service import ClassService
from ...services.credit_service import CreditService
from ...services.eligibility_service import EligibilityService
from ...services.schedule_service import ScheduleService
from ...services.stripe_connect_service import StripeConnectService
from ...services.stripe_webhook_service import StripeWebhookService
from ...services.waitlist_service import WaitlistService
from .database import get_db


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_waitlist_service(db: Session = Depends(get_db)) -> WaitlistService:
    return WaitlistService(db)


def get_eligibility_service(db: Session = Depends(get_db)) -> EligibilityService:
    return EligibilityService(db)


def get_credit_service(db: Session = Depends(get_db)) -> CreditService:
    return CreditService(db)


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)


def get_class_service(db: Session = Depends(get_db)) -> ClassService:
    return ClassService(db)


def get_stripe_connect_service(db: Session = Depends(get_db)) -> StripeConnectService:
    return StripeConnectService(db)


def get_stripe_webhook_service(db: Session = Depends(get_db)) -> StripeWebhookService:
    return StripeWebhookService(db)
