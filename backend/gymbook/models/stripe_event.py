# backend/gymbook/models/stripe_event.py
from sqlalchemy import JSON, Boolean, Column, DateTime, String

from ..database import Base
from ._types import utc_now


class StripeEvent(Base):
    """Processed webhook event log keyed by the Stripe event id."""

    __tablename__ = "stripe_events"

    id = Column(String(255), primary_key=True)
    type = Column(String(100), nullable=False)
    gym_id = Column(String(26), nullable=True, index=True)
    processed = Column(Boolean, nullable=False, default=False)
    summary = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    processed_at = Column(DateTime(timezone=True), nullable=True)
