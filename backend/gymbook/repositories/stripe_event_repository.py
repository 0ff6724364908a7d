from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..models._types import utc_now
from ..models.stripe_event import StripeEvent
from .base_repository import BaseRepository


class StripeEventRepository(BaseRepository[StripeEvent]):
    def __init__(self, db: Session):
        super().__init__(db, StripeEvent)

    def is_processed(self, event_id: str) -> bool:
        event = self.get_by_id(event_id)
        return bool(event and event.processed)

    def record_processed(
        self,
        event_id: str,
        event_type: str,
        *,
        gym_id: Optional[str] = None,
        summary: Optional[Dict[str, Any]] = None,
    ) -> StripeEvent:
        event = self.get_by_id(event_id)
        if event is None:
            event = StripeEvent(id=event_id, type=event_type)
            self.db.add(event)
        event.gym_id = gym_id
        event.summary = summary or {}
        event.processed = True
        event.processed_at = utc_now()
        self.db.flush()
        return event
