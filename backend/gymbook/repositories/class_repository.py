from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import ClassStatus
from ..models.attendance import Attendance
from ..models.gym_class import GymClass
from .base_repository import BaseRepository


class ClassRepository(BaseRepository[GymClass]):
    def __init__(self, db: Session):
        super().__init__(db, GymClass)

    def get_for_gym(
        self, gym_id: str, class_id: str, *, for_update: bool = False
    ) -> Optional[GymClass]:
        query = self._build_query().filter(GymClass.id == class_id, GymClass.gym_id == gym_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_for_gym(self, gym_id: str, *, include_archived: bool = False) -> List[GymClass]:
        query = self._build_query().filter(GymClass.gym_id == gym_id)
        if not include_archived:
            query = query.filter(GymClass.status == ClassStatus.ACTIVE.value)
        return self._execute_query(query.order_by(GymClass.time, GymClass.name))

    def has_attendance(self, class_id: str) -> bool:
        return (
            self.db.query(Attendance.id).filter(Attendance.class_id == class_id).first()
            is not None
        )

    def referencing_tier(self, gym_id: str, tier_id: str) -> List[GymClass]:
        # JSON containment differs per dialect; the per-gym class list is small.
        return [
            gym_class
            for gym_class in self.list_for_gym(gym_id, include_archived=True)
            if tier_id in (gym_class.allowed_membership_ids or [])
        ]
