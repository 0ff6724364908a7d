from typing import Iterable, List

from sqlalchemy.orm import Session

from ..models.membership_tier import MembershipTier
from .base_repository import BaseRepository


class TierRepository(BaseRepository[MembershipTier]):
    def __init__(self, db: Session):
        super().__init__(db, MembershipTier)

    def list_for_gym(self, gym_id: str, *, active_only: bool = False) -> List[MembershipTier]:
        query = self._build_query().filter(MembershipTier.gym_id == gym_id)
        if active_only:
            query = query.filter(MembershipTier.active.is_(True))
        return self._execute_query(query.order_by(MembershipTier.name))

    def list_public_active(self, gym_id: str, tier_ids: Iterable[str]) -> List[MembershipTier]:
        ids = list(tier_ids)
        if not ids:
            return []
        query = self._build_query().filter(
            MembershipTier.gym_id == gym_id,
            MembershipTier.id.in_(ids),
            MembershipTier.visibility == "public",
            MembershipTier.active.is_(True),
        )
        return self._execute_query(query.order_by(MembershipTier.price, MembershipTier.name))
