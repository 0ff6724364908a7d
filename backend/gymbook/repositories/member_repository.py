# backend/gymbook/repositories/member_repository.py
"""
Member repository.

Member rows are the lock target for every balance and weekly-usage change.
When several members are locked in one unit of work they are locked in
ascending id order.
"""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.member import GymMembership, User
from .base_repository import BaseRepository


class MemberRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def lock_many(self, user_ids: Iterable[str]) -> List[User]:
        ids = sorted(set(user_ids))
        if not ids:
            return []
        query = (
            self._build_query()
            .filter(User.id.in_(ids))
            .order_by(User.id)
            .with_for_update()
        )
        return self._execute_query(query)

    def get_membership(self, user_id: str, gym_id: str) -> Optional[GymMembership]:
        return (
            self.db.query(GymMembership)
            .filter(GymMembership.user_id == user_id, GymMembership.gym_id == gym_id)
            .first()
        )

    def get_membership_by_subscription(self, subscription_id: str) -> Optional[GymMembership]:
        return (
            self.db.query(GymMembership)
            .filter(GymMembership.stripe_subscription_id == subscription_id)
            .first()
        )

    def upsert_membership(self, user_id: str, gym_id: str, **fields: object) -> GymMembership:
        membership = self.get_membership(user_id, gym_id)
        if membership is None:
            user = self.get_by_id(user_id)
            if user is None:
                raise RepositoryException(f"User {user_id} not found")
            membership = GymMembership(gym_id=gym_id)
            # Through the collection so a loaded user sees the new membership
            user.memberships.append(membership)
        for key, value in fields.items():
            setattr(membership, key, value)
        self.db.flush()
        return membership

    def count_tier_references(self, tier_id: str) -> int:
        return self.db.query(GymMembership).filter(GymMembership.membership_id == tier_id).count()
