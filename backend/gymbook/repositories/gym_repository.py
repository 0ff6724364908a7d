from typing import Optional

from sqlalchemy.orm import Session

from ..models.gym import Gym
from .base_repository import BaseRepository


class GymRepository(BaseRepository[Gym]):
    def __init__(self, db: Session):
        super().__init__(db, Gym)

    def get_by_stripe_account(self, account_id: str) -> Optional[Gym]:
        return self.find_one_by(stripe_account_id=account_id)
