from typing import Optional

from sqlalchemy.orm import Session

from ..models.member_rank import MemberRank
from .base_repository import BaseRepository


class RankRepository(BaseRepository[MemberRank]):
    def __init__(self, db: Session):
        super().__init__(db, MemberRank)

    def get(self, member_id: str, gym_id: str, program_id: str) -> Optional[MemberRank]:
        return self.db.get(MemberRank, (member_id, gym_id, program_id))
