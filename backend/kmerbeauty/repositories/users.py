"""
User repository - account lookups and role counts.
"""
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, select

from kmerbeauty.lib.errors import translate_db_errors
from kmerbeauty.models.users import User
from kmerbeauty.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    """Repository for user database operations"""
    
    def get_role(self, user_id: UUID) -> Optional[str]:
        with translate_db_errors("get_user_role"):
            return self.db.execute(
                select(User.role).where(User.id == user_id)
            ).scalar_one_or_none()
    
    def users_by_ids(self, user_ids: Iterable[UUID]) -> List[User]:
        """Batch lookup; an empty id set issues no query"""
        ids = list(set(user_ids))
        if not ids:
            return []
        with translate_db_errors("users_by_ids"):
            return list(self.db.execute(select(User).where(User.id.in_(ids))).scalars().all())
    
    def count_users(
        self,
        role: str,
        is_active: Optional[bool] = None,
        is_verified: Optional[bool] = None,
    ) -> int:
        """
        Count users of a role, optionally filtered by flags.
        
        Args:
            role: CLIENT, PROVIDER or ADMIN
            is_active: Only active (True) or inactive (False) accounts
            is_verified: Only verified (True) or unverified (False) accounts
        """
        stmt = select(func.count(User.id)).where(User.role == role)
        if is_active is not None:
            stmt = stmt.where(User.is_active.is_(is_active))
        if is_verified is not None:
            stmt = stmt.where(User.is_verified.is_(is_verified))
        with translate_db_errors("count_users"):
            return int(self.db.execute(stmt).scalar() or 0)
