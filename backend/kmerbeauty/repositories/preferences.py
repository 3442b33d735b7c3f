"""
Preference repository - JSON values keyed by (user, key).
"""
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert as pg_insert

from kmerbeauty.lib.errors import translate_db_errors
from kmerbeauty.models.preferences import ClientPreference
from kmerbeauty.repositories.base import BaseRepository


class PreferenceRepository(BaseRepository):
    """Repository for persisted client preferences"""
    
    def get_value(self, user_id: UUID, key: str) -> Optional[Any]:
        with translate_db_errors("get_preference"):
            row = self.db.get(ClientPreference, (user_id, key))
        return row.value if row is not None else None
    
    def set_value(self, user_id: UUID, key: str, value: Any) -> None:
        stmt = pg_insert(ClientPreference).values(
            user_id=user_id,
            key=key,
            value=value,
            updated_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ClientPreference.user_id, ClientPreference.key],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        with translate_db_errors("set_preference"):
            self.db.execute(stmt)
            self.db.commit()
