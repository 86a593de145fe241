"""
Configuration History Repository.

============================================================
SCOPE
============================================================
Append-only store of quality profile change events.

============================================================
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, desc, select
from sqlalchemy.orm import Session

from storage.models.config_history import ConfigHistory, ConfigOperation
from storage.repositories.base import BaseRepository


class ConfigHistoryRepository(BaseRepository[ConfigHistory]):
    """Repository for quality profile configuration changes."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, ConfigHistory, "ConfigHistoryRepository")

    def find_profile_config_changes(
        self,
        collector_id: UUID,
        user_id: Optional[str],
        operation: ConfigOperation,
        timestamp: int,
    ) -> List[ConfigHistory]:
        """
        Lookup by the change event dedup key.

        A missing author login is stored and matched as "".
        """
        stmt = select(ConfigHistory).where(
            and_(
                ConfigHistory.collector_item_id == collector_id,
                ConfigHistory.user_id == (user_id or ""),
                ConfigHistory.operation == operation,
                ConfigHistory.timestamp == timestamp,
            )
        )
        return self._execute_query(stmt)

    def list_by_collector(
        self,
        collector_id: UUID,
        limit: int = 100,
    ) -> List[ConfigHistory]:
        """Change events of one collector, newest first."""
        stmt = (
            select(ConfigHistory)
            .where(ConfigHistory.collector_item_id == collector_id)
            .order_by(desc(ConfigHistory.timestamp))
            .limit(limit)
        )
        return self._execute_query(stmt)
