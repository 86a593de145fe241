"""
Code Quality Repository.

============================================================
SCOPE
============================================================
Append-only store of quality observations. Observations are
never updated or deleted by the collector.

============================================================
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, desc, select
from sqlalchemy.orm import Session

from storage.models.code_quality import CodeQuality
from storage.repositories.base import BaseRepository


class CodeQualityRepository(BaseRepository[CodeQuality]):
    """Repository for code quality observations."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, CodeQuality, "CodeQualityRepository")

    def find_by_collector_item_id_and_timestamp(
        self,
        collector_item_id: UUID,
        timestamp: int,
    ) -> Optional[CodeQuality]:
        """Lookup by the observation dedup key."""
        stmt = select(CodeQuality).where(
            and_(
                CodeQuality.collector_item_id == collector_item_id,
                CodeQuality.timestamp == timestamp,
            )
        )
        return self._execute_first(stmt)

    def list_by_collector_item_id(
        self,
        collector_item_id: UUID,
        limit: int = 100,
    ) -> List[CodeQuality]:
        """Observations of one project, newest first."""
        stmt = (
            select(CodeQuality)
            .where(CodeQuality.collector_item_id == collector_item_id)
            .order_by(desc(CodeQuality.timestamp))
            .limit(limit)
        )
        return self._execute_query(stmt)
