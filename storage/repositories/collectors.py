"""
Collector Registration Repository.

============================================================
SCOPE
============================================================
Finds or registers the collector row whose id is the
collector identity for a run.

============================================================
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.collectors import CollectorRecord
from storage.repositories.base import BaseRepository


class CollectorRepository(BaseRepository[CollectorRecord]):
    """Repository for collector registrations."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, CollectorRecord, "CollectorRepository")

    def find_by_name(self, name: str) -> Optional[CollectorRecord]:
        stmt = select(CollectorRecord).where(CollectorRecord.name == name)
        return self._execute_first(stmt)

    def register(
        self,
        name: str,
        collector_type: str,
        servers: List[Dict[str, Any]],
    ) -> CollectorRecord:
        """
        Find the collector by name, creating it if missing, and
        replace its server list with the configured one.

        Returns:
            The persisted CollectorRecord
        """
        record = self.find_by_name(name)
        if record is None:
            record = CollectorRecord(
                name=name,
                collector_type=collector_type,
                enabled=True,
                online=True,
                servers=servers,
            )
            self._logger.info(f"Registering new collector {name}")
        else:
            record.servers = servers
            record.online = True
        return self.save(record)

    def mark_executed(self, record: CollectorRecord, executed_at: int) -> CollectorRecord:
        record.last_executed = executed_at
        return self.save(record)
