"""
Sonar Project Repository.

============================================================
SCOPE
============================================================
Manages SonarProject records: the collector items created by
discovery and toggled/deleted by reconciliation.

============================================================
"""

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from storage.models.projects import SonarProject
from storage.repositories.base import BaseRepository


class SonarProjectRepository(BaseRepository[SonarProject]):
    """Repository for sonar project collector items."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, SonarProject, "SonarProjectRepository")

    def find_by_collector_ids(self, collector_ids: Iterable[UUID]) -> List[SonarProject]:
        """
        All projects owned by any of the given collectors.

        Args:
            collector_ids: Collector identity ids

        Returns:
            List of SonarProject, oldest first
        """
        ids = list(collector_ids)
        if not ids:
            return []
        stmt = (
            select(SonarProject)
            .where(SonarProject.collector_id.in_(ids))
            .order_by(SonarProject.created_at, SonarProject.project_id)
        )
        return self._execute_query(stmt)

    def find_project(
        self,
        collector_id: UUID,
        instance_url: str,
        project_id: str,
    ) -> Optional[SonarProject]:
        """Find a project by its identity triple."""
        stmt = select(SonarProject).where(
            and_(
                SonarProject.collector_id == collector_id,
                SonarProject.instance_url == instance_url,
                SonarProject.project_id == project_id,
            )
        )
        return self._execute_first(stmt)

    def find_enabled_projects(
        self,
        collector_id: UUID,
        instance_url: str,
    ) -> List[SonarProject]:
        """Enabled projects of one collector on one server."""
        stmt = (
            select(SonarProject)
            .where(
                and_(
                    SonarProject.collector_id == collector_id,
                    SonarProject.instance_url == instance_url,
                    SonarProject.enabled.is_(True),
                )
            )
            .order_by(SonarProject.project_name)
        )
        return self._execute_query(stmt)
