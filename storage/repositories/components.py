"""
Dashboard Component Repository.

============================================================
SCOPE
============================================================
Reference resolver for the collector: exposes which sonar
projects are attached to dashboard components and persists
components after their references are detached.

Reference filtering happens in Python because the layout
of the collector_items JSON column is not queryable in a
portable way.

============================================================
"""

from typing import Iterable, List, Set
from uuid import UUID

from sqlalchemy.orm import Session

from storage.models.components import DashboardComponent
from storage.repositories.base import BaseRepository


class ComponentRepository(BaseRepository[DashboardComponent]):
    """Repository for dashboard components."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, DashboardComponent, "ComponentRepository")

    def find_by_collector_type_and_item_ids(
        self,
        scan_kind: str,
        item_ids: Iterable[UUID],
    ) -> List[DashboardComponent]:
        """Components referencing any of item_ids under scan_kind."""
        targets = {str(item_id) for item_id in item_ids}
        if not targets:
            return []
        return [
            component for component in self.find_all()
            if any(str(item["id"]) in targets for item in component.items_for(scan_kind))
        ]

    def referenced_item_ids(self, scan_kind: str, collector_id: UUID) -> Set[str]:
        """
        Ids of items referenced under scan_kind by this collector.

        References owned by another collector are ignored.
        """
        owner = str(collector_id)
        return {
            str(item["id"])
            for component in self.find_all()
            for item in component.items_for(scan_kind)
            if str(item.get("collector_id")) == owner
        }
