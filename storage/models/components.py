"""
Dashboard Component ORM Model.

============================================================
PURPOSE
============================================================
Dashboard components reference collector items by scan
kind. The collector reads these references to decide which
projects are enabled and detaches them before deletion.

============================================================
COLLECTOR ITEMS LAYOUT
============================================================
{
    "StaticSecurityScan": [
        {"id": "<sonar project uuid>", "collector_id": "<uuid>"},
        ...
    ],
    "<other scan kind>": [...]
}

============================================================
"""

import uuid
from typing import Any, Dict, List

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, JSONPayload, TimestampMixin


STATIC_SECURITY_SCAN = "StaticSecurityScan"


class DashboardComponent(Base, TimestampMixin):
    """A dashboard component and its collector item references."""

    __tablename__ = "components"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    collector_items: Mapped[Dict[str, List[Dict[str, Any]]]] = mapped_column(
        JSONPayload,
        nullable=False,
        default=dict,
    )

    def items_for(self, scan_kind: str) -> List[Dict[str, Any]]:
        """Referenced items for a scan kind, skipping malformed entries."""
        items = (self.collector_items or {}).get(scan_kind) or []
        return [item for item in items if isinstance(item, dict) and item.get("id")]

    def references(self, scan_kind: str, item_id: uuid.UUID) -> bool:
        target = str(item_id)
        return any(str(item["id"]) == target for item in self.items_for(scan_kind))

    def attach_item(
        self,
        scan_kind: str,
        item_id: uuid.UUID,
        collector_id: uuid.UUID,
    ) -> None:
        """Add a reference unless it is already present."""
        if self.references(scan_kind, item_id):
            return
        mapping = dict(self.collector_items or {})
        mapping[scan_kind] = list(mapping.get(scan_kind) or []) + [
            {"id": str(item_id), "collector_id": str(collector_id)}
        ]
        # Reassign so the JSON column is flagged dirty
        self.collector_items = mapping

    def detach_item(self, scan_kind: str, item_id: uuid.UUID) -> bool:
        """
        Remove every reference to item_id under scan_kind.

        The scan kind key is dropped entirely once its list is
        empty. Returns True if anything was removed.
        """
        mapping = dict(self.collector_items or {})
        if scan_kind not in mapping:
            return False

        target = str(item_id)
        before = list(mapping.get(scan_kind) or [])
        after = [
            item for item in before
            if not (isinstance(item, dict) and str(item.get("id")) == target)
        ]
        removed = len(after) != len(before)
        if not removed and after:
            return False

        if after:
            mapping[scan_kind] = after
        else:
            mapping.pop(scan_kind)
        self.collector_items = mapping
        return removed
