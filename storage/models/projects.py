"""
Sonar Project ORM Model.

============================================================
PURPOSE
============================================================
One remote project known to one collector + server pair.
This is the "collector item" that dashboards attach to.

============================================================
LIFECYCLE
============================================================
- Created by discovery when first seen (disabled)
- enabled toggled only by reconciliation from dashboard
  references
- Deleted by reconciliation when no longer discoverable,
  not referenced and not pushed

============================================================
"""

import uuid
from typing import Optional, Tuple

from sqlalchemy import BigInteger, Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin


# (collector id, instance url, remote project id)
ProjectKey = Tuple[Optional[uuid.UUID], str, str]


class SonarProject(Base, TimestampMixin):
    """
    A SonarQube project tracked by a collector.

    ============================================================
    IDENTITY
    ============================================================
    Two rows are "the same project" iff (collector_id,
    instance_url, project_id) matches, regardless of the other
    columns. Historical duplicates may share a key, so the
    triple is indexed but not unique.

    ============================================================
    PUSHED RECORDS
    ============================================================
    pushed=True marks rows written through the API rather than
    discovered. They are never deleted by the collector.

    ============================================================
    """

    __tablename__ = "sonar_projects"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
        comment="Collector item identifier"
    )

    collector_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        nullable=True,
        comment="Owning collector identity"
    )

    instance_url: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="Sonar server endpoint"
    )

    project_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Remote project identifier"
    )

    project_name: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        default="",
        comment="Remote project key/name"
    )

    description: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
    )

    nice_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Display name of the owning server"
    )

    enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="True while referenced by a dashboard"
    )

    pushed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Created out-of-band via API push"
    )

    last_updated: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Epoch millis of the last stored quality observation"
    )

    __table_args__ = (
        Index("idx_sonar_projects_identity", "collector_id", "instance_url", "project_id"),
        Index("idx_sonar_projects_enabled", "collector_id", "instance_url", "enabled"),
    )

    @property
    def identity_key(self) -> ProjectKey:
        """Key used for diffing fetched against stored projects."""
        return (self.collector_id, self.instance_url, self.project_id)

    def __repr__(self) -> str:
        return (
            f"SonarProject(id={self.id}, instance_url={self.instance_url!r}, "
            f"project_id={self.project_id!r}, enabled={self.enabled})"
        )
