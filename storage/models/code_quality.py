"""
Code Quality ORM Model.

============================================================
PURPOSE
============================================================
Timestamped security-quality snapshots for sonar projects.

============================================================
DATA LIFECYCLE
============================================================
- Mutability: IMMUTABLE (append-only)
- At most one row per (collector_item_id, timestamp),
  enforced by a unique constraint

============================================================
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, JSONPayload, TimestampMixin


SECURITY_ANALYSIS = "SECURITY_ANALYSIS"


class CodeQuality(Base, TimestampMixin):
    """
    One quality observation for one SonarProject.

    metrics holds the list of measures as returned by the
    server, normalized to {name, value, formatted_value,
    status} dictionaries.
    """

    __tablename__ = "code_quality"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    collector_item_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        comment="Owning SonarProject id"
    )

    timestamp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Analysis time, epoch millis"
    )

    name: Mapped[str] = mapped_column(String(512), nullable=False, default="")

    version: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=SECURITY_ANALYSIS,
    )

    url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    metrics: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONPayload,
        nullable=False,
        default=list,
    )

    __table_args__ = (
        UniqueConstraint(
            "collector_item_id", "timestamp",
            name="uq_code_quality_item_timestamp",
        ),
    )
