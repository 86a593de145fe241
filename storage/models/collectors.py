"""
Collector Registration ORM Model.

============================================================
PURPOSE
============================================================
Persists one row per collector instance. Its id is the
collector identity that owns projects and config history.
Credentials are never stored here.

============================================================
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, JSONPayload, TimestampMixin


class CollectorRecord(Base, TimestampMixin):
    """Registration row for a collector instance."""

    __tablename__ = "collectors"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    collector_type: Mapped[str] = mapped_column(String(50), nullable=False)

    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    last_executed: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Epoch millis of the last completed cycle"
    )

    servers: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONPayload,
        nullable=False,
        default=list,
        comment="Configured servers as [{url, nice_name}]"
    )
