"""
Base ORM Model and Column Types.

============================================================
PURPOSE
============================================================
Provides the declarative base and the portable column types
used by all ORM models of the collector.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- JSONPayload: JSON column, JSONB on PostgreSQL
- TimestampMixin: Row bookkeeping timestamps

============================================================
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# JSONB in production, plain JSON elsewhere (tests run on SQLite)
JSONPayload = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    All collector tables inherit from this base so a single
    metadata object can create the schema.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
        uuid.UUID: Uuid(as_uuid=True),
    }


class TimestampMixin:
    """
    Mixin providing row bookkeeping columns.

    These are database-side audit stamps and never take part
    in dedup keys; dedup uses epoch-millisecond integers.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last update timestamp (UTC)"
    )
