"""
Configuration History ORM Model.

============================================================
PURPOSE
============================================================
Records quality profile configuration changes reported by
the Sonar changelog API.

============================================================
DATA LIFECYCLE
============================================================
- Mutability: IMMUTABLE (append-only)
- Dedup key: (collector_item_id, user_id, operation,
  timestamp); payload differences are not distinguished

============================================================
"""

import enum
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import BigInteger, Enum, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, JSONPayload, TimestampMixin


class ConfigOperation(str, enum.Enum):
    """Kind of change applied to a quality profile."""
    CREATED = "CREATED"
    DELETED = "DELETED"
    CHANGED = "CHANGED"


class ConfigHistory(Base, TimestampMixin):
    """
    One configuration change event.

    collector_item_id holds the collector identity id: the
    history is tracked per collector, not per project.
    """

    __tablename__ = "collector_item_config_history"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    collector_item_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        comment="Owning collector identity"
    )

    user_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        comment="Author login, empty when the server reports none"
    )

    operation: Mapped[ConfigOperation] = mapped_column(
        Enum(ConfigOperation, name="config_operation", native_enum=False),
        nullable=False,
    )

    timestamp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Change time, epoch millis"
    )

    change_map: Mapped[Dict[str, Any]] = mapped_column(
        JSONPayload,
        nullable=False,
        default=dict,
    )

    __table_args__ = (
        UniqueConstraint(
            "collector_item_id", "user_id", "operation", "timestamp",
            name="uq_config_history_change",
        ),
    )

    @property
    def dedup_key(self):
        return (self.collector_item_id, self.user_id, self.operation, self.timestamp)
