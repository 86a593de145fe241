"""
Storage Models Package.

ORM models for the collector database, one module per
record kind.

============================================================
MODEL ORGANIZATION
============================================================
- collectors.py:     CollectorRecord
- projects.py:       SonarProject
- code_quality.py:   CodeQuality
- config_history.py: ConfigHistory, ConfigOperation
- components.py:     DashboardComponent

============================================================
DESIGN PRINCIPLES
============================================================
- Dedup timestamps are epoch milliseconds (BIGINT)
- Dedup invariants are backed by unique constraints
- No business logic in models beyond reference mutation
  helpers on DashboardComponent

============================================================
"""

from storage.models.base import Base, JSONPayload, TimestampMixin
from storage.models.collectors import CollectorRecord
from storage.models.projects import ProjectKey, SonarProject
from storage.models.code_quality import SECURITY_ANALYSIS, CodeQuality
from storage.models.config_history import ConfigHistory, ConfigOperation
from storage.models.components import STATIC_SECURITY_SCAN, DashboardComponent

__all__ = [
    "Base",
    "JSONPayload",
    "TimestampMixin",
    "CollectorRecord",
    "ProjectKey",
    "SonarProject",
    "SECURITY_ANALYSIS",
    "CodeQuality",
    "ConfigHistory",
    "ConfigOperation",
    "STATIC_SECURITY_SCAN",
    "DashboardComponent",
]
