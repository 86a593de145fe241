"""
Collector Package.

Reconciles stored sonar projects, quality observations and
quality profile changes with what the configured servers
report.

Modules:
- reconciliation: Enable/disable and deletion of projects
- discovery: Project creation and refresh
- quality: Quality observation refresh
- config_history: Quality profile change tracking
- task: One collection cycle
- config: Settings and collector identity
- cli: Command-line entry point
"""

from collector.config import (
    CollectorIdentity,
    CollectorSettings,
    build_server_descriptors,
    get_settings,
    set_settings,
)
from collector.config_history import (
    ConfigHistoryTracker,
    convert_to_timestamp,
    determine_operation,
)
from collector.discovery import IngestResult, ProjectDiscovery
from collector.quality import QualityRefresher
from collector.reconciliation import ReconciliationEngine
from collector.task import CycleResult, SonarSecurityCollectorTask

__all__ = [
    "CollectorIdentity",
    "CollectorSettings",
    "build_server_descriptors",
    "get_settings",
    "set_settings",
    "ConfigHistoryTracker",
    "convert_to_timestamp",
    "determine_operation",
    "IngestResult",
    "ProjectDiscovery",
    "QualityRefresher",
    "ReconciliationEngine",
    "CycleResult",
    "SonarSecurityCollectorTask",
]
