"""
Sonar Client Package.

Async HTTP clients for SonarQube servers, selected per
server from its reported version.

Modules:
- types: Descriptors, snapshots, capabilities, errors
- client: Base client and shared quality profile endpoints
- sonar6: SonarQube 6.3+ client
- sonar56: Pre-6.3 client
- selector: Version probe and client selection
"""

from sonar_client.client import DEFAULT_SECURITY_METRICS, SonarClient, parse_sonar_date
from sonar_client.selector import SonarClientSelector, parse_version
from sonar_client.sonar56 import Sonar56Client
from sonar_client.sonar6 import Sonar6Client
from sonar_client.types import (
    ClientCapabilities,
    FetchError,
    ProjectSnapshot,
    QualityPayload,
    ResponseFormatError,
    ServerDescriptor,
    SonarClientError,
)

__all__ = [
    "DEFAULT_SECURITY_METRICS",
    "SonarClient",
    "parse_sonar_date",
    "SonarClientSelector",
    "parse_version",
    "Sonar56Client",
    "Sonar6Client",
    "ClientCapabilities",
    "FetchError",
    "ProjectSnapshot",
    "QualityPayload",
    "ResponseFormatError",
    "ServerDescriptor",
    "SonarClientError",
]
