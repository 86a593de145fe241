"""
Sonar Client - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for talking to Sonar servers.

- Server descriptors (endpoint, display name, credentials)
- Fetched project and quality snapshots
- Client capability flags
- Fetch error types

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable data structures where possible
- One structured descriptor per server, never parallel lists
- No persistence concerns

============================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID


# =============================================================
# SERVER DESCRIPTOR
# =============================================================

@dataclass(frozen=True)
class ServerDescriptor:
    """One configured Sonar server."""
    url: str
    nice_name: str = ""
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None

    def auth(self) -> Optional[Tuple[str, str]]:
        """
        Basic auth tuple for httpx.

        A token wins over username/password and is sent as the
        username with an empty password.
        """
        if self.token:
            return (self.token, "")
        if self.username:
            return (self.username, self.password or "")
        return None

    def to_public_dict(self) -> Dict[str, str]:
        """Descriptor without credentials, safe to persist or log."""
        return {"url": self.url, "nice_name": self.nice_name}


# =============================================================
# FETCHED SNAPSHOTS
# =============================================================

@dataclass(frozen=True)
class ProjectSnapshot:
    """A project as listed by a Sonar server."""
    instance_url: str
    project_id: str
    project_name: str
    project_key: Optional[str] = None

    def identity_key(self, collector_id: Optional[UUID]) -> Tuple[Optional[UUID], str, str]:
        return (collector_id, self.instance_url, self.project_id)


@dataclass
class QualityPayload:
    """Current security metrics of one project."""
    name: str
    timestamp: int
    metrics: List[Dict[str, Any]] = field(default_factory=list)
    version: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class ClientCapabilities:
    """What a server's protocol version allows."""
    version: float
    supports_change_history: bool

    @classmethod
    def for_version(cls, version: float) -> "ClientCapabilities":
        # Changelog APIs do not exist before 5.0
        return cls(version=version, supports_change_history=version >= 5.0)


# =============================================================
# ERROR TYPES
# =============================================================

class SonarClientError(Exception):
    """Base exception for Sonar client errors."""

    def __init__(
        self,
        message: str,
        source: str,
        recoverable: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.source = source
        self.recoverable = recoverable
        self.details = details or {}


class FetchError(SonarClientError):
    """Error fetching data from a Sonar server."""
    pass


class ResponseFormatError(FetchError):
    """A Sonar server answered with an unexpected payload."""

    def __init__(self, message: str, source: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, source=source, recoverable=False, details=details)
