"""
Collector - Configuration.

============================================================
CONFIGURABLE SERVERS AND SCHEDULE
============================================================

Configuration can be loaded from:
- Default values
- Environment variables (.env supported)
- YAML config file

The legacy layout of parallel lists (servers, nice names,
usernames, passwords, tokens) is accepted and zipped into
one ServerDescriptor per server at load time. A list shorter
than the server list leaves the remaining fields unset.

============================================================
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import yaml
from dotenv import load_dotenv

from core.exceptions import InvalidConfigError
from sonar_client.client import DEFAULT_SECURITY_METRICS
from sonar_client.types import ServerDescriptor


logger = logging.getLogger(__name__)

DEFAULT_COLLECTOR_NAME = "SonarSecurity"


# =============================================================
# HELPERS
# =============================================================


def _split_list(raw: Optional[str]) -> List[str]:
    """Split a comma separated env value, keeping empty positions."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",")]


def _at(values: Sequence[Any], index: int) -> Optional[Any]:
    """Positional lookup that treats missing or blank entries as unset."""
    if index < len(values):
        value = values[index]
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def build_server_descriptors(
    servers: Sequence[str],
    nice_names: Sequence[str] = (),
    usernames: Sequence[str] = (),
    passwords: Sequence[str] = (),
    tokens: Sequence[str] = (),
) -> Tuple[ServerDescriptor, ...]:
    """Zip the legacy parallel lists into server descriptors."""
    descriptors = []
    for i, url in enumerate(servers):
        if not url or not str(url).strip():
            raise InvalidConfigError("servers", list(servers), f"empty server url at position {i}")
        descriptors.append(
            ServerDescriptor(
                url=str(url).strip().rstrip("/"),
                nice_name=_at(nice_names, i) or "",
                username=_at(usernames, i),
                password=_at(passwords, i),
                token=_at(tokens, i),
            )
        )
    return tuple(descriptors)


# =============================================================
# COLLECTOR IDENTITY
# =============================================================


@dataclass(frozen=True)
class CollectorIdentity:
    """
    The collector instance a cycle runs for.

    Rebuilt wholesale every cycle from settings and the
    persisted collector registration.
    """
    id: UUID
    name: str
    servers: Tuple[ServerDescriptor, ...] = ()

    @property
    def endpoints(self) -> Tuple[str, ...]:
        return tuple(server.url for server in self.servers)

    def has_endpoint(self, url: str) -> bool:
        return url in self.endpoints

    def nice_name_for(self, instance_url: str) -> str:
        """
        Display name of the server a project was fetched from.

        Endpoints match case-insensitively and the first match
        wins, even when its display name is blank. Returns "" when
        nothing matches.
        """
        target = (instance_url or "").lower()
        for server in self.servers:
            if server.url.lower() == target:
                return server.nice_name or ""
        return ""


# =============================================================
# SETTINGS
# =============================================================


@dataclass
class CollectorSettings:
    """Settings for the sonar security collector."""

    collector_name: str = DEFAULT_COLLECTOR_NAME
    servers: Tuple[ServerDescriptor, ...] = ()
    metrics: Tuple[str, ...] = DEFAULT_SECURITY_METRICS

    # HTTP
    timeout_seconds: float = 30.0

    # Schedule (used by the CLI loop only)
    interval_seconds: int = 3600

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.timeout_seconds <= 0:
            raise InvalidConfigError("timeout_seconds", self.timeout_seconds, "must be positive")
        if self.interval_seconds < 1:
            raise InvalidConfigError("interval_seconds", self.interval_seconds, "must be at least 1")
        if not self.metrics:
            raise InvalidConfigError("metrics", self.metrics, "at least one metric key required")

    def identity(self, collector_id: UUID) -> CollectorIdentity:
        return CollectorIdentity(id=collector_id, name=self.collector_name, servers=self.servers)

    @classmethod
    def from_env(cls) -> "CollectorSettings":
        """
        Load configuration from environment variables.

        Environment variables:
        - SONAR_COLLECTOR_NAME
        - SONAR_SERVERS, SONAR_NICE_NAMES (comma separated)
        - SONAR_USERNAMES, SONAR_PASSWORDS, SONAR_TOKENS (comma separated)
        - SONAR_METRICS (comma separated)
        - SONAR_TIMEOUT_SECONDS
        - SONAR_COLLECTION_INTERVAL
        """
        load_dotenv()

        servers = build_server_descriptors(
            _split_list(os.getenv("SONAR_SERVERS")),
            nice_names=_split_list(os.getenv("SONAR_NICE_NAMES")),
            usernames=_split_list(os.getenv("SONAR_USERNAMES")),
            passwords=_split_list(os.getenv("SONAR_PASSWORDS")),
            tokens=_split_list(os.getenv("SONAR_TOKENS")),
        )

        kwargs: Dict[str, Any] = {"servers": servers}
        if os.getenv("SONAR_COLLECTOR_NAME"):
            kwargs["collector_name"] = os.getenv("SONAR_COLLECTOR_NAME")
        if os.getenv("SONAR_METRICS"):
            kwargs["metrics"] = tuple(m for m in _split_list(os.getenv("SONAR_METRICS")) if m)
        if os.getenv("SONAR_TIMEOUT_SECONDS"):
            kwargs["timeout_seconds"] = _number("SONAR_TIMEOUT_SECONDS", os.getenv("SONAR_TIMEOUT_SECONDS"), float)
        if os.getenv("SONAR_COLLECTION_INTERVAL"):
            kwargs["interval_seconds"] = _number("SONAR_COLLECTION_INTERVAL", os.getenv("SONAR_COLLECTION_INTERVAL"), int)

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> "CollectorSettings":
        """
        Load configuration from a YAML file.

        Servers may be given as a list of mappings
        (url, nice_name, username, password, token) or in the
        legacy parallel-list layout.
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise InvalidConfigError("config", str(path), "top level must be a mapping")

        raw_servers = data.get("servers") or []
        if raw_servers and all(isinstance(s, dict) for s in raw_servers):
            servers = build_server_descriptors(
                [s.get("url", "") for s in raw_servers],
                nice_names=[s.get("nice_name") for s in raw_servers],
                usernames=[s.get("username") for s in raw_servers],
                passwords=[s.get("password") for s in raw_servers],
                tokens=[s.get("token") for s in raw_servers],
            )
        else:
            servers = build_server_descriptors(
                raw_servers,
                nice_names=data.get("nice_names") or [],
                usernames=data.get("usernames") or [],
                passwords=data.get("passwords") or [],
                tokens=data.get("tokens") or [],
            )

        kwargs: Dict[str, Any] = {"servers": servers}
        if data.get("collector_name"):
            kwargs["collector_name"] = str(data["collector_name"])
        if data.get("metrics"):
            kwargs["metrics"] = tuple(str(m) for m in data["metrics"])
        if "timeout_seconds" in data:
            kwargs["timeout_seconds"] = _number("timeout_seconds", data["timeout_seconds"], float)
        if "interval_seconds" in data:
            kwargs["interval_seconds"] = _number("interval_seconds", data["interval_seconds"], int)

        logger.info(f"Loaded collector settings from {path} ({len(servers)} servers)")
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Settings without credentials."""
        return {
            "collector_name": self.collector_name,
            "servers": [server.to_public_dict() for server in self.servers],
            "metrics": list(self.metrics),
            "timeout_seconds": self.timeout_seconds,
            "interval_seconds": self.interval_seconds,
        }


def _number(key: str, raw: Any, kind: type) -> Any:
    try:
        return kind(raw)
    except (TypeError, ValueError):
        raise InvalidConfigError(key, raw, f"expected {kind.__name__}")


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_settings: Optional[CollectorSettings] = None


def get_settings() -> CollectorSettings:
    """Get the global collector settings."""
    global _default_settings
    if _default_settings is None:
        _default_settings = CollectorSettings.from_env()
    return _default_settings


def set_settings(settings: CollectorSettings) -> None:
    """Set the global collector settings."""
    global _default_settings
    _default_settings = settings
