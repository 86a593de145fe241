"""
Sonar Client - Base Client.

============================================================
RESPONSIBILITY
============================================================
Abstract async HTTP client for one Sonar server.

- Owns the httpx.AsyncClient (timeout, credentials)
- Maps transport and HTTP failures to FetchError
- Implements the quality profile endpoints, which are the
  same across supported server versions

Subclasses implement project listing and quality retrieval
for their API generation.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from sonar_client.types import (
    ClientCapabilities,
    FetchError,
    ProjectSnapshot,
    QualityPayload,
    ResponseFormatError,
    ServerDescriptor,
)


DEFAULT_SECURITY_METRICS = (
    "vulnerabilities",
    "new_vulnerabilities",
    "security_rating",
    "new_security_rating",
    "security_remediation_effort",
    "security_hotspots",
)

URL_QUALITY_PROFILES = "/api/qualityprofiles/search"
URL_QUALITY_PROFILE_PROJECTS = "/api/qualityprofiles/projects"
URL_QUALITY_PROFILE_CHANGES = "/api/qualityprofiles/changelog"
URL_PROJECT_DASHBOARD = "/dashboard/index/"

SONAR_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Sonar alert levels to dashboard status names
ALERT_STATUS = {
    "WARN": "Warning",
    "ERROR": "Alert",
}


def parse_sonar_date(value: Any) -> int:
    """
    Parse a Sonar date ("2017-03-01T10:04:05+0100") to epoch millis.

    Raises:
        ValueError: If the value is not a date in that format
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected date string, got {type(value).__name__}")
    return int(datetime.strptime(value, SONAR_DATE_FORMAT).timestamp() * 1000)


class SonarClient(ABC):
    """
    Base class for Sonar API clients.

    ============================================================
    USAGE
    ============================================================
    async with Sonar6Client(server, capabilities) as client:
        projects = await client.get_projects(server.url)

    ============================================================
    """

    def __init__(
        self,
        server: ServerDescriptor,
        capabilities: ClientCapabilities,
        metrics: tuple = DEFAULT_SECURITY_METRICS,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            server: Server endpoint and credentials
            capabilities: Capabilities of the server's version
            metrics: Metric keys requested for quality snapshots
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests)
        """
        self._server = server
        self._capabilities = capabilities
        self._metrics = tuple(metrics)
        self._logger = logging.getLogger("collector.sonar")
        self._http = httpx.AsyncClient(
            auth=server.auth(),
            timeout=timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def server(self) -> ServerDescriptor:
        return self._server

    @property
    def capabilities(self) -> ClientCapabilities:
        return self._capabilities

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "SonarClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # =========================================================
    # ABSTRACT METHODS - API generation specific
    # =========================================================

    @abstractmethod
    async def get_projects(self, instance_url: str) -> List[ProjectSnapshot]:
        """
        List all projects of a server.

        Raises:
            FetchError: On network or API errors
        """
        pass

    @abstractmethod
    async def current_security_quality(
        self,
        project: Any,
    ) -> Optional[QualityPayload]:
        """
        Current security metrics of a stored project.

        Returns:
            QualityPayload, or None when the project has no analysis
        """
        pass

    # =========================================================
    # QUALITY PROFILES
    # =========================================================

    async def get_quality_profiles(self, instance_url: str) -> List[Dict[str, Any]]:
        data = await self._get_json(instance_url + URL_QUALITY_PROFILES)
        profiles = self._require(data, "profiles", instance_url)
        return [p for p in profiles if isinstance(p, dict)]

    async def retrieve_profile_and_project_association(
        self,
        instance_url: str,
        profile_key: str,
    ) -> Optional[List[str]]:
        """
        Keys of the projects using a quality profile.

        Returns:
            List of project keys, or None when no project uses it
        """
        data = await self._get_json(
            instance_url + URL_QUALITY_PROFILE_PROJECTS,
            params={"key": profile_key, "ps": 500},
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            return None
        return [r["key"] for r in results if isinstance(r, dict) and r.get("key")]

    async def get_quality_profile_configuration_changes(
        self,
        instance_url: str,
        profile_key: str,
    ) -> List[Dict[str, Any]]:
        data = await self._get_json(
            instance_url + URL_QUALITY_PROFILE_CHANGES,
            params={"profileKey": profile_key, "ps": 500},
        )
        events = self._require(data, "events", instance_url)
        return [e for e in events if isinstance(e, dict)]

    # =========================================================
    # HTTP HELPERS
    # =========================================================

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = await self._http.get(url, params=params)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FetchError(
                message=f"HTTP {status}: {e.response.text[:200]}",
                source=self._server.url,
                recoverable=status >= 500 or status == 429,
                details={"status_code": status, "url": url},
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(
                message=f"Request timeout: {e}",
                source=self._server.url,
                recoverable=True,
                details={"url": url},
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                message=f"Request error: {e}",
                source=self._server.url,
                recoverable=True,
                details={"url": url},
            ) from e

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._get(url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ResponseFormatError(
                f"Invalid JSON from {url}: {e}",
                source=self._server.url,
            ) from e

    def _require(self, data: Any, key: str, instance_url: str) -> List[Any]:
        """Extract a list field from a JSON object or fail loudly."""
        if not isinstance(data, dict) or not isinstance(data.get(key), list):
            raise ResponseFormatError(
                f"Response from {instance_url} has no '{key}' list",
                source=instance_url,
            )
        return data[key]

    def _dashboard_url(self, instance_url: str, key: str) -> str:
        return f"{instance_url}{URL_PROJECT_DASHBOARD}{key}"

    @staticmethod
    def _metric(name: str, value: Any, formatted: Any, alert: Any) -> Dict[str, Any]:
        return {
            "name": name,
            "value": value,
            "formatted_value": "" if formatted is None else str(formatted),
            "status": ALERT_STATUS.get(str(alert).upper(), "Ok") if alert else "Ok",
        }
