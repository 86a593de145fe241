"""
Sonar Client - Version Selector.

============================================================
RESPONSIBILITY
============================================================
Probes a server's version once per cycle and builds the
matching client strategy with its capability flags.

- version >= 6.3: Sonar6Client
- otherwise:      Sonar56Client
- change history supported from 5.0 on

============================================================
"""

import logging
import re
from typing import Optional

import httpx

from sonar_client.client import DEFAULT_SECURITY_METRICS, SonarClient
from sonar_client.sonar56 import Sonar56Client
from sonar_client.sonar6 import Sonar6Client
from sonar_client.types import ClientCapabilities, ServerDescriptor


logger = logging.getLogger(__name__)

URL_SERVER_VERSION = "/api/server/version"

SONAR6_MIN_VERSION = 6.3

_VERSION_PATTERN = re.compile(r"^\s*(\d+)(?:\.(\d+))?")


def parse_version(raw: str) -> float:
    """
    Major.minor of a Sonar version string ("6.7.1.35068" -> 6.7).

    Returns 0.0 when the string carries no version.
    """
    match = _VERSION_PATTERN.match(raw or "")
    if not match:
        return 0.0
    return float(f"{match.group(1)}.{match.group(2) or 0}")


class SonarClientSelector:
    """Resolves the client strategy for a server."""

    def __init__(
        self,
        metrics: tuple = DEFAULT_SECURITY_METRICS,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._metrics = metrics
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def get_sonar_version(self, server: ServerDescriptor) -> float:
        """
        Probe the server version.

        Probe failures are logged and yield 0.0, which selects the
        most conservative client and disables change history.
        """
        try:
            async with httpx.AsyncClient(
                auth=server.auth(),
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http:
                response = await http.get(server.url + URL_SERVER_VERSION)
                response.raise_for_status()
                version = parse_version(response.text)
        except httpx.HTTPError as e:
            logger.warning(f"Version probe failed for {server.url}: {e}")
            return 0.0

        logger.info(f"Sonar version for {server.url}: {version}")
        return version

    def get_sonar_client(self, version: float, server: ServerDescriptor) -> SonarClient:
        capabilities = ClientCapabilities.for_version(version)
        client_class = Sonar6Client if version >= SONAR6_MIN_VERSION else Sonar56Client
        return client_class(
            server,
            capabilities,
            metrics=self._metrics,
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
        )

    async def select(self, server: ServerDescriptor) -> SonarClient:
        """Probe once and return the client for this server."""
        version = await self.get_sonar_version(server)
        return self.get_sonar_client(version, server)
