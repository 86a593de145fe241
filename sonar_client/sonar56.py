"""
Sonar Client - Pre-6.3 API.

Uses the legacy /api/projects/index and /api/resources
web services, which return bare JSON arrays.
"""

from typing import Any, List, Optional

from sonar_client.client import SonarClient, parse_sonar_date
from sonar_client.types import ProjectSnapshot, QualityPayload, ResponseFormatError


URL_PROJECTS = "/api/projects/index"
URL_RESOURCES = "/api/resources"


class Sonar56Client(SonarClient):
    """Client for SonarQube servers older than 6.3."""

    async def get_projects(self, instance_url: str) -> List[ProjectSnapshot]:
        data = await self._get_json(instance_url + URL_PROJECTS, params={"format": "json"})
        if not isinstance(data, list):
            raise ResponseFormatError(
                f"Expected project array from {instance_url}",
                source=instance_url,
            )

        return [
            ProjectSnapshot(
                instance_url=instance_url,
                project_id=str(item.get("id") or item["k"]),
                project_name=item["k"],
                project_key=item["k"],
            )
            for item in data
            if isinstance(item, dict) and item.get("k")
        ]

    async def current_security_quality(self, project: Any) -> Optional[QualityPayload]:
        key = project.project_name
        instance_url = project.instance_url

        data = await self._get_json(
            instance_url + URL_RESOURCES,
            params={
                "format": "json",
                "resource": key,
                "metrics": ",".join(self._metrics),
                "includealerts": "true",
            },
        )
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None

        resource = data[0]
        if not resource.get("date"):
            return None
        try:
            timestamp = parse_sonar_date(resource["date"])
        except ValueError as e:
            raise ResponseFormatError(
                f"Bad resource date for {key}: {e}",
                source=instance_url,
            ) from e

        metrics = [
            self._metric(m.get("key"), m.get("val"), m.get("frmt_val"), m.get("alert"))
            for m in resource.get("msr") or []
            if isinstance(m, dict) and m.get("key")
        ]

        return QualityPayload(
            name=resource.get("name") or key,
            timestamp=timestamp,
            metrics=metrics,
            version=resource.get("version"),
            url=self._dashboard_url(instance_url, key),
        )
