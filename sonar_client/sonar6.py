"""
Sonar Client - SonarQube 6.3+ API.

============================================================
ENDPOINTS
============================================================
- /api/components/search        project listing (paged)
- /api/measures/component       current measures
- /api/project_analyses/search  last analysis date/version

============================================================
"""

from typing import Any, Dict, List, Optional

from sonar_client.client import SonarClient, parse_sonar_date
from sonar_client.types import ProjectSnapshot, QualityPayload, ResponseFormatError


URL_PROJECTS = "/api/components/search"
URL_MEASURES = "/api/measures/component"
URL_ANALYSES = "/api/project_analyses/search"

PAGE_SIZE = 500


class Sonar6Client(SonarClient):
    """Client for SonarQube 6.3 and later."""

    async def get_projects(self, instance_url: str) -> List[ProjectSnapshot]:
        projects: List[ProjectSnapshot] = []
        page = 1

        while True:
            data = await self._get_json(
                instance_url + URL_PROJECTS,
                params={"qualifiers": "TRK", "ps": PAGE_SIZE, "p": page},
            )
            components = self._require(data, "components", instance_url)

            for component in components:
                key = component.get("key") if isinstance(component, dict) else None
                if not key:
                    continue
                projects.append(
                    ProjectSnapshot(
                        instance_url=instance_url,
                        project_id=str(component.get("id") or key),
                        project_name=key,
                        project_key=key,
                    )
                )

            paging = data.get("paging") or {}
            total = int(paging.get("total", len(components)))
            if not components or page * PAGE_SIZE >= total:
                break
            page += 1

        self._logger.debug(f"Listed {len(projects)} projects on {instance_url}")
        return projects

    async def current_security_quality(self, project: Any) -> Optional[QualityPayload]:
        key = project.project_name
        instance_url = project.instance_url

        data = await self._get_json(
            instance_url + URL_MEASURES,
            params={"componentKey": key, "metricKeys": ",".join(self._metrics)},
        )
        component = data.get("component") if isinstance(data, dict) else None
        if not isinstance(component, dict):
            return None

        analysis = await self._last_analysis(instance_url, key)
        if analysis is None:
            return None

        try:
            timestamp = parse_sonar_date(analysis.get("date"))
        except ValueError as e:
            raise ResponseFormatError(
                f"Bad analysis date for {key}: {e}",
                source=instance_url,
            ) from e

        metrics = [
            self._metric(
                m.get("metric"),
                m.get("value"),
                m.get("value"),
                m.get("alert") or m.get("status"),
            )
            for m in component.get("measures") or []
            if isinstance(m, dict) and m.get("metric")
        ]

        return QualityPayload(
            name=component.get("name") or key,
            timestamp=timestamp,
            metrics=metrics,
            version=self._version_of(analysis),
            url=self._dashboard_url(instance_url, key),
        )

    async def _last_analysis(self, instance_url: str, key: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(
            instance_url + URL_ANALYSES,
            params={"project": key, "ps": 1},
        )
        analyses = data.get("analyses") if isinstance(data, dict) else None
        if not analyses:
            return None
        return analyses[0]

    @staticmethod
    def _version_of(analysis: Dict[str, Any]) -> Optional[str]:
        for event in analysis.get("events") or []:
            if isinstance(event, dict) and event.get("category") == "VERSION":
                return event.get("name")
        return None
