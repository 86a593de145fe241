"""
Collector - Quality Refresher.

============================================================
PURPOSE
============================================================
Stores new security-quality observations for enabled
projects. An observation is new when none exists for the
project at the same analysis timestamp; repeated runs
without a new analysis store nothing.

============================================================
"""

import logging
import time
from typing import Iterable, Optional

from core.clock import ClockFactory, ClockProtocol
from sonar_client.client import SonarClient
from sonar_client.types import FetchError, QualityPayload
from storage.models.code_quality import SECURITY_ANALYSIS, CodeQuality
from storage.models.projects import SonarProject
from storage.repositories.code_quality import CodeQualityRepository
from storage.repositories.exceptions import DuplicateRecordError
from storage.repositories.projects import SonarProjectRepository


logger = logging.getLogger(__name__)


class QualityRefresher:
    """Fetches and deduplicates quality observations."""

    def __init__(
        self,
        project_repository: SonarProjectRepository,
        quality_repository: CodeQualityRepository,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._projects = project_repository
        self._quality = quality_repository
        self._clock = clock or ClockFactory.get_clock()

    async def refresh_quality(
        self,
        enabled_projects: Iterable[SonarProject],
        client: SonarClient,
    ) -> int:
        """
        Fetch and store quality data for enabled projects.

        Returns:
            Number of new observations stored
        """
        start = time.monotonic()
        count = 0

        for project in enabled_projects:
            try:
                payload = await client.current_security_quality(project)
            except FetchError as e:
                logger.warning(f"Quality fetch failed for {project.project_name}: {e}")
                continue

            if payload is None or not self.is_new_quality_data(project, payload):
                continue

            if self._store(project, payload):
                count += 1

        logger.info(f"Updated {count} quality observations in {time.monotonic() - start:.2f}s")
        return count

    def is_new_quality_data(self, project: SonarProject, payload: QualityPayload) -> bool:
        existing = self._quality.find_by_collector_item_id_and_timestamp(
            project.id, payload.timestamp
        )
        return existing is None

    def _store(self, project: SonarProject, payload: QualityPayload) -> bool:
        observation = CodeQuality(
            collector_item_id=project.id,
            timestamp=payload.timestamp,
            name=payload.name,
            version=payload.version,
            type=SECURITY_ANALYSIS,
            url=payload.url,
            metrics=list(payload.metrics),
        )
        try:
            self._quality.save(observation)
        except DuplicateRecordError:
            # Another run stored this timestamp between check and insert
            logger.debug(f"Observation {project.id}@{payload.timestamp} already stored")
            return False

        project.last_updated = self._clock.millis()
        self._projects.save(project)
        return True
