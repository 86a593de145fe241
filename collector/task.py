"""
Collector - Sonar Security Collector Task.

============================================================
RESPONSIBILITY
============================================================
Runs one collection cycle for the configured collector.

WORKFLOW:
1. Register the collector and build its identity
2. Enable/disable stored projects from dashboard references
3. For each server, in configured order:
   a. Probe the version and select a client
   b. Ingest the listed projects
   c. Refresh quality of the enabled projects
   d. Track quality profile changes (when supported)
4. Delete projects that are no longer wanted

============================================================
FAILURE ISOLATION
============================================================
- A server that cannot be listed is logged and skipped; its
  projects are not treated as removed this cycle
- Change history failures never undo a server's other work
- Store failures propagate to the caller
- A cycle stopped before the last server skips deletion

============================================================
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from collector.config import CollectorIdentity, CollectorSettings
from collector.config_history import ConfigHistoryTracker
from collector.discovery import ProjectDiscovery
from collector.quality import QualityRefresher
from collector.reconciliation import ReconciliationEngine
from core.clock import ClockFactory, ClockProtocol
from core.exceptions import CycleAbortedError
from sonar_client.selector import SonarClientSelector
from sonar_client.types import FetchError, ProjectSnapshot, ServerDescriptor
from storage.models.components import STATIC_SECURITY_SCAN
from storage.models.projects import SonarProject
from storage.repositories.code_quality import CodeQualityRepository
from storage.repositories.collectors import CollectorRepository
from storage.repositories.components import ComponentRepository
from storage.repositories.config_history import ConfigHistoryRepository
from storage.repositories.exceptions import RepositoryException
from storage.repositories.projects import SonarProjectRepository


logger = logging.getLogger(__name__)


# =============================================================
# CYCLE RESULT
# =============================================================


@dataclass
class CycleResult:
    """Outcome of one collection cycle."""
    collector_name: str
    started_at: int
    finished_at: Optional[int] = None
    fetched: int = 0
    created: int = 0
    updated: int = 0
    enabled_changed: int = 0
    quality_updated: int = 0
    config_changes: int = 0
    deleted: int = 0
    processed_servers: List[str] = field(default_factory=list)
    failed_servers: List[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def success(self) -> bool:
        return not self.aborted and not self.failed_servers

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collector_name": self.collector_name,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "fetched": self.fetched,
            "created": self.created,
            "updated": self.updated,
            "enabled_changed": self.enabled_changed,
            "quality_updated": self.quality_updated,
            "config_changes": self.config_changes,
            "deleted": self.deleted,
            "processed_servers": list(self.processed_servers),
            "failed_servers": list(self.failed_servers),
            "aborted": self.aborted,
        }


# =============================================================
# TASK
# =============================================================


class SonarSecurityCollectorTask:
    """
    Collection cycle for one sonar security collector.

    ============================================================
    USAGE
    ============================================================
    with get_db_session() as session:
        task = SonarSecurityCollectorTask(session, settings)
        result = await task.run_cycle()

    ============================================================
    """

    def __init__(
        self,
        session: Session,
        settings: CollectorSettings,
        selector: Optional[SonarClientSelector] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._settings = settings
        self._selector = selector or SonarClientSelector(
            metrics=settings.metrics,
            timeout_seconds=settings.timeout_seconds,
        )
        self._clock = clock or ClockFactory.get_clock()
        self._stop_requested = asyncio.Event()

        self._collectors = CollectorRepository(session)
        self._projects = SonarProjectRepository(session)

        self._reconciliation = ReconciliationEngine(
            self._projects,
            ComponentRepository(session),
            scan_kind=STATIC_SECURITY_SCAN,
        )
        self._discovery = ProjectDiscovery(self._projects)
        self._quality = QualityRefresher(self._projects, CodeQualityRepository(session), clock=self._clock)
        self._history = ConfigHistoryTracker(ConfigHistoryRepository(session))

    def request_stop(self) -> None:
        """Stop before the next server; the running cycle skips deletion."""
        self._stop_requested.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    # =========================================================
    # CYCLE
    # =========================================================

    async def run_cycle(self) -> CycleResult:
        """
        Run one collection cycle.

        Returns:
            CycleResult with per-phase counts

        Raises:
            RepositoryException: A store write failed
        """
        start = time.monotonic()
        result = CycleResult(
            collector_name=self._settings.collector_name,
            started_at=self._clock.millis(),
        )

        record = self._collectors.register(
            self._settings.collector_name,
            STATIC_SECURITY_SCAN,
            [server.to_public_dict() for server in self._settings.servers],
        )
        collector = self._settings.identity(record.id)

        existing = self._projects.find_by_collector_ids([collector.id])
        result.enabled_changed = len(
            self._reconciliation.clean_stale_state(collector, existing)
        )

        latest_projects: List[ProjectSnapshot] = []
        fetched_endpoints: Set[str] = set()

        try:
            for server in collector.servers:
                if self.stop_requested:
                    raise CycleAbortedError(
                        "Stop requested",
                        processed_servers=len(result.processed_servers) + len(result.failed_servers),
                        total_servers=len(collector.servers),
                    )
                try:
                    fetched = await self._collect_server(server, collector, existing, result)
                except RepositoryException:
                    raise
                except Exception as e:
                    logger.error(f"Unexpected error collecting {server.url}: {e}", exc_info=True)
                    fetched = None
                if fetched is None:
                    result.failed_servers.append(server.url)
                    continue
                latest_projects.extend(fetched)
                fetched_endpoints.add(server.url)
                result.processed_servers.append(server.url)
        except CycleAbortedError as e:
            result.aborted = True
            logger.warning(
                f"Cycle aborted after {e.processed_servers}/{e.total_servers} servers, "
                f"skipping deletion"
            )

        if not result.aborted:
            deleted = self._reconciliation.delete_unwanted(
                latest_projects, existing, collector, fetched_endpoints
            )
            result.deleted = len(deleted)
            self._collectors.mark_executed(record, self._clock.millis())

        result.finished_at = self._clock.millis()
        self._log_summary(result, time.monotonic() - start)
        return result

    async def _collect_server(
        self,
        server: ServerDescriptor,
        collector: CollectorIdentity,
        existing: List[SonarProject],
        result: CycleResult,
    ) -> Optional[List[ProjectSnapshot]]:
        """
        Discovery, quality and change history for one server.

        Returns:
            The listed projects, or None when the server could not
            be listed
        """
        logger.info("=" * 60)
        logger.info(f"Fetching sonar projects from {server.url}")
        logger.info("=" * 60)
        start = time.monotonic()

        client = await self._selector.select(server)
        async with client:
            try:
                projects = await client.get_projects(server.url)
            except FetchError as e:
                logger.error(f"Failed to list projects of {server.url}: {e}")
                return None

            result.fetched += len(projects)
            logger.info(f"Fetched {len(projects)} projects in {time.monotonic() - start:.2f}s")

            ingest = self._discovery.ingest_projects(projects, existing, collector)
            result.created += len(ingest.created)
            result.updated += len(ingest.updated)

            enabled = self._projects.find_enabled_projects(collector.id, server.url)
            result.quality_updated += await self._quality.refresh_quality(enabled, client)

            if client.capabilities.supports_change_history:
                try:
                    result.config_changes += await self._history.track_profile_changes(
                        collector, server.url, client
                    )
                except RepositoryException:
                    raise
                except Exception as e:
                    logger.error(f"Profile change tracking failed for {server.url}: {e}")
            else:
                logger.info(
                    f"Skipping profile changes for {server.url}, "
                    f"version {client.capabilities.version} has no changelog"
                )

        logger.info(f"Finished {server.url} in {time.monotonic() - start:.2f}s")
        return projects

    def _log_summary(self, result: CycleResult, elapsed: float) -> None:
        logger.info("=" * 60)
        logger.info(f"Cycle summary for {result.collector_name}")
        logger.info(f"  Fetched:          {result.fetched}")
        logger.info(f"  Created:          {result.created}")
        logger.info(f"  Updated:          {result.updated}")
        logger.info(f"  State changes:    {result.enabled_changed}")
        logger.info(f"  Quality updated:  {result.quality_updated}")
        logger.info(f"  Config changes:   {result.config_changes}")
        logger.info(f"  Deleted:          {result.deleted}")
        if result.failed_servers:
            logger.warning(f"  Failed servers:   {', '.join(result.failed_servers)}")
        if result.aborted:
            logger.warning("  Aborted:          deletion skipped")
        logger.info(f"  Elapsed:          {elapsed:.2f}s")
        logger.info("=" * 60)
