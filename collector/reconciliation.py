"""
Collector - Reconciliation.

============================================================
PURPOSE
============================================================
Reconciles stored sonar projects with dashboard references
and with what the servers currently report.

RESPONSIBILITIES:
- Enable projects referenced by a dashboard, disable the rest
- Delete projects that are no longer discoverable
- Detach enabled projects from components before deletion

CRITICAL INVARIANTS:
    "A pushed project is never deleted."
    "A project is never deleted while a component references it."

============================================================
ORDERING
============================================================
clean_stale_state runs before any fetch of a cycle; it
reflects the previous cycle's dashboard references.
delete_unwanted runs once after every server was processed,
so latest_projects is the union over all servers.

============================================================
"""

import logging
from typing import Iterable, List, Optional, Set

from collector.config import CollectorIdentity
from sonar_client.types import ProjectSnapshot
from storage.models.components import STATIC_SECURITY_SCAN
from storage.models.projects import ProjectKey, SonarProject
from storage.repositories.components import ComponentRepository
from storage.repositories.projects import SonarProjectRepository


logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Computes enable/disable transitions and delete sets.

    All diffing is done over explicit keys: record ids for the
    reference set, identity triples for discoverability.
    """

    def __init__(
        self,
        project_repository: SonarProjectRepository,
        component_repository: ComponentRepository,
        scan_kind: str = STATIC_SECURITY_SCAN,
    ) -> None:
        self._projects = project_repository
        self._components = component_repository
        self._scan_kind = scan_kind

    def reference_set(self, collector: CollectorIdentity) -> Set[str]:
        """Ids of this collector's projects attached to any component."""
        return self._components.referenced_item_ids(self._scan_kind, collector.id)

    # =========================================================
    # ENABLE / DISABLE
    # =========================================================

    def clean_stale_state(
        self,
        collector: CollectorIdentity,
        existing: Iterable[SonarProject],
    ) -> List[SonarProject]:
        """
        Align each project's enabled flag with dashboard references.

        Only projects whose flag actually changes are written, in
        a single batch. Running twice with unchanged references
        writes nothing the second time.

        Returns:
            The projects whose state was flipped
        """
        referenced = self.reference_set(collector)

        changed: List[SonarProject] = []
        for project in existing:
            desired = str(project.id) in referenced
            if project.enabled != desired:
                project.enabled = desired
                changed.append(project)

        if changed:
            self._projects.save_all(changed)

        logger.info(
            f"Reference set has {len(referenced)} items, "
            f"{len(changed)} projects changed state"
        )
        return changed

    # =========================================================
    # DELETION
    # =========================================================

    def delete_unwanted(
        self,
        latest_projects: Iterable[ProjectSnapshot],
        existing: Iterable[SonarProject],
        collector: CollectorIdentity,
        fetched_endpoints: Optional[Set[str]] = None,
    ) -> List[SonarProject]:
        """
        Delete projects that should no longer be collected.

        A project is a candidate when it is not pushed and its
        server is no longer configured, or it belongs to another
        collector, or it was not reported by its server this
        cycle. The last test only applies to servers listed in
        fetched_endpoints (all configured servers when None), so
        an unreachable server never looks like an empty one.

        Enabled candidates are detached from every component
        first; deletion is always the last step.

        Returns:
            The deleted projects
        """
        if fetched_endpoints is None:
            fetched_endpoints = set(collector.endpoints)

        latest_keys: Set[ProjectKey] = {
            snapshot.identity_key(collector.id) for snapshot in latest_projects
        }

        to_delete: List[SonarProject] = []
        for project in existing:
            if project.pushed:
                continue
            if not self._is_unwanted(project, collector, latest_keys, fetched_endpoints):
                continue

            if project.enabled:
                logger.debug(f"Drop deleted sonar project which is enabled {project.project_name}")
                self._detach_from_components(project)
            else:
                logger.debug(f"Drop deleted sonar project which is disabled {project.project_name}")
            to_delete.append(project)

        if to_delete:
            self._projects.delete_all(to_delete)
            logger.info(f"Deleted {len(to_delete)} unwanted projects")
        return to_delete

    def _is_unwanted(
        self,
        project: SonarProject,
        collector: CollectorIdentity,
        latest_keys: Set[ProjectKey],
        fetched_endpoints: Set[str],
    ) -> bool:
        if not collector.has_endpoint(project.instance_url):
            return True
        if project.collector_id != collector.id:
            return True
        return (
            project.instance_url in fetched_endpoints
            and project.identity_key not in latest_keys
        )

    def _detach_from_components(self, project: SonarProject) -> None:
        """Remove every component reference to the project and persist."""
        components = self._components.find_by_collector_type_and_item_ids(
            self._scan_kind, [project.id]
        )
        for component in components:
            component.detach_item(self._scan_kind, project.id)

        if components:
            self._components.save_all(components)
            logger.debug(f"Detached project {project.id} from {len(components)} components")
