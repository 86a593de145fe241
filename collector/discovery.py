"""
Collector - Project Discovery.

============================================================
PURPOSE
============================================================
Merges freshly fetched projects into the store.

- Unknown projects are created disabled
- Known projects get their remote id refreshed and a display
  name filled in when they have none
- Duplicate stored rows for one project are all kept in sync

Writes happen in two batches (creates, updates), never per
item.

============================================================
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from collector.config import CollectorIdentity
from sonar_client.types import ProjectSnapshot
from storage.models.projects import ProjectKey, SonarProject
from storage.repositories.projects import SonarProjectRepository


logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of one ingest_projects call."""
    created: List[SonarProject] = field(default_factory=list)
    updated: List[SonarProject] = field(default_factory=list)


class ProjectDiscovery:
    """Creates and refreshes sonar projects from a server listing."""

    def __init__(self, project_repository: SonarProjectRepository) -> None:
        self._projects = project_repository

    def ingest_projects(
        self,
        fetched: Iterable[ProjectSnapshot],
        existing: List[SonarProject],
        collector: CollectorIdentity,
    ) -> IngestResult:
        """
        Upsert fetched projects against the stored ones.

        Args:
            fetched: Projects listed by one server
            existing: Stored projects of the collector. Newly
                created projects are appended so later servers of
                the same cycle see them.
            collector: Collector identity of the cycle

        Returns:
            IngestResult with created and updated projects
        """
        by_key: Dict[ProjectKey, List[SonarProject]] = defaultdict(list)
        for project in existing:
            by_key[project.identity_key].append(project)

        result = IngestResult()
        touched = set()

        for snapshot in fetched:
            key = snapshot.identity_key(collector.id)
            nice_name = collector.nice_name_for(snapshot.instance_url)
            matches = by_key.get(key)

            if not matches:
                project = SonarProject(
                    collector_id=collector.id,
                    instance_url=snapshot.instance_url,
                    project_id=snapshot.project_id,
                    project_name=snapshot.project_name,
                    description=snapshot.project_name,
                    nice_name=nice_name,
                    enabled=False,
                    pushed=False,
                )
                by_key[key].append(project)
                touched.add(id(project))
                result.created.append(project)
                continue

            for project in matches:
                if id(project) in touched:
                    continue
                project.project_id = snapshot.project_id
                if not project.nice_name:
                    project.nice_name = nice_name
                touched.add(id(project))
                result.updated.append(project)

        if result.created:
            self._projects.save_all(result.created)
            existing.extend(result.created)
        if result.updated:
            self._projects.save_all(result.updated)

        logger.info(
            f"New projects: {len(result.created)}, updated projects: {len(result.updated)}"
        )
        return result
