"""
Collector - Config History Tracker.

============================================================
PURPOSE
============================================================
Records quality profile configuration changes of a server.

Only profiles used by at least one project are tracked.
Each change event becomes one ConfigHistory row, keyed by
(collector, author login, operation, timestamp). Events
whose key is already stored, or repeated within the batch,
are dropped.

============================================================
FAILURE SCOPE
============================================================
An unparseable event date aborts the batch of its profile
only; other profiles are still recorded. Fetch errors
propagate to the caller, which scopes them to the server.

============================================================
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from collector.config import CollectorIdentity
from core.exceptions import ChangeEventParseError
from sonar_client.client import SonarClient, parse_sonar_date
from storage.models.config_history import ConfigHistory, ConfigOperation
from storage.repositories.config_history import ConfigHistoryRepository
from storage.repositories.exceptions import DuplicateRecordError


logger = logging.getLogger(__name__)


def determine_operation(action: Optional[str]) -> ConfigOperation:
    """Map a changelog action to a history operation."""
    if action == "DEACTIVATED":
        return ConfigOperation.DELETED
    if action == "ACTIVATED":
        return ConfigOperation.CREATED
    return ConfigOperation.CHANGED


def convert_to_timestamp(date: Any) -> int:
    """
    Changelog date to epoch millis.

    Raises:
        ChangeEventParseError: If the date cannot be parsed
    """
    try:
        return parse_sonar_date(date)
    except ValueError as e:
        raise ChangeEventParseError(date, cause=e) from e


class ConfigHistoryTracker:
    """Translates and stores quality profile change events."""

    def __init__(self, history_repository: ConfigHistoryRepository) -> None:
        self._history = history_repository

    async def track_profile_changes(
        self,
        collector: CollectorIdentity,
        instance_url: str,
        client: SonarClient,
    ) -> int:
        """
        Record new change events for every used profile of a server.

        Returns:
            Number of events stored
        """
        stored = 0
        profiles = await client.get_quality_profiles(instance_url)

        for profile in profiles:
            profile_key = profile.get("key")
            if not profile_key:
                continue

            projects = await client.retrieve_profile_and_project_association(
                instance_url, profile_key
            )
            if not projects:
                continue

            events = await client.get_quality_profile_configuration_changes(
                instance_url, profile_key
            )
            try:
                batch = self.build_changes(collector, events)
            except ChangeEventParseError as e:
                logger.error(f"Skipping changes of profile {profile_key}: {e}")
                continue

            stored += self._save(batch)

        logger.info(f"Stored {stored} profile configuration changes for {instance_url}")
        return stored

    def build_changes(
        self,
        collector: CollectorIdentity,
        events: List[Dict[str, Any]],
    ) -> List[ConfigHistory]:
        """
        Translate raw change events into new history rows.

        Raises:
            ChangeEventParseError: If any event date is invalid
        """
        batch: List[ConfigHistory] = []
        seen: Set[Tuple[Any, ...]] = set()

        for event in events:
            operation = determine_operation(event.get("action"))
            timestamp = convert_to_timestamp(event.get("date"))
            user_id = event.get("authorLogin") or ""

            key = (collector.id, user_id, operation, timestamp)
            if key in seen or not self.is_new_config(*key):
                continue
            seen.add(key)

            batch.append(
                ConfigHistory(
                    collector_item_id=collector.id,
                    user_name=event.get("authorName"),
                    user_id=user_id,
                    operation=operation,
                    timestamp=timestamp,
                    change_map={"event": event},
                )
            )
        return batch

    def is_new_config(self, collector_id, user_id, operation, timestamp) -> bool:
        stored = self._history.find_profile_config_changes(
            collector_id, user_id, operation, timestamp
        )
        return not stored

    def _save(self, batch: List[ConfigHistory]) -> int:
        if not batch:
            return 0
        try:
            self._history.save_all(batch)
            return len(batch)
        except DuplicateRecordError:
            logger.debug("Batch raced with another writer, saving changes one by one")

        saved = 0
        for change in batch:
            retry = ConfigHistory(
                collector_item_id=change.collector_item_id,
                user_name=change.user_name,
                user_id=change.user_id,
                operation=change.operation,
                timestamp=change.timestamp,
                change_map=change.change_map,
            )
            try:
                self._history.save(retry)
                saved += 1
            except DuplicateRecordError:
                continue
        return saved
