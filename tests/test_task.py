"""
Tests for the Sonar Security Collector Task.

============================================================
PURPOSE
============================================================
1. Full cycles across discovery, references and deletion
2. Failure isolation per server
3. Capability gating of change history
4. Aborted cycles skip deletion

============================================================
"""

import asyncio

import pytest

from collector.config import CollectorSettings
from collector.task import SonarSecurityCollectorTask
from sonar_client.types import QualityPayload, ServerDescriptor
from storage.models import STATIC_SECURITY_SCAN, DashboardComponent
from storage.repositories.exceptions import QueryError

from conftest import SERVER_A, SERVER_B, FakeSelector, FakeSonarClient, snapshot


COLLECTOR_NAME = "SonarSecurity"


def settings_for(*urls):
    return CollectorSettings(
        collector_name=COLLECTOR_NAME,
        servers=tuple(ServerDescriptor(url=url, nice_name=f"nice {url}") for url in urls),
    )


def client_for(url, *project_ids, **kwargs):
    return FakeSonarClient(
        ServerDescriptor(url=url),
        projects=[snapshot(pid, instance_url=url) for pid in project_ids],
        **kwargs,
    )


async def run(session, settings, selector):
    task = SonarSecurityCollectorTask(session, settings, selector=selector)
    return await task.run_cycle()


# ============================================================
# FULL CYCLES
# ============================================================

class TestCycleScenario:
    """Three cycles: discovery, reference, server removal."""

    @pytest.mark.asyncio
    async def test_three_cycle_lifecycle(self, session, project_repo, component_repo, collector_repo, mock_clock):
        selector = FakeSelector({SERVER_A: client_for(SERVER_A, "A", "B")})

        # Cycle 1: both projects discovered disabled
        result = await run(session, settings_for(SERVER_A), selector)

        assert result.created == 2
        assert result.deleted == 0
        projects = {p.project_id: p for p in project_repo.find_all()}
        assert set(projects) == {"A", "B"}
        assert not any(p.enabled for p in projects.values())

        # A dashboard references A
        record = collector_repo.find_by_name(COLLECTOR_NAME)
        component = DashboardComponent(name="team dashboard", collector_items={})
        component.attach_item(STATIC_SECURITY_SCAN, projects["A"].id, record.id)
        component_repo.save(component)

        # Cycle 2: A enabled, both updated, nothing deleted
        result = await run(session, settings_for(SERVER_A), selector)

        assert result.enabled_changed == 1
        assert result.created == 0
        assert result.updated == 2
        assert result.deleted == 0
        assert project_repo.get_by_id(projects["A"].id).enabled is True
        assert project_repo.get_by_id(projects["B"].id).enabled is False

        # Cycle 3: server removed from configuration
        result = await run(session, settings_for(), selector)

        assert result.deleted == 2
        assert project_repo.count() == 0
        stored = component_repo.get_by_id(component.id)
        assert STATIC_SECURITY_SCAN not in stored.collector_items

    @pytest.mark.asyncio
    async def test_registers_collector_and_marks_execution(self, session, collector_repo, mock_clock):
        result = await run(session, settings_for(SERVER_A), FakeSelector())

        record = collector_repo.find_by_name(COLLECTOR_NAME)
        assert record is not None
        assert record.collector_type == STATIC_SECURITY_SCAN
        assert record.servers == [{"url": SERVER_A, "nice_name": f"nice {SERVER_A}"}]
        assert record.last_executed == mock_clock.millis()
        assert result.success

    @pytest.mark.asyncio
    async def test_quality_refreshed_for_enabled_projects_only(self, session, project_repo, component_repo, collector_repo, mock_clock):
        client = client_for(SERVER_A, "A", "B")
        selector = FakeSelector({SERVER_A: client})
        await run(session, settings_for(SERVER_A), selector)

        a = project_repo.find_project(collector_repo.find_by_name(COLLECTOR_NAME).id, SERVER_A, "A")
        component = DashboardComponent(name="d", collector_items={})
        component.attach_item(STATIC_SECURITY_SCAN, a.id, a.collector_id)
        component_repo.save(component)
        client.quality = {
            "A": QualityPayload(name="A", timestamp=1488359045000),
            "B": QualityPayload(name="B", timestamp=1488359045000),
        }

        result = await run(session, settings_for(SERVER_A), selector)

        assert client.quality_calls == ["A"]
        assert result.quality_updated == 1

    @pytest.mark.asyncio
    async def test_servers_processed_in_order(self, session, mock_clock):
        selector = FakeSelector()

        await run(session, settings_for(SERVER_B, SERVER_A), selector)

        assert selector.selected == [SERVER_B, SERVER_A]

    @pytest.mark.asyncio
    async def test_client_is_closed_after_server(self, session, mock_clock):
        client = client_for(SERVER_A, "A")

        await run(session, settings_for(SERVER_A), FakeSelector({SERVER_A: client}))

        assert client.closed is True


# ============================================================
# FAILURE ISOLATION
# ============================================================

class TestFailureIsolation:
    """Tests for per-server failure handling."""

    @pytest.mark.asyncio
    async def test_unreachable_server_keeps_projects(self, session, project_repo, mock_clock):
        selector = FakeSelector({
            SERVER_A: client_for(SERVER_A, "A"),
            SERVER_B: client_for(SERVER_B, "B"),
        })
        await run(session, settings_for(SERVER_A, SERVER_B), selector)
        assert project_repo.count() == 2

        selector.clients[SERVER_A].fail_projects = True
        result = await run(session, settings_for(SERVER_A, SERVER_B), selector)

        assert result.failed_servers == [SERVER_A]
        assert result.processed_servers == [SERVER_B]
        assert result.deleted == 0
        assert project_repo.count() == 2

    @pytest.mark.asyncio
    async def test_projects_gone_from_reachable_server_are_deleted(self, session, project_repo, mock_clock):
        client = client_for(SERVER_A, "A", "B")
        selector = FakeSelector({SERVER_A: client})
        await run(session, settings_for(SERVER_A), selector)

        client.projects = [snapshot("A")]
        result = await run(session, settings_for(SERVER_A), selector)

        assert result.deleted == 1
        assert [p.project_id for p in project_repo.find_all()] == ["A"]

    @pytest.mark.asyncio
    async def test_change_history_failure_keeps_server_work(self, session, project_repo, mock_clock):
        client = client_for(SERVER_A, "A", fail_profiles=True)

        result = await run(session, settings_for(SERVER_A), FakeSelector({SERVER_A: client}))

        assert result.created == 1
        assert result.failed_servers == []
        assert project_repo.count() == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_scoped_to_server(self, session, project_repo, mock_clock):
        broken = client_for(SERVER_A, "A")

        async def explode(instance_url):
            raise KeyError("components")

        broken.get_projects = explode
        selector = FakeSelector({SERVER_A: broken, SERVER_B: client_for(SERVER_B, "B")})

        result = await run(session, settings_for(SERVER_A, SERVER_B), selector)

        assert result.failed_servers == [SERVER_A]
        assert [p.project_id for p in project_repo.find_all()] == ["B"]

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, session, mock_clock):
        client = client_for(SERVER_A, "A")
        task = SonarSecurityCollectorTask(session, settings_for(SERVER_A), selector=FakeSelector({SERVER_A: client}))

        def fail(*args, **kwargs):
            raise QueryError("SonarProjectRepository", "query", "disk I/O error")

        task._projects.find_enabled_projects = fail

        with pytest.raises(QueryError):
            await task.run_cycle()


# ============================================================
# CAPABILITIES
# ============================================================

class TestChangeHistoryGating:
    """Tests for version-gated change history."""

    @pytest.mark.asyncio
    async def test_old_servers_skip_change_history(self, session, history_repo, mock_clock):
        client = client_for(
            SERVER_A, "A",
            version=4.5,
            profiles=[{"key": "p1"}],
            associations={"p1": ["A"]},
            changes={"p1": [{"date": "2017-03-01T10:04:05+0100", "action": "ACTIVATED", "authorLogin": "x"}]},
        )

        result = await run(session, settings_for(SERVER_A), FakeSelector({SERVER_A: client}))

        assert result.config_changes == 0
        assert history_repo.count() == 0

    @pytest.mark.asyncio
    async def test_supported_servers_track_changes(self, session, history_repo, mock_clock):
        client = client_for(
            SERVER_A, "A",
            version=5.6,
            profiles=[{"key": "p1"}],
            associations={"p1": ["A"]},
            changes={"p1": [{"date": "2017-03-01T10:04:05+0100", "action": "ACTIVATED", "authorLogin": "x"}]},
        )

        result = await run(session, settings_for(SERVER_A), FakeSelector({SERVER_A: client}))

        assert result.config_changes == 1
        assert history_repo.count() == 1


# ============================================================
# ABORTED CYCLES
# ============================================================

class TestAbortedCycle:
    """Tests for cycles stopped before the last server."""

    @pytest.mark.asyncio
    async def test_stop_request_skips_deletion(self, session, project_repo, mock_clock):
        client_a = client_for(SERVER_A, "A", "B")
        selector = FakeSelector({SERVER_A: client_a, SERVER_B: client_for(SERVER_B)})
        await run(session, settings_for(SERVER_A, SERVER_B), selector)

        client_a.projects = [snapshot("A")]
        task = SonarSecurityCollectorTask(session, settings_for(SERVER_A, SERVER_B), selector=selector)

        original = client_a.get_projects

        async def list_then_stop(instance_url):
            task.request_stop()
            return await original(instance_url)

        client_a.get_projects = list_then_stop
        result = await task.run_cycle()

        assert result.aborted is True
        assert result.processed_servers == [SERVER_A]
        assert result.deleted == 0
        assert project_repo.count() == 2

    @pytest.mark.asyncio
    async def test_cancellation_propagates_without_deletion(self, session, project_repo, mock_clock):
        client = client_for(SERVER_A, "A")
        selector = FakeSelector({SERVER_A: client})
        await run(session, settings_for(SERVER_A), selector)

        async def cancelled(instance_url):
            raise asyncio.CancelledError()

        client.get_projects = cancelled

        with pytest.raises(asyncio.CancelledError):
            await run(session, settings_for(SERVER_A), selector)
        assert project_repo.count() == 1
