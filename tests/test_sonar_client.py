"""
Tests for the Sonar HTTP clients.

============================================================
PURPOSE
============================================================
1. Version probe and client selection
2. Project listing for both API generations
3. Quality snapshots
4. Quality profile endpoints
5. Error mapping and credentials

All HTTP traffic goes through httpx.MockTransport.

============================================================
"""

import base64
import json

import httpx
import pytest

from sonar_client.client import parse_sonar_date
from sonar_client.selector import SonarClientSelector, parse_version
from sonar_client.sonar56 import Sonar56Client
from sonar_client.sonar6 import Sonar6Client
from sonar_client.types import (
    ClientCapabilities,
    FetchError,
    ResponseFormatError,
    ServerDescriptor,
)
from storage.models import SonarProject

from conftest import SERVER_A


def transport(routes, seen=None):
    """MockTransport answering by request path."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        answer = routes.get(request.url.path)
        if answer is None:
            return httpx.Response(404, text="not found")
        if callable(answer):
            return answer(request)
        if isinstance(answer, httpx.Response):
            return answer
        if isinstance(answer, str):
            return httpx.Response(200, text=answer)
        return httpx.Response(200, json=answer)

    return httpx.MockTransport(handler)


def project(name="org.example:app"):
    return SonarProject(instance_url=SERVER_A, project_id="AVx1", project_name=name)


SERVER = ServerDescriptor(url=SERVER_A)


# ============================================================
# VERSION SELECTION
# ============================================================

class TestVersionSelection:
    """Tests for the version probe and strategy selection."""

    @pytest.mark.parametrize("raw, expected", [
        ("6.7.1.35068", 6.7),
        ("5.6", 5.6),
        ("7", 7.0),
        ("", 0.0),
        ("<html>", 0.0),
    ])
    def test_parse_version(self, raw, expected):
        assert parse_version(raw) == expected

    @pytest.mark.asyncio
    async def test_new_server_gets_sonar6_client(self):
        selector = SonarClientSelector(transport=transport({"/api/server/version": "6.7.1"}))

        client = await selector.select(SERVER)

        assert isinstance(client, Sonar6Client)
        assert client.capabilities.supports_change_history is True
        await client.close()

    @pytest.mark.asyncio
    async def test_old_server_gets_sonar56_client(self):
        selector = SonarClientSelector(transport=transport({"/api/server/version": "5.6.3"}))

        client = await selector.select(SERVER)

        assert isinstance(client, Sonar56Client)
        assert client.capabilities.supports_change_history is True
        await client.close()

    @pytest.mark.asyncio
    async def test_failed_probe_is_conservative(self):
        selector = SonarClientSelector(transport=transport({}))

        version = await selector.get_sonar_version(SERVER)
        client = selector.get_sonar_client(version, SERVER)

        assert version == 0.0
        assert isinstance(client, Sonar56Client)
        assert client.capabilities.supports_change_history is False
        await client.close()

    def test_capabilities_boundary(self):
        assert ClientCapabilities.for_version(4.9).supports_change_history is False
        assert ClientCapabilities.for_version(5.0).supports_change_history is True


# ============================================================
# PROJECT LISTING
# ============================================================

class TestProjectListing:
    """Tests for get_projects."""

    @pytest.mark.asyncio
    async def test_sonar6_pages_through_components(self):
        pages = {
            "1": {"paging": {"pageIndex": 1, "pageSize": 500, "total": 501},
                  "components": [{"id": f"id{i}", "key": f"key{i}"} for i in range(500)]},
            "2": {"paging": {"pageIndex": 2, "pageSize": 500, "total": 501},
                  "components": [{"id": "id500", "key": "key500"}]},
        }
        routes = {"/api/components/search": lambda r: httpx.Response(200, json=pages[r.url.params["p"]])}

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            projects = await client.get_projects(SERVER_A)

        assert len(projects) == 501
        assert projects[0].project_id == "id0"
        assert projects[0].project_name == "key0"
        assert projects[0].instance_url == SERVER_A

    @pytest.mark.asyncio
    async def test_sonar56_lists_projects_index(self):
        routes = {"/api/projects/index": [{"id": "12", "k": "org.example:app", "nm": "App"}]}

        async with Sonar56Client(SERVER, ClientCapabilities.for_version(5.6), transport=transport(routes)) as client:
            projects = await client.get_projects(SERVER_A)

        assert [(p.project_id, p.project_name) for p in projects] == [("12", "org.example:app")]

    @pytest.mark.asyncio
    async def test_malformed_listing_is_fetch_error(self):
        routes = {"/api/components/search": {"unexpected": True}}

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            with pytest.raises(ResponseFormatError):
                await client.get_projects(SERVER_A)

    @pytest.mark.asyncio
    async def test_http_error_is_fetch_error(self):
        routes = {"/api/components/search": httpx.Response(503, text="maintenance")}

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            with pytest.raises(FetchError) as exc_info:
                await client.get_projects(SERVER_A)

        assert exc_info.value.recoverable is True
        assert exc_info.value.details["status_code"] == 503

    @pytest.mark.asyncio
    async def test_invalid_json_is_format_error(self):
        routes = {"/api/components/search": "{not json"}

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            with pytest.raises(ResponseFormatError):
                await client.get_projects(SERVER_A)


# ============================================================
# QUALITY
# ============================================================

class TestQuality:
    """Tests for current_security_quality."""

    @pytest.mark.asyncio
    async def test_sonar6_quality_snapshot(self):
        routes = {
            "/api/measures/component": {
                "component": {
                    "key": "org.example:app",
                    "name": "App",
                    "measures": [
                        {"metric": "vulnerabilities", "value": "4"},
                        {"metric": "security_rating", "value": "3.0"},
                    ],
                }
            },
            "/api/project_analyses/search": {
                "analyses": [{
                    "date": "2017-03-01T10:04:05+0100",
                    "events": [{"category": "VERSION", "name": "1.2.0"}],
                }]
            },
        }

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            quality = await client.current_security_quality(project())

        assert quality.name == "App"
        assert quality.timestamp == 1488359045000
        assert quality.version == "1.2.0"
        assert quality.url == f"{SERVER_A}/dashboard/index/org.example:app"
        assert [m["name"] for m in quality.metrics] == ["vulnerabilities", "security_rating"]

    @pytest.mark.asyncio
    async def test_sonar6_without_analysis_returns_none(self):
        routes = {
            "/api/measures/component": {"component": {"key": "k", "measures": []}},
            "/api/project_analyses/search": {"analyses": []},
        }

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            assert await client.current_security_quality(project()) is None

    @pytest.mark.asyncio
    async def test_sonar56_quality_snapshot(self):
        seen = []
        routes = {
            "/api/resources": [{
                "key": "org.example:app",
                "name": "App",
                "version": "0.9",
                "date": "2017-03-01T10:04:05+0100",
                "msr": [{"key": "vulnerabilities", "val": 2.0, "frmt_val": "2", "alert": "ERROR"}],
            }]
        }

        async with Sonar56Client(SERVER, ClientCapabilities.for_version(5.6), transport=transport(routes, seen)) as client:
            quality = await client.current_security_quality(project())

        assert quality.timestamp == 1488359045000
        assert quality.version == "0.9"
        assert quality.metrics == [
            {"name": "vulnerabilities", "value": 2.0, "formatted_value": "2", "status": "Alert"}
        ]
        assert seen[0].url.params["resource"] == "org.example:app"

    @pytest.mark.asyncio
    async def test_sonar56_empty_resource_returns_none(self):
        routes = {"/api/resources": []}

        async with Sonar56Client(SERVER, ClientCapabilities.for_version(5.6), transport=transport(routes)) as client:
            assert await client.current_security_quality(project()) is None


# ============================================================
# QUALITY PROFILES
# ============================================================

class TestQualityProfiles:
    """Tests for the quality profile endpoints."""

    @pytest.mark.asyncio
    async def test_profiles_associations_and_changes(self):
        routes = {
            "/api/qualityprofiles/search": {"profiles": [{"key": "p1", "name": "Sonar way"}]},
            "/api/qualityprofiles/projects": {"results": [{"id": 1, "key": "org.example:app"}]},
            "/api/qualityprofiles/changelog": {"events": [{"action": "ACTIVATED"}]},
        }

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            profiles = await client.get_quality_profiles(SERVER_A)
            projects = await client.retrieve_profile_and_project_association(SERVER_A, "p1")
            changes = await client.get_quality_profile_configuration_changes(SERVER_A, "p1")

        assert profiles == [{"key": "p1", "name": "Sonar way"}]
        assert projects == ["org.example:app"]
        assert changes == [{"action": "ACTIVATED"}]

    @pytest.mark.asyncio
    async def test_profile_without_projects_is_none(self):
        routes = {"/api/qualityprofiles/projects": {"results": []}}

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            assert await client.retrieve_profile_and_project_association(SERVER_A, "p1") is None

    @pytest.mark.asyncio
    async def test_changelog_without_events_is_format_error(self):
        routes = {"/api/qualityprofiles/changelog": {"total": 0}}

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes)) as client:
            with pytest.raises(ResponseFormatError):
                await client.get_quality_profile_configuration_changes(SERVER_A, "p1")


# ============================================================
# CREDENTIALS AND DATES
# ============================================================

class TestCredentials:
    """Tests for authentication headers."""

    @staticmethod
    def _basic(user, password):
        return "Basic " + base64.b64encode(f"{user}:{password}".encode()).decode()

    @pytest.mark.asyncio
    async def test_token_wins_over_password(self):
        seen = []
        server = ServerDescriptor(url=SERVER_A, username="admin", password="secret", token="tok123")
        routes = {"/api/qualityprofiles/search": {"profiles": []}}

        async with Sonar6Client(server, ClientCapabilities.for_version(6.7), transport=transport(routes, seen)) as client:
            await client.get_quality_profiles(SERVER_A)

        assert seen[0].headers["Authorization"] == self._basic("tok123", "")

    @pytest.mark.asyncio
    async def test_username_password_auth(self):
        seen = []
        server = ServerDescriptor(url=SERVER_A, username="admin", password="secret")
        routes = {"/api/qualityprofiles/search": {"profiles": []}}

        async with Sonar6Client(server, ClientCapabilities.for_version(6.7), transport=transport(routes, seen)) as client:
            await client.get_quality_profiles(SERVER_A)

        assert seen[0].headers["Authorization"] == self._basic("admin", "secret")

    @pytest.mark.asyncio
    async def test_anonymous_without_credentials(self):
        seen = []
        routes = {"/api/qualityprofiles/search": {"profiles": []}}

        async with Sonar6Client(SERVER, ClientCapabilities.for_version(6.7), transport=transport(routes, seen)) as client:
            await client.get_quality_profiles(SERVER_A)

        assert "Authorization" not in seen[0].headers

    def test_public_dict_hides_credentials(self):
        server = ServerDescriptor(url=SERVER_A, nice_name="A", token="tok123")

        assert json.dumps(server.to_public_dict()) == json.dumps({"url": SERVER_A, "nice_name": "A"})


class TestSonarDates:
    """Tests for parse_sonar_date."""

    def test_parses_offset(self):
        assert parse_sonar_date("2017-03-01T10:04:05+0100") == 1488359045000

    def test_rejects_other_formats(self):
        with pytest.raises(ValueError):
            parse_sonar_date("2017-03-01 10:04:05")
