"""
Shared fixtures for the collector tests.

============================================================
PURPOSE
============================================================
- In-memory SQLite database with the collector schema
- Repositories bound to one session
- FakeSonarClient: scripted SonarClient without HTTP
- FakeSelector: hands out FakeSonarClients per server url

============================================================
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from collector.config import CollectorIdentity
from core.clock import ClockFactory
from sonar_client.client import SonarClient
from sonar_client.types import (
    ClientCapabilities,
    FetchError,
    ProjectSnapshot,
    QualityPayload,
    ServerDescriptor,
)
from storage.models import Base
from storage.repositories import (
    CodeQualityRepository,
    CollectorRepository,
    ComponentRepository,
    ConfigHistoryRepository,
    SonarProjectRepository,
)


SERVER_A = "http://sonar-a.local"
SERVER_B = "http://sonar-b.local"


# ============================================================
# DATABASE
# ============================================================

@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = factory()
    yield session
    session.close()


@pytest.fixture
def project_repo(session):
    return SonarProjectRepository(session)


@pytest.fixture
def component_repo(session):
    return ComponentRepository(session)


@pytest.fixture
def quality_repo(session):
    return CodeQualityRepository(session)


@pytest.fixture
def history_repo(session):
    return ConfigHistoryRepository(session)


@pytest.fixture
def collector_repo(session):
    return CollectorRepository(session)


# ============================================================
# CLOCK
# ============================================================

@pytest.fixture
def mock_clock():
    with ClockFactory.use_mock(datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)) as clock:
        yield clock


# ============================================================
# COLLECTOR IDENTITY
# ============================================================

@pytest.fixture
def collector():
    """Collector with one server and a display name."""
    return CollectorIdentity(
        id=uuid.uuid4(),
        name="SonarSecurity",
        servers=(ServerDescriptor(url=SERVER_A, nice_name="Sonar A"),),
    )


def snapshot(project_id: str, instance_url: str = SERVER_A, name: Optional[str] = None) -> ProjectSnapshot:
    name = name or f"project-{project_id}"
    return ProjectSnapshot(
        instance_url=instance_url,
        project_id=project_id,
        project_name=name,
        project_key=name,
    )


# ============================================================
# FAKE SONAR CLIENT
# ============================================================

class FakeSonarClient(SonarClient):
    """SonarClient whose answers are scripted by the test."""

    def __init__(
        self,
        server: ServerDescriptor,
        version: float = 7.9,
        projects: Optional[List[ProjectSnapshot]] = None,
        quality: Optional[Dict[str, QualityPayload]] = None,
        profiles: Optional[List[Dict[str, Any]]] = None,
        associations: Optional[Dict[str, Optional[List[str]]]] = None,
        changes: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        fail_projects: bool = False,
        fail_profiles: bool = False,
    ) -> None:
        super().__init__(server, ClientCapabilities.for_version(version))
        self.projects = projects or []
        self.quality = quality or {}
        self.profiles = profiles or []
        self.associations = associations or {}
        self.changes = changes or {}
        self.fail_projects = fail_projects
        self.fail_profiles = fail_profiles
        self.quality_calls: List[str] = []
        self.closed = False

    async def close(self) -> None:
        self.closed = True
        await super().close()

    async def get_projects(self, instance_url: str) -> List[ProjectSnapshot]:
        if self.fail_projects:
            raise FetchError("connection refused", source=instance_url)
        return list(self.projects)

    async def current_security_quality(self, project: Any) -> Optional[QualityPayload]:
        self.quality_calls.append(project.project_id)
        return self.quality.get(project.project_id)

    async def get_quality_profiles(self, instance_url: str) -> List[Dict[str, Any]]:
        if self.fail_profiles:
            raise FetchError("HTTP 500", source=instance_url)
        return list(self.profiles)

    async def retrieve_profile_and_project_association(
        self,
        instance_url: str,
        profile_key: str,
    ) -> Optional[List[str]]:
        return self.associations.get(profile_key)

    async def get_quality_profile_configuration_changes(
        self,
        instance_url: str,
        profile_key: str,
    ) -> List[Dict[str, Any]]:
        return list(self.changes.get(profile_key, []))


class FakeSelector:
    """Stands in for SonarClientSelector; one scripted client per url."""

    def __init__(self, clients: Optional[Dict[str, FakeSonarClient]] = None) -> None:
        self.clients = clients or {}
        self.selected: List[str] = []

    async def select(self, server: ServerDescriptor) -> SonarClient:
        self.selected.append(server.url)
        client = self.clients.get(server.url)
        if client is None:
            client = FakeSonarClient(server)
            self.clients[server.url] = client
        return client


@pytest.fixture
def fake_client():
    return FakeSonarClient(ServerDescriptor(url=SERVER_A, nice_name="Sonar A"))
