"""
Storage Repositories Package.

Data access layer for the collector. Each repository owns
one record kind and wraps SQLAlchemy errors in repository
exceptions.

============================================================
REPOSITORIES
============================================================
- CollectorRepository:     collector registrations
- SonarProjectRepository:  collector items (sonar projects)
- CodeQualityRepository:   quality observations
- ConfigHistoryRepository: quality profile change events
- ComponentRepository:     dashboard component references

============================================================
"""

from storage.repositories.base import BaseRepository
from storage.repositories.collectors import CollectorRepository
from storage.repositories.projects import SonarProjectRepository
from storage.repositories.code_quality import CodeQualityRepository
from storage.repositories.config_history import ConfigHistoryRepository
from storage.repositories.components import ComponentRepository
from storage.repositories.exceptions import (
    DatabaseConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    RepositoryException,
    TransactionError,
)

__all__ = [
    "BaseRepository",
    "CollectorRepository",
    "SonarProjectRepository",
    "CodeQualityRepository",
    "ConfigHistoryRepository",
    "ComponentRepository",
    "DatabaseConnectionError",
    "DuplicateRecordError",
    "IntegrityError",
    "QueryError",
    "RepositoryException",
    "TransactionError",
]
