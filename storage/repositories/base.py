"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Provides common functionality for all repositories:
- Session management patterns
- Error handling wrappers
- Batch upsert / batch delete with one commit per batch
- Logging setup

============================================================
USAGE
============================================================
All repositories inherit from BaseRepository. The session is
injected via the constructor and shared by every repository
of one collection cycle.

============================================================
"""

import logging
from abc import ABC
from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    DatabaseConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    TransactionError,
)


# Type variable for ORM model
T = TypeVar("T", bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for all repositories.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Provides common CRUD patterns
    - Wraps database errors in repository exceptions
    - Manages logging for all operations

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository[MyModel]):
        def __init__(self, session: Session):
            super().__init__(session, MyModel, "MyRepository")

    ============================================================
    """

    def __init__(
        self,
        session: Session,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy session (injected)
            model_class: The ORM model class this repository manages
            repository_name: Name for logging and error messages
        """
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def repository_name(self) -> str:
        return self._repository_name

    # =========================================================
    # PUBLIC BATCH OPERATIONS
    # =========================================================

    def save_all(self, entities: Iterable[T]) -> List[T]:
        """
        Insert or update a batch of entities in one transaction.

        Args:
            entities: New or already-attached entities

        Returns:
            The persisted entities

        Raises:
            DuplicateRecordError: A unique constraint rejected the batch
            TransactionError: The commit failed for another reason
        """
        batch = list(entities)
        if not batch:
            return batch

        self._session.add_all(batch)
        self._commit("save_all")
        self._logger.debug(f"Saved {len(batch)} {self._model_class.__name__} rows")
        return batch

    def save(self, entity: T) -> T:
        return self.save_all([entity])[0]

    def delete_all(self, entities: Iterable[T]) -> int:
        """
        Delete a batch of entities in one transaction.

        Returns:
            Number of entities deleted
        """
        batch = list(entities)
        if not batch:
            return 0

        try:
            for entity in batch:
                self._session.delete(entity)
        except SQLAlchemyError as e:
            self._session.rollback()
            self._handle_db_error(e, "delete_all")
        self._commit("delete_all")
        self._logger.debug(f"Deleted {len(batch)} {self._model_class.__name__} rows")
        return len(batch)

    def find_all(self) -> List[T]:
        return self._execute_query(select(self._model_class))

    def get_by_id(self, record_id: UUID) -> Optional[T]:
        try:
            return self._session.get(self._model_class, record_id)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_by_id", {"id": str(record_id)})
            raise

    def count(self) -> int:
        try:
            stmt = select(func.count()).select_from(self._model_class)
            return self._session.execute(stmt).scalar() or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "count")
            raise

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(
        self,
        error: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> None:
        """
        Handle database errors by wrapping in repository exceptions.

        Raises:
            RepositoryException: Always raises appropriate exception
        """
        context = context or {}
        self._logger.error(
            f"Database error in {operation}: {error}",
            extra={"context": context},
        )

        if isinstance(error, OperationalError):
            raise DatabaseConnectionError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error)
            ) from error

        if isinstance(error, SQLAlchemyIntegrityError):
            error_str = str(error).lower()
            if "duplicate" in error_str or "unique" in error_str:
                raise DuplicateRecordError(
                    repository_name=self._repository_name,
                    operation=operation,
                    original_error=str(error.orig)
                ) from error

            raise IntegrityError(
                repository_name=self._repository_name,
                operation=operation,
                message=str(error)
            ) from error

        raise QueryError(
            repository_name=self._repository_name,
            operation=operation,
            original_error=str(error)
        ) from error

    def _execute_query(self, stmt: Any) -> List[T]:
        try:
            result = self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")
            raise

    def _execute_first(self, stmt: Any) -> Optional[T]:
        """Execute a select statement and return the first row, if any."""
        try:
            result = self._session.execute(stmt.limit(1))
            return result.scalars().first()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_first")
            raise

    def _commit(self, operation: str = "commit") -> None:
        """
        Commit the current transaction.

        Unique violations surface as DuplicateRecordError, any other
        failure as TransactionError. The session is rolled back first.
        """
        try:
            self._session.commit()
        except SQLAlchemyIntegrityError as e:
            self._session.rollback()
            self._handle_db_error(e, operation)
        except OperationalError as e:
            self._session.rollback()
            self._handle_db_error(e, operation)
        except SQLAlchemyError as e:
            self._session.rollback()
            raise TransactionError(
                repository_name=self._repository_name,
                operation=operation,
                phase="commit",
                original_error=str(e)
            ) from e
