"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Provides common functionality for all repositories:
- Error handling wrappers
- Common query operations
- Enum validation on writes
- Logging setup

============================================================
USAGE
============================================================
All domain repositories inherit from BaseRepository.
Session is injected via constructor.

============================================================
"""

import logging
import re
from abc import ABC
from typing import Any, Iterable, List, Optional, Type, TypeVar, Generic

from sqlalchemy import func, select
from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    InvalidEnumValueError,
    QueryError,
    RecordNotFoundError,
    StaleRecordError,
    TransactionError,
)


# Type variable for ORM model
T = TypeVar("T", bound=Base)

# "UNIQUE constraint failed: users.email" (SQLite)
# "Key (email)=(...) already exists" (PostgreSQL)
_UNIQUE_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),
    re.compile(r"Key \((\w+)\)="),
)


def unique_violation_field(error: Exception) -> Optional[str]:
    """Column named by a unique-constraint violation, if recognizable."""
    text = str(getattr(error, "orig", error))
    for pattern in _UNIQUE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    lowered = text.lower()
    if "unique" in lowered or "duplicate" in lowered:
        return "unknown"
    return None


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base class for all repositories.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Provides common CRUD patterns
    - Wraps database errors in repository exceptions
    - Logs failures

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
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(
        self,
        error: Exception,
        operation: str,
        record_id: Any = None,
    ) -> None:
        """
        Wrap a database error in a repository exception.

        Raises:
            RepositoryException: Always
        """
        if isinstance(error, StaleDataError):
            self._logger.warning(f"Stale record in {operation}: {record_id}")
            raise StaleRecordError(self._repository_name, record_id) from error

        if isinstance(error, SQLAlchemyIntegrityError):
            field = unique_violation_field(error)
            self._logger.warning(f"Integrity violation in {operation}: field={field}")
            if field is not None:
                raise DuplicateRecordError(self._repository_name, field, operation) from error
            raise IntegrityError(self._repository_name, operation, str(error.orig)) from error

        self._logger.error(f"Database error in {operation}: {error}", exc_info=True)

        if isinstance(error, OperationalError):
            raise ConnectionError(self._repository_name, operation, str(error)) from error

        raise QueryError(self._repository_name, operation, str(error)) from error

    def _validate_enum(
        self,
        field: str,
        value: Any,
        allowed: Iterable[str],
        operation: str,
    ) -> str:
        """
        Check a value against an enum domain.

        Returns:
            The value as a plain string

        Raises:
            InvalidEnumValueError: If value is not allowed
        """
        allowed = list(allowed)
        raw = getattr(value, "value", value)
        if raw not in allowed:
            raise InvalidEnumValueError(self._repository_name, operation, field, value, allowed)
        return raw

    def _add(self, entity: T) -> T:
        """Add an entity and flush so constraints are checked now."""
        try:
            self._session.add(entity)
            self._session.flush()
            return entity
        except SQLAlchemyError as e:
            self._session.rollback()
            self._handle_db_error(e, "add")
            raise  # Never reached, but satisfies type checker

    def _flush(self, operation: str, record_id: Any = None) -> None:
        try:
            self._session.flush()
        except SQLAlchemyError as e:
            self._session.rollback()
            self._handle_db_error(e, operation, record_id)
            raise

    def _get_by_id(self, record_id: Any) -> Optional[T]:
        try:
            return self._session.get(self._model_class, record_id)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_by_id", record_id)
            raise

    def _get_by_id_or_raise(self, record_id: Any, id_field: str = "id") -> T:
        """
        Get an entity by its primary key, raising if not found.

        Raises:
            RecordNotFoundError: If entity does not exist
        """
        entity = self._get_by_id(record_id)
        if entity is None:
            raise RecordNotFoundError(
                repository_name=self._repository_name,
                record_id=record_id,
                id_field=id_field
            )
        return entity

    def _delete(self, entity: T) -> None:
        try:
            self._session.delete(entity)
            self._session.flush()
        except SQLAlchemyError as e:
            self._session.rollback()
            self._handle_db_error(e, "delete")
            raise

    def _count(self, *criteria: Any) -> int:
        try:
            stmt = select(func.count()).select_from(self._model_class)
            if criteria:
                stmt = stmt.where(*criteria)
            return self._session.execute(stmt).scalar() or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "count")
            raise

    def _execute_query(self, stmt: Any) -> List[T]:
        """Execute a select statement and return entities."""
        try:
            result = self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query")
            raise

    def _execute_scalar(self, stmt: Any) -> Any:
        """Execute a select statement and return a single value or None."""
        try:
            result = self._session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_scalar")
            raise

    def _execute_rows(self, stmt: Any) -> List[Any]:
        try:
            return list(self._session.execute(stmt).all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "query_rows")
            raise

    def commit(self, record_id: Any = None) -> None:
        """
        Commit the current transaction.

        Raises:
            StaleRecordError: If a versioned row changed underneath
            DuplicateRecordError: If a unique constraint fails on flush
            TransactionError: If commit fails otherwise
        """
        try:
            self._session.commit()
        except (StaleDataError, SQLAlchemyIntegrityError) as e:
            self._session.rollback()
            self._handle_db_error(e, "commit", record_id)
        except SQLAlchemyError as e:
            self._session.rollback()
            raise TransactionError(
                repository_name=self._repository_name,
                phase="commit",
                original_error=str(e)
            ) from e

    def rollback(self) -> None:
        try:
            self._session.rollback()
        except SQLAlchemyError as e:
            self._logger.error(f"Rollback failed: {e}")
            raise TransactionError(
                repository_name=self._repository_name,
                phase="rollback",
                original_error=str(e)
            ) from e
