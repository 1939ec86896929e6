"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Repositories catch SQLAlchemy errors and re-raise them as
these exceptions with context. Services translate them into
domain errors (core.exceptions).

============================================================
"""

from typing import Any, Iterable, Optional


class RepositoryException(Exception):
    """
    Base exception for all repository operations.

    Services can catch this for generic error handling.
    """

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.repository_name}] {self.operation}: {self.message}"


class RecordNotFoundError(RepositoryException):
    """Requested record does not exist."""

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        id_field: str = "id"
    ) -> None:
        super().__init__(
            message=f"Record with {id_field}={record_id} not found",
            repository_name=repository_name,
            operation="get",
            details={id_field: str(record_id)}
        )
        self.record_id = record_id
        self.id_field = id_field


class DuplicateRecordError(RepositoryException):
    """
    Unique constraint violated on insert or update.

    The offending value is not echoed back; it may be a PAN or
    Aadhar number.
    """

    def __init__(
        self,
        repository_name: str,
        constraint_field: str,
        operation: str = "create",
    ) -> None:
        super().__init__(
            message=f"Duplicate record: {constraint_field} already exists",
            repository_name=repository_name,
            operation=operation,
            details={"field": constraint_field}
        )
        self.constraint_field = constraint_field


class IntegrityError(RepositoryException):
    """Other integrity constraint violations."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        message: str
    ) -> None:
        super().__init__(
            message=f"Integrity constraint violated: {message}",
            repository_name=repository_name,
            operation=operation,
        )


class ConnectionError(RepositoryException):
    """Database connection failed."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class QueryError(RepositoryException):
    """A query execution failed."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Query failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class TransactionError(RepositoryException):
    """Commit or rollback failed."""

    def __init__(
        self,
        repository_name: str,
        phase: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Transaction {phase} failed: {original_error}",
            repository_name=repository_name,
            operation=phase,
            details={"phase": phase, "original_error": original_error}
        )
        self.phase = phase


class StaleRecordError(RepositoryException):
    """
    The record changed between read and commit.

    Raised when the optimistic version check fails.
    """

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
    ) -> None:
        super().__init__(
            message=f"Record {record_id} was modified concurrently",
            repository_name=repository_name,
            operation="commit",
            details={"record_id": str(record_id)}
        )
        self.record_id = record_id


class ImmutableRecordError(RepositoryException):
    """Attempt to modify a locked field of an immutable record."""

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        attempted_operation: str,
        fields: Iterable[str] = (),
    ) -> None:
        fields = sorted(fields)
        suffix = f" ({', '.join(fields)})" if fields else ""
        super().__init__(
            message=f"Cannot {attempted_operation} immutable record {record_id}{suffix}",
            repository_name=repository_name,
            operation=attempted_operation,
            details={"record_id": str(record_id), "fields": fields}
        )
        self.record_id = record_id
        self.fields = fields


class InvalidEnumValueError(RepositoryException):
    """A write carried a value outside an enum column's domain."""

    def __init__(
        self,
        repository_name: str,
        operation: str,
        field: str,
        value: Any,
        allowed: Iterable[str],
    ) -> None:
        allowed = list(allowed)
        super().__init__(
            message=f"Invalid {field} '{value}'. Must be one of: {', '.join(allowed)}",
            repository_name=repository_name,
            operation=operation,
            details={"field": field, "value": str(value), "allowed": allowed}
        )
        self.field = field
        self.value = value
        self.allowed = allowed

    @property
    def reason(self) -> str:
        return self.message


class ValidationError(RepositoryException):
    """
    Repository-level field validation failed.

    Business validation belongs in the service layer.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        field: str,
        reason: str
    ) -> None:
        super().__init__(
            message=f"Validation failed for {field}: {reason}",
            repository_name=repository_name,
            operation=operation,
            details={"field": field, "reason": reason}
        )
        self.field = field
        self.reason = reason
