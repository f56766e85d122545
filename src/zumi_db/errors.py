"""
Typed exceptions for the Zumi data-access layer.

Every public operation either returns a usable result or raises one of the
exceptions below. Each exception records the operation that failed and, when
it wraps a lower-level failure (a SQLAlchemy/driver error, a pydantic
validation error, another `DatabaseError`), keeps it as `cause` in addition to
the normal `raise ... from` chaining.

Hierarchy:
-   `DatabaseError`: base class for everything raised by `zumi_db`.
    -   `MappingError`: missing or malformed table/column metadata on a type.
        -   `GenerationError`: query generation failed (wraps a `MappingError`).
    -   `NotFoundError`: zero rows where exactly one row was expected.
    -   `DecodeError`: a row could not be decoded into the target type.
    -   `ExecutionError`: the driver failed to run a statement or transaction step.
    -   `DatabaseConnectionError`: pool creation, migration or ping failure.
    -   `InvalidArgumentError`: malformed input such as a non-positive page size.
"""

from __future__ import annotations


class DatabaseError(RuntimeError):
    """
    Base exception for data-access failures.

    Args:
        message: Human-readable description of the failure.
        operation: Stable identifier of the failing operation (e.g. "select_one").
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        full_message = f"{operation}: {message}" if operation else message
        if cause is not None:
            full_message = f"{full_message}: {cause}"
        super().__init__(full_message)
        self.operation = operation
        self.cause = cause


class MappingError(DatabaseError):
    """A type carries missing or malformed table/column metadata."""


class GenerationError(MappingError):
    """SQL generation failed for a type."""


class NotFoundError(DatabaseError):
    """No rows were returned where exactly one was expected."""


class DecodeError(DatabaseError):
    """A result row did not match the shape or types of the target."""


class ExecutionError(DatabaseError):
    """The driver failed to execute a statement, begin or commit."""


class DatabaseConnectionError(DatabaseError):
    """The connection pool could not be created, migrated or reached."""


class InvalidArgumentError(DatabaseError, ValueError):
    """An argument violates a precondition of the operation."""
