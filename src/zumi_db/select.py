"""
Row Collection and Decoding.

These functions run SQL on any `DBTX` and turn the resulting rows into typed
values. Decoding matches each result column to a field of the target
case-insensitively (the declared column name of a dataclass field, or the
field name itself) and then validates the assembled values with a pydantic
`TypeAdapter`, so a row whose values cannot be coerced into the declared field
types is rejected instead of producing a half-typed object.

Supported targets are dataclasses, pydantic models, and anything else pydantic
can validate from a dictionary (e.g. `dict` itself or a `TypedDict`).
"""

from __future__ import annotations

from functools import cache
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .errors import DecodeError, ExecutionError, NotFoundError
from .handle import DBTX, RowMapping
from .mapping import field_columns

T = TypeVar("T")


@cache
def _adapter(target: type) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def _target_name(target: type) -> str:
    return getattr(target, "__name__", repr(target))


def decode_row(target: type[T], row: RowMapping) -> T:
    """
    Decodes one result row into an instance of `target`.

    Args:
        target: The type to decode into.
        row: Column name to value mapping.

    Returns:
        T: The decoded value.

    Raises:
        DecodeError: If a column has no matching field, or the values do not
            validate against the field types.
    """
    columns = field_columns(target)
    if columns is None:
        data = dict(row)
    else:
        data = {}
        for key, value in row.items():
            field_name = columns.get(str(key).lower())
            if field_name is None:
                raise DecodeError(
                    f"{_target_name(target)} has no field for column {key!r}",
                    operation="decode_row",
                )
            data[field_name] = value
    try:
        return _adapter(target).validate_python(data)
    except ValidationError as exc:
        raise DecodeError(
            f"row does not match {_target_name(target)}", operation="decode_row", cause=exc
        ) from exc


def _run_query(
    dbtx: DBTX, operation: str, sql: str, args: tuple[Any, ...], max_rows: int | None = None
) -> list[RowMapping]:
    try:
        return dbtx.query(sql, *args, max_rows=max_rows)
    except SQLAlchemyError as exc:
        raise ExecutionError("failed to execute query", operation=operation, cause=exc) from exc


def select_one(dbtx: DBTX, target: type[T], sql: str, *args: Any) -> T:
    """
    Runs a query that must return exactly one row and decodes it.

    Args:
        dbtx: The handle to run the query on.
        target: The type to decode into.
        sql: The query, with ``$1..$n`` placeholders.
        *args: Positional arguments for the placeholders.

    Raises:
        ExecutionError: If the driver fails to run the query.
        NotFoundError: If no row is returned.
        DecodeError: If more than one row is returned or the row does not decode.
    """
    # A second row is enough to reject the result.
    rows = _run_query(dbtx, "select_one", sql, args, max_rows=2)
    if not rows:
        raise NotFoundError("no rows in result set", operation="select_one")
    if len(rows) > 1:
        raise DecodeError("expected one row, got more", operation="select_one")
    return decode_row(target, rows[0])


def select_many(dbtx: DBTX, target: type[T], sql: str, *args: Any) -> list[T]:
    """
    Runs a query and decodes every row, in result order.

    Returns an empty list when nothing matches.

    Raises:
        ExecutionError: If the driver fails to run the query.
        DecodeError: If any row does not decode.
    """
    rows = _run_query(dbtx, "select_many", sql, args)
    return [decode_row(target, row) for row in rows]


def select_scalar(dbtx: DBTX, sql: str, *args: Any) -> Any:
    """
    Runs a query and returns the first column of its single row.

    Raises:
        ExecutionError: If the driver fails to run the query.
        NotFoundError: If no row is returned.
    """
    try:
        row = dbtx.query_row(sql, *args)
    except SQLAlchemyError as exc:
        raise ExecutionError("failed to execute query", operation="select_scalar", cause=exc) from exc
    if row is None:
        raise NotFoundError("no rows in result set", operation="select_scalar")
    return next(iter(row.values()))


def exec_query(dbtx: DBTX, sql: str, *args: Any) -> None:
    """
    Runs a statement that returns no rows (INSERT, UPDATE, DELETE, DDL).

    Raises:
        ExecutionError: If the driver fails to run the statement.
    """
    try:
        dbtx.execute(sql, *args)
    except SQLAlchemyError as exc:
        raise ExecutionError("failed to execute query", operation="exec_query", cause=exc) from exc
