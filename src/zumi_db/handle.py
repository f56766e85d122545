"""
Executable Handles: one interface over a pooled engine and an open transaction.

All persistence code talks to a `DBTX`, never to SQLAlchemy directly. Two
implementations exist:

- `ConnectionHandle` wraps a `Connection` that is inside a transaction owned
  by `Database.transaction`. Statements run strictly in order on that one
  connection and become visible when the owner commits.
- `PoolHandle` borrows a pooled connection for each call and commits it
  straight away, for work that needs no transaction scope.

SQL is written with PostgreSQL positional placeholders (``$1``, ``$2``, ...).
The handles rewrite them into SQLAlchemy bind parameters, so the same text
runs on whichever dialect the engine uses. Every literal colon in the text is
escaped first, which keeps PostgreSQL casts (``$1::uuid``) and time literals
intact. A ``$n`` inside a string literal, quoted identifier, dollar-quoted
body or comment is left as written.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import Connection, Engine, TextClause, text

RowMapping = Mapping[str, Any]

# Quoted spans and comments are matched so they can be copied unchanged; only a
# bare ``$n`` outside of them is a placeholder.
_SQL_TOKEN = re.compile(
    r"""
    '(?:[^']|'')*'                                          # string literal
    | "(?:[^"]|"")*"                                        # quoted identifier
    | \$(?P<tag>(?:[A-Za-z_][A-Za-z0-9_]*)?)\$.*?\$(?P=tag)\$  # dollar-quoted body
    | --[^\n]*                                              # line comment
    | /\*.*?\*/                                             # block comment
    | \$(?P<index>\d+)                                      # positional placeholder
    """,
    re.VERBOSE | re.DOTALL,
)


def _rewrite_placeholder(match: re.Match[str]) -> str:
    index = match.group("index")
    return f":p{index}" if index is not None else match.group(0)


@runtime_checkable
class DBTX(Protocol):
    """The operations every executable handle provides."""

    def execute(self, sql: str, *args: Any) -> int:
        """Runs a statement that returns no rows; returns the affected row count."""
        ...

    def query(self, sql: str, *args: Any, max_rows: int | None = None) -> list[RowMapping]:
        """Runs a query and returns its rows, at most `max_rows` of them when given."""
        ...

    def query_row(self, sql: str, *args: Any) -> RowMapping | None:
        """Runs a query and returns its first row, or None."""
        ...

    def query_scalar(self, sql: str, *args: Any) -> Any:
        """Runs a query and returns the first column of its first row, or None."""
        ...


def bind_positional(sql: str, args: Sequence[Any]) -> tuple[TextClause, dict[str, Any]]:
    """
    Converts ``$n`` placeholders into a `text()` clause with named parameters.

    Args:
        sql: SQL using ``$1..$n`` placeholders. Occurrences inside quotes,
            dollar quotes and comments are not placeholders.
        args: Values for the placeholders; ``args[0]`` binds ``$1``.

    Returns:
        tuple[TextClause, dict[str, Any]]: The clause and its parameters
            (``$n`` becomes ``:p<n>``).
    """
    escaped = sql.replace(":", r"\:")
    clause = text(_SQL_TOKEN.sub(_rewrite_placeholder, escaped))
    params = {f"p{i}": value for i, value in enumerate(args, start=1)}
    return clause, params


def apply_statement_timeout(conn: Connection, seconds: float) -> None:
    """
    Limits every statement of the current transaction to `seconds`.

    Only PostgreSQL supports ``SET LOCAL statement_timeout``; on other dialects
    this is a no-op.
    """
    if conn.dialect.name == "postgresql":
        conn.exec_driver_sql(f"SET LOCAL statement_timeout = {max(1, int(seconds * 1000))}")


class ConnectionHandle:
    """
    A `DBTX` bound to one connection (normally inside an open transaction).

    Args:
        connection: The SQLAlchemy connection to run statements on.
    """

    def __init__(self, connection: Connection):
        self.connection = connection

    def execute(self, sql: str, *args: Any) -> int:
        clause, params = bind_positional(sql, args)
        return self.connection.execute(clause, params).rowcount

    def query(self, sql: str, *args: Any, max_rows: int | None = None) -> list[RowMapping]:
        clause, params = bind_positional(sql, args)
        result = self.connection.execute(clause, params)
        if max_rows is None:
            return list(result.mappings())
        rows = list(result.mappings().fetchmany(max_rows))
        result.close()
        return rows

    def query_row(self, sql: str, *args: Any) -> RowMapping | None:
        clause, params = bind_positional(sql, args)
        return self.connection.execute(clause, params).mappings().first()

    def query_scalar(self, sql: str, *args: Any) -> Any:
        clause, params = bind_positional(sql, args)
        return self.connection.execute(clause, params).scalar()


class PoolHandle:
    """
    A `DBTX` that borrows a pooled connection per call and commits it.

    The engine is looked up on every call so that a handle obtained before a
    reconnection keeps working afterwards.

    Args:
        engine_provider: Returns the current engine.
    """

    def __init__(self, engine_provider: Callable[[], Engine]):
        self._engine_provider = engine_provider

    def execute(self, sql: str, *args: Any) -> int:
        with self._engine_provider().begin() as conn:
            return ConnectionHandle(conn).execute(sql, *args)

    def query(self, sql: str, *args: Any, max_rows: int | None = None) -> list[RowMapping]:
        with self._engine_provider().begin() as conn:
            return ConnectionHandle(conn).query(sql, *args, max_rows=max_rows)

    def query_row(self, sql: str, *args: Any) -> RowMapping | None:
        with self._engine_provider().begin() as conn:
            return ConnectionHandle(conn).query_row(sql, *args)

    def query_scalar(self, sql: str, *args: Any) -> Any:
        with self._engine_provider().begin() as conn:
            return ConnectionHandle(conn).query_scalar(sql, *args)
