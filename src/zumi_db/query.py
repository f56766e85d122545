"""
SQL Generation from Entity Mappings.

Two statements are generated from the metadata collected by `mapping.reflect`:

- A SELECT that reads every table column through the alias wildcard and adds
  each computed column expression, aliased to its column name.
- An INSERT ... ON CONFLICT upsert keyed by the primary-key columns.

Callers append their own SQL fragment (WHERE, ORDER BY, ...) to the SELECT.
That fragment is used verbatim and is trusted: it is never validated or
escaped. Only values passed as positional arguments for ``$1..$n``
placeholders are safe against injection.
"""

from __future__ import annotations

from typing import Any

from .errors import GenerationError, MappingError
from .mapping import reflect, require_primary_keys


def generate_select(cls: type) -> str:
    """
    Builds ``SELECT <alias>.*, <expr> AS <col>, ... FROM <table> <alias>``.

    The alias wildcard is always the first selected item; computed columns
    follow in field declaration order.

    Args:
        cls: The entity dataclass.

    Returns:
        str: The SELECT statement without any trailing clause.

    Raises:
        GenerationError: If `cls` cannot be reflected (wraps the `MappingError`).
    """
    try:
        mapping = reflect(cls)
    except MappingError as exc:
        raise GenerationError(
            "failed to generate select query", operation="generate_select", cause=exc
        ) from exc

    selects = [f"{mapping.alias}.*"]
    selects.extend(f"{c.expression} AS {c.column}" for c in mapping.computed_columns)
    return f"SELECT {', '.join(selects)} FROM {mapping.table} {mapping.alias}"


def generate_insert_upsert(obj: Any) -> tuple[str, list[Any]]:
    """
    Builds an upsert for an entity instance.

    Every stored (non-computed, non-ignored) column is inserted, in declaration
    order. On a primary-key conflict every non-key column is overwritten with
    the incoming value; when all stored columns are keys the statement becomes
    ``DO NOTHING``.

    Example output for a book with key ``id``:
    ```sql
    INSERT INTO books (id, title) VALUES ($1, $2)
    ON CONFLICT(id) DO UPDATE SET title = EXCLUDED.title
    ```

    Args:
        obj: An instance of an entity dataclass.

    Returns:
        tuple[str, list[Any]]: The statement and its arguments; argument `i`
            binds placeholder ``$i+1``.

    Raises:
        GenerationError: If the type cannot be reflected or has no primary key.
    """
    if isinstance(obj, type):
        raise GenerationError(
            f"expected an entity instance, got the class {obj.__name__}",
            operation="generate_insert_upsert",
        )
    try:
        mapping = reflect(type(obj))
        primary_keys = require_primary_keys(mapping)
    except MappingError as exc:
        raise GenerationError(
            "failed to generate insert query", operation="generate_insert_upsert", cause=exc
        ) from exc

    stored = mapping.writable_columns
    columns = [c.column for c in stored]
    args = [getattr(obj, c.field_name) for c in stored]
    placeholders = [f"${i}" for i in range(1, len(columns) + 1)]

    keys = set(primary_keys)
    updates = [f"{col} = EXCLUDED.{col}" for col in columns if col not in keys]
    conflict_action = f"DO UPDATE SET {', '.join(updates)}" if updates else "DO NOTHING"

    sql = (
        f"INSERT INTO {mapping.table} ({', '.join(columns)}) "
        f"VALUES ({', '.join(placeholders)}) "
        f"ON CONFLICT({', '.join(primary_keys)}) {conflict_action}"
    )
    return sql, args
