"""
Table and Column Metadata for Dataclass Entities.

An entity is a plain dataclass whose fields carry mapping metadata under four
keys, mirroring the tag vocabulary used throughout Zumi services:

- ``table``: ``"name alias"`` on exactly one field, the *table marker*.
- ``column``: the column name, or the sentinel ``"ignore"`` to skip the field.
  Fields without it map to a column named after the field.
- ``query``: a SQL expression selected *instead of* a plain column and aliased
  to the column name (a computed, read-only column).
- ``primary``: ``True`` (or ``"true"``) on primary-key columns.

Usage:
```python
@entity
@dataclass
class Company:
    id: uuid.UUID = column("id", primary=True)
    name: str = column("name")
    flow_count: int = column(
        "flow_count",
        query="(SELECT count(*) FROM flows f WHERE f.company_id = c.id)",
        default=0,
    )
    table_name: str = table_marker("companies c")
```

`reflect` turns such a class into an immutable `EntityMapping` once per type
and keeps it in a type-keyed registry. Decorating the class with `entity`
performs the reflection at class-definition time so that a missing or broken
marker fails when the module is imported rather than on the first query.
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from functools import cache
from typing import Any, TypeVar

from pydantic import BaseModel

from .errors import MappingError

T = TypeVar("T")

# Field metadata keys.
TABLE_KEY = "table"
COLUMN_KEY = "column"
QUERY_KEY = "query"
PRIMARY_KEY = "primary"

# Column name that excludes a field from mapping.
IGNORE = "ignore"


@dataclass(frozen=True)
class ColumnMapping:
    """
    One mapped field.

    Attributes:
        field_name: The dataclass attribute name.
        column: The column name (or the alias of the computed expression).
        primary: Whether the column is part of the primary key.
        expression: The SQL expression of a computed column, None otherwise.
    """

    field_name: str
    column: str
    primary: bool = False
    expression: str | None = None

    @property
    def computed(self) -> bool:
        return self.expression is not None


@dataclass(frozen=True)
class EntityMapping:
    """
    The complete, immutable mapping of one entity type to its table.

    Attributes:
        entity: The mapped dataclass.
        table: The table name.
        alias: The table alias used in generated SELECTs.
        marker_field: The name of the field carrying the table marker.
        columns: Mapped columns in field declaration order.
    """

    entity: type
    table: str
    alias: str
    marker_field: str
    columns: tuple[ColumnMapping, ...]

    @property
    def computed_columns(self) -> tuple[ColumnMapping, ...]:
        return tuple(c for c in self.columns if c.computed)

    @property
    def writable_columns(self) -> tuple[ColumnMapping, ...]:
        """Columns that are stored in the table, i.e. everything but computed ones."""
        return tuple(c for c in self.columns if not c.computed)

    @property
    def primary_keys(self) -> tuple[str, ...]:
        return tuple(c.column for c in self.writable_columns if c.primary)


def table_marker(spec: str) -> Any:
    """
    Declares the table marker field.

    The field is keyword-only so it can sit anywhere in the class body without
    breaking the ordering of required fields, and it is never decoded from rows.

    Args:
        spec: ``"table_name alias"``.
    """
    return dataclasses.field(
        default=spec,
        kw_only=True,
        repr=False,
        compare=False,
        metadata={TABLE_KEY: spec, COLUMN_KEY: IGNORE},
    )


def column(
    name: str | None = None,
    *,
    primary: bool = False,
    query: str | None = None,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """
    Declares a mapped column field.

    Args:
        name: Column name; defaults to the field name.
        primary: Marks the column as part of the primary key.
        query: SQL expression for a computed column.
        default: Default value of the field.
        default_factory: Default factory of the field.
    """
    metadata: dict[str, Any] = {}
    if name:
        metadata[COLUMN_KEY] = name
    if primary:
        metadata[PRIMARY_KEY] = True
    if query:
        metadata[QUERY_KEY] = query
    return dataclasses.field(default=default, default_factory=default_factory, metadata=metadata)


def ignored(default: Any = None, *, default_factory: Any = dataclasses.MISSING) -> Any:
    """Declares a field that is neither selected, decoded nor saved."""
    if default_factory is not dataclasses.MISSING:
        return dataclasses.field(default_factory=default_factory, metadata={COLUMN_KEY: IGNORE})
    return dataclasses.field(default=default, metadata={COLUMN_KEY: IGNORE})


def _is_primary(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _build_mapping(cls: type) -> EntityMapping:
    if not isinstance(cls, type) or not dataclasses.is_dataclass(cls):
        raise MappingError(f"expected a dataclass type, got {cls!r}", operation="reflect")

    table = alias = marker = None
    columns: list[ColumnMapping] = []
    for f in dataclasses.fields(cls):
        md = f.metadata
        if TABLE_KEY in md:
            if marker is not None:
                raise MappingError(
                    f"{cls.__name__} declares more than one table marker ({marker}, {f.name})",
                    operation="reflect",
                )
            parts = str(md[TABLE_KEY]).split()
            if len(parts) != 2:
                raise MappingError(
                    f"table marker {md[TABLE_KEY]!r} on {cls.__name__}.{f.name} "
                    "must have the form 'name alias'",
                    operation="reflect",
                )
            table, alias = parts
            marker = f.name
            continue

        name = md.get(COLUMN_KEY) or f.name
        if name == IGNORE:
            continue
        columns.append(
            ColumnMapping(
                field_name=f.name,
                column=name,
                primary=_is_primary(md.get(PRIMARY_KEY)),
                expression=md.get(QUERY_KEY) or None,
            )
        )

    if marker is None or table is None or alias is None:
        raise MappingError(f"no table marker found on {cls.__name__}", operation="reflect")

    return EntityMapping(
        entity=cls, table=table, alias=alias, marker_field=marker, columns=tuple(columns)
    )


# Type-keyed registry of reflected mappings.
_registry: dict[type, EntityMapping] = {}
_registry_lock = threading.Lock()


def reflect(cls: type) -> EntityMapping:
    """
    Returns the `EntityMapping` of a dataclass, building it on first use.

    Reflection is pure; the result is cached per type.

    Args:
        cls: The entity dataclass.

    Returns:
        EntityMapping: The table, alias and ordered columns of `cls`.

    Raises:
        MappingError: If `cls` is not a dataclass, has no table marker, has
            more than one, or the marker is not of the form "name alias".
    """
    mapping = _registry.get(cls)
    if mapping is None:
        mapping = _build_mapping(cls)
        with _registry_lock:
            mapping = _registry.setdefault(cls, mapping)
    return mapping


def require_primary_keys(mapping: EntityMapping) -> tuple[str, ...]:
    """
    Returns the primary-key columns of a mapping.

    Raises:
        MappingError: If no stored column is flagged as primary.
    """
    keys = mapping.primary_keys
    if not keys:
        raise MappingError(
            f"no primary key found on {mapping.entity.__name__}; "
            "declare one with column(..., primary=True)",
            operation="reflect",
        )
    return keys


def entity(cls: type[T]) -> type[T]:
    """Class decorator that reflects `cls` immediately, failing fast on bad metadata."""
    reflect(cls)
    return cls


@cache
def field_columns(target: type) -> dict[str, str] | None:
    """
    Maps lower-cased column names to attribute names for row decoding.

    Unlike `reflect`, this works on any dataclass (no table marker needed) and on
    pydantic models. The table marker and ignored fields are left out.

    Returns:
        dict[str, str] | None: The mapping, or None for targets without declared
            fields (rows are then passed through as plain dictionaries).
    """
    if isinstance(target, type) and dataclasses.is_dataclass(target):
        names: dict[str, str] = {}
        for f in dataclasses.fields(target):
            if TABLE_KEY in f.metadata:
                continue
            name = f.metadata.get(COLUMN_KEY) or f.name
            if name == IGNORE:
                continue
            names[name.lower()] = f.name
        return names
    if isinstance(target, type) and issubclass(target, BaseModel):
        return {name.lower(): name for name in target.model_fields}
    return None
