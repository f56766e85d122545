"""
Entity-Level Data Access.

The functions here combine the generated SQL of `query` with the collectors of
`select` and `page`, so that a mapped dataclass can be read and saved without
writing its column list by hand:

```python
book = find_one(tx, Book, "WHERE b.id = $1", book_id)
books = find(tx, Book, "WHERE b.title ILIKE $1 ORDER BY b.title", "%dune%")
page = find_page(tx, Book, PageRequest(page=0, size=20, sort=["b.title,asc"]))
save(tx, Book(id=book_id, title="Dune"))
```

`options` is appended verbatim after the generated ``SELECT ... FROM <table>
<alias>``; it is trusted SQL, only the positional arguments are bound safely.

`EntityRepository` binds the entity type once, for code that prefers an
object per aggregate over free functions.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from .errors import NotFoundError
from .handle import DBTX
from .page import Page, PageRequest, select_pageable
from .query import generate_insert_upsert, generate_select
from .select import exec_query, select_many, select_one

T = TypeVar("T")


def _with_options(base_query: str, options: str) -> str:
    return f"{base_query} {options}" if options else base_query


def find_one(dbtx: DBTX, target: type[T], options: str = "", *args: Any) -> T:
    """
    Selects exactly one entity.

    Args:
        dbtx: The handle to run the query on.
        target: The entity dataclass.
        options: SQL appended after the FROM clause (WHERE, ORDER BY, ...).
        *args: Positional arguments for the placeholders in `options`.

    Raises:
        GenerationError: If `target` is not a valid entity.
        NotFoundError: If nothing matches.
        DecodeError: If more than one row matches or a row does not decode.
        ExecutionError: If the query fails.
    """
    return select_one(dbtx, target, _with_options(generate_select(target), options), *args)


def find(dbtx: DBTX, target: type[T], options: str = "", *args: Any) -> list[T]:
    """Selects every matching entity; an empty list when nothing matches."""
    return select_many(dbtx, target, _with_options(generate_select(target), options), *args)


def find_optional(dbtx: DBTX, target: type[T], options: str = "", *args: Any) -> T | None:
    """Like `find_one`, but returns None instead of raising `NotFoundError`."""
    try:
        return find_one(dbtx, target, options, *args)
    except NotFoundError:
        return None


def find_page(
    dbtx: DBTX,
    target: type[T],
    page_request: PageRequest,
    options: str = "",
    *args: Any,
    count: bool = True,
) -> Page[T]:
    """
    Selects one page of entities.

    `options` must not contain ORDER BY, LIMIT or OFFSET; sorting comes from
    `page_request.sort`.
    """
    return select_pageable(
        dbtx,
        target,
        page_request,
        _with_options(generate_select(target), options),
        *args,
        count=count,
    )


def save(dbtx: DBTX, entity: Any) -> None:
    """
    Inserts an entity, or updates its non-key columns when the key exists.

    Raises:
        GenerationError: If the entity has no table marker or primary key.
        ExecutionError: If the statement fails.
    """
    sql, args = generate_insert_upsert(entity)
    exec_query(dbtx, sql, *args)


class EntityRepository(Generic[T]):
    """
    Repository for one entity type.

    The repository holds no connection; every method takes the handle to run
    on, so the same instance serves pooled calls and open transactions alike.
    """

    def __init__(self, entity_type: type[T]):
        """
        Initialize the repository for an entity dataclass.

        Args:
            entity_type: The mapped dataclass this repository reads and writes.
        """
        self.entity_type = entity_type

    def find_one(self, dbtx: DBTX, options: str = "", *args: Any) -> T:
        return find_one(dbtx, self.entity_type, options, *args)

    def find(self, dbtx: DBTX, options: str = "", *args: Any) -> list[T]:
        return find(dbtx, self.entity_type, options, *args)

    def find_optional(self, dbtx: DBTX, options: str = "", *args: Any) -> T | None:
        return find_optional(dbtx, self.entity_type, options, *args)

    def find_page(
        self,
        dbtx: DBTX,
        page_request: PageRequest,
        options: str = "",
        *args: Any,
        count: bool = True,
    ) -> Page[T]:
        return find_page(dbtx, self.entity_type, page_request, options, *args, count=count)

    def save(self, dbtx: DBTX, entity: T) -> None:
        save(dbtx, entity)
