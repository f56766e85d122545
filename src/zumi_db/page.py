"""
Paginated Queries and the Page Envelope.

`select_pageable` extends a base query with ORDER BY, LIMIT and OFFSET, runs
it, counts the total number of matching rows and returns everything in a
`Page`. The JSON form of `Page` uses the field names HTTP clients of Zumi
services already consume (`totalElements`, `last`, `first`, ...).

Note:
    The base query must not end with ``;`` and must not already contain
    LIMIT/OFFSET. Sort directives are appended verbatim when they are not of
    the form ``column,asc`` / ``column,desc``; like any SQL fragment they are
    trusted input.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidArgumentError
from .handle import DBTX
from .logger import log_event
from .select import select_many, select_scalar

T = TypeVar("T")
R = TypeVar("R")

_DIRECTIONS = {"asc", "desc"}


class PageRequest(BaseModel):
    """
    The page a caller asks for.

    Attributes:
        page: Zero-based page index.
        size: Number of items per page; must be positive.
        sort: Sort directives such as ``"name"`` or ``"name,desc"``.
    """

    page: int = 0
    size: int = 20
    sort: list[str] = Field(default_factory=list)


class Page(BaseModel, Generic[T]):
    """
    One page of results plus the metadata needed to navigate the rest.

    The flags are derived from the numbers: `is_first` when `number == 0`,
    `is_last` when `number >= total_pages - 1`, `is_empty` when this page has
    no elements.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: list[T] = Field(default_factory=list)
    pageable: PageRequest
    total_elements: int = Field(default=0, alias="totalElements")
    total_pages: int = Field(default=0, alias="totalPages")
    number: int = 0
    size: int = 0
    number_of_elements: int = Field(default=0, alias="numberOfElements")
    is_last: bool = Field(default=True, alias="last")
    is_first: bool = Field(default=True, alias="first")
    is_empty: bool = Field(default=True, alias="empty")

    @classmethod
    def build(
        cls, content: Sequence[T], page_request: PageRequest, total_elements: int
    ) -> Page[T]:
        """Assembles a page, deriving the page count and flags."""
        total_pages = math.ceil(total_elements / page_request.size)
        return cls(
            content=list(content),
            pageable=page_request,
            total_elements=total_elements,
            total_pages=total_pages,
            number=page_request.page,
            size=page_request.size,
            number_of_elements=len(content),
            is_last=page_request.page >= total_pages - 1,
            is_first=page_request.page == 0,
            is_empty=len(content) == 0,
        )


def map_content(page: Page[Any], new_content: Sequence[R]) -> Page[R]:
    """
    Returns a copy of `page` carrying `new_content`, keeping all metadata.

    Typically used to turn a page of entities into a page of DTOs.
    """
    return page.model_copy(update={"content": list(new_content)})


def build_order_by(sort: Sequence[str]) -> str:
    """
    Renders sort directives as an ORDER BY clause.

    Each directive is split on its first comma. ``column,asc`` and
    ``column,desc`` become ``column asc`` / ``column desc``; anything else is
    used verbatim. Empty directives are skipped.

    Returns:
        str: ``" ORDER BY ..."`` or an empty string when there is nothing to sort by.
    """
    clauses = []
    for directive in sort:
        if not directive:
            continue
        column, sep, direction = directive.partition(",")
        if sep and direction.strip().lower() in _DIRECTIONS:
            clauses.append(f"{column.strip()} {direction.strip().lower()}")
        else:
            clauses.append(directive)
    if not clauses:
        return ""
    return " ORDER BY " + ", ".join(clauses)


def select_pageable(
    dbtx: DBTX,
    target: type[T],
    page_request: PageRequest,
    sql: str,
    *args: Any,
    count: bool = True,
) -> Page[T]:
    """
    Runs `sql` for one page and wraps the rows in a `Page`.

    The content query is the sorted base query followed by
    ``LIMIT $n OFFSET $m``, where ``$n``/``$m`` are the two placeholders after
    the caller's arguments. The total is obtained by running
    ``SELECT COUNT(*) FROM (<sorted query>) AS count_query`` with the caller's
    arguments only, which re-evaluates the full filter on every call.

    Args:
        dbtx: The handle to run the queries on.
        target: The type to decode rows into.
        page_request: The requested page.
        sql: Base query, without a trailing ``;`` and without LIMIT/OFFSET.
        *args: Positional arguments for the base query's placeholders.
        count: When False, the count query is skipped. One extra row is fetched
            instead to tell whether another page exists, and `total_elements`
            becomes a lower bound (`offset + rows on this page`, plus one when
            more rows exist).

    Returns:
        Page[T]: The page.

    Raises:
        InvalidArgumentError: If the page size is not positive or the page
            index is negative.
        ExecutionError: If a query fails.
        DecodeError: If a row does not decode into `target`.
    """
    if page_request.size <= 0:
        raise InvalidArgumentError(
            f"page size must be positive, got {page_request.size}", operation="select_pageable"
        )
    if page_request.page < 0:
        raise InvalidArgumentError(
            f"page index must not be negative, got {page_request.page}",
            operation="select_pageable",
        )

    sorted_sql = sql + build_order_by(page_request.sort)
    offset = page_request.page * page_request.size
    limit = page_request.size if count else page_request.size + 1
    paged_sql = f"{sorted_sql} LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}"

    log_event(
        "DEBUG",
        "paginated_query",
        query=paged_sql,
        arg_count=len(args),
        page=page_request.page,
        size=page_request.size,
    )

    content = select_many(dbtx, target, paged_sql, *args, limit, offset)

    if count:
        count_sql = f"SELECT COUNT(*) FROM ({sorted_sql}) AS count_query"
        total_elements = int(select_scalar(dbtx, count_sql, *args))
    else:
        has_more = len(content) > page_request.size
        content = content[: page_request.size]
        total_elements = offset + len(content) + (1 if has_more else 0)

    return Page.build(content, page_request, total_elements)
