"""
Zumi Database Package.

This package is the data-access layer for Zumi services. It maps annotated
dataclasses to SQL, runs that SQL against a pooled PostgreSQL connection, maps
result rows back into typed objects, and coordinates transactions and
pagination.

Key modules include:
-   `config`: Database configuration loaded from the environment.
-   `mapping`: Table/column metadata declared on dataclass fields.
-   `query`: SELECT and INSERT ... ON CONFLICT generation from that metadata.
-   `select`: Row collection and decoding into typed values.
-   `page`: Paginated queries and the `Page` envelope.
-   `repo`: Entity-level helpers (`find_one`, `find`, `save`, ...).
-   `database`: The pooled connection, health loop and transaction scopes.
"""

from importlib import metadata
from typing import Final

# SERVICE_NAME identifies this component in structured logs.
SERVICE_NAME: Final[str] = "zumi-db"

try:
    __version__ = metadata.version("zumi-db")
except metadata.PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

# Submodules import SERVICE_NAME and __version__ from here, so they must be
# defined before the public API below is imported.
from .database import AccessMode, ConnectionState, Database  # noqa: E402
from .errors import (  # noqa: E402
    DatabaseConnectionError,
    DatabaseError,
    DecodeError,
    ExecutionError,
    GenerationError,
    InvalidArgumentError,
    MappingError,
    NotFoundError,
)
from .handle import DBTX, ConnectionHandle, PoolHandle  # noqa: E402
from .mapping import IGNORE, column, entity, ignored, reflect, table_marker  # noqa: E402
from .page import Page, PageRequest, map_content, select_pageable  # noqa: E402
from .query import generate_insert_upsert, generate_select  # noqa: E402
from .repo import find, find_one, find_optional, find_page, save  # noqa: E402
from .select import exec_query, select_many, select_one, select_scalar  # noqa: E402

__all__ = [
    "DBTX",
    "IGNORE",
    "SERVICE_NAME",
    "AccessMode",
    "ConnectionHandle",
    "ConnectionState",
    "Database",
    "DatabaseConnectionError",
    "DatabaseError",
    "DecodeError",
    "ExecutionError",
    "GenerationError",
    "InvalidArgumentError",
    "MappingError",
    "NotFoundError",
    "Page",
    "PageRequest",
    "PoolHandle",
    "__version__",
    "column",
    "entity",
    "exec_query",
    "find",
    "find_one",
    "find_optional",
    "find_page",
    "generate_insert_upsert",
    "generate_select",
    "ignored",
    "map_content",
    "reflect",
    "save",
    "select_many",
    "select_one",
    "select_pageable",
    "select_scalar",
    "table_marker",
]
