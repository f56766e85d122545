"""Pytest configuration for zumi_db tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from zumi_db import Database, save
from zumi_db.config import DatabaseConfig, reset_config
from zumi_db.handle import DBTX

from entities import Book

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


@pytest.fixture(autouse=True)
def reset_config_for_tests() -> Generator[None, None, None]:
    """Reset config before and after each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def migrations_dir() -> Path:
    """Alembic revisions creating the books, reviews and book_tags tables."""
    return MIGRATIONS_DIR


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """A fresh SQLite database file per test."""
    return f"sqlite:///{tmp_path / 'zumi.db'}"


@pytest.fixture
def test_config() -> DatabaseConfig:
    """Configuration with a fast health loop."""
    return DatabaseConfig(health_interval_sec=0.05, health_timeout_sec=1.0)


@pytest.fixture
def db(sqlite_url: str, test_config: DatabaseConfig) -> Generator[Database, None, None]:
    """A migrated database without a running health loop."""
    database = Database(sqlite_url, MIGRATIONS_DIR, config=test_config)
    database.connect()
    yield database
    database.disconnect()


@pytest.fixture
def seed_books(db: Database) -> Callable[[int], list[Book]]:
    """Inserts books with ids 1..n titled "Book 1".."Book n"."""

    def _seed(n: int) -> list[Book]:
        books = [Book(id=i, title=f"Book {i}") for i in range(1, n + 1)]

        def _insert(tx: DBTX) -> None:
            for book in books:
                save(tx, book)

        db.with_tx(_insert)
        return books

    return _seed
