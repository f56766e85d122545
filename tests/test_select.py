"""Tests for row collection and decoding."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pytest
from pydantic import BaseModel

from zumi_db import (
    Database,
    DecodeError,
    ExecutionError,
    NotFoundError,
    column,
    exec_query,
    generate_select,
    select_many,
    select_one,
    select_scalar,
)
from zumi_db.handle import PoolHandle, RowMapping
from zumi_db.select import decode_row

from entities import Book


@dataclass
class TitleOnly:
    title: str = column("title")


class BookSummary(BaseModel):
    id: int
    title: str


class TestDecodeRow:
    """Test decoding of single rows without a database."""

    def test_decode_dataclass(self) -> None:
        book = decode_row(Book, {"id": 1, "title": "Dune", "description": None, "review_count": 2})

        assert book == Book(id=1, title="Dune", review_count=2)

    def test_column_matching_is_case_insensitive(self) -> None:
        book = decode_row(Book, {"ID": 1, "Title": "Dune"})

        assert book.id == 1
        assert book.title == "Dune"

    def test_missing_columns_use_defaults(self) -> None:
        book = decode_row(Book, {"id": 1, "title": "Dune"})

        assert book.description is None
        assert book.review_count == 0

    def test_unknown_column_is_rejected(self) -> None:
        with pytest.raises(DecodeError, match="no field for column 'isbn'"):
            decode_row(Book, {"id": 1, "title": "Dune", "isbn": "123"})

    def test_incompatible_value_is_rejected(self) -> None:
        with pytest.raises(DecodeError) as exc_info:
            decode_row(Book, {"id": "not-a-number", "title": "Dune"})

        assert exc_info.value.operation == "decode_row"
        assert exc_info.value.cause is not None

    def test_decode_pydantic_model(self) -> None:
        assert decode_row(BookSummary, {"ID": 3, "title": "Emma"}) == BookSummary(id=3, title="Emma")

    def test_decode_plain_dict(self) -> None:
        assert decode_row(dict, {"anything": 1}) == {"anything": 1}


class TestCollectors:
    """Test the collectors against a migrated database."""

    def test_select_one(self, db: Database, seed_books: Callable[[int], list[Book]]) -> None:
        seed_books(3)

        book = select_one(db.handle(), Book, f"{generate_select(Book)} WHERE b.id = $1", 2)

        assert book.title == "Book 2"

    def test_select_one_not_found(self, db: Database) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            select_one(db.handle(), Book, f"{generate_select(Book)} WHERE b.id = $1", 99)

        assert exc_info.value.operation == "select_one"

    def test_select_one_rejects_many_rows(
        self, db: Database, seed_books: Callable[[int], list[Book]]
    ) -> None:
        seed_books(2)

        with pytest.raises(DecodeError, match="expected one row"):
            select_one(db.handle(), Book, generate_select(Book))

    def test_select_one_fetches_at_most_two_rows(
        self, db: Database, seed_books: Callable[[int], list[Book]]
    ) -> None:
        seed_books(5)
        handle = db.handle()
        limits: list[int | None] = []

        def _query(sql: str, *args: Any, max_rows: int | None = None) -> list[RowMapping]:
            limits.append(max_rows)
            rows = PoolHandle.query(handle, sql, *args, max_rows=max_rows)
            assert max_rows is None or len(rows) <= max_rows
            return rows

        handle.query = _query  # type: ignore[method-assign]

        with pytest.raises(DecodeError, match="expected one row"):
            select_one(handle, Book, generate_select(Book))

        assert limits == [2]

    def test_select_many_in_result_order(
        self, db: Database, seed_books: Callable[[int], list[Book]]
    ) -> None:
        seed_books(3)

        books = select_many(db.handle(), Book, f"{generate_select(Book)} ORDER BY b.id DESC")

        assert [b.id for b in books] == [3, 2, 1]

    def test_select_many_empty(self, db: Database) -> None:
        assert select_many(db.handle(), Book, generate_select(Book)) == []

    def test_select_many_projection(
        self, db: Database, seed_books: Callable[[int], list[Book]]
    ) -> None:
        seed_books(2)

        rows = select_many(db.handle(), TitleOnly, "SELECT title FROM books ORDER BY id")

        assert rows == [TitleOnly(title="Book 1"), TitleOnly(title="Book 2")]

    def test_select_many_rejects_extra_columns(
        self, db: Database, seed_books: Callable[[int], list[Book]]
    ) -> None:
        seed_books(1)

        with pytest.raises(DecodeError):
            select_many(db.handle(), TitleOnly, "SELECT id, title FROM books")

    def test_select_scalar(self, db: Database, seed_books: Callable[[int], list[Book]]) -> None:
        seed_books(4)

        assert select_scalar(db.handle(), "SELECT COUNT(*) FROM books WHERE id > $1", 1) == 3

    def test_select_scalar_not_found(self, db: Database) -> None:
        with pytest.raises(NotFoundError):
            select_scalar(db.handle(), "SELECT title FROM books WHERE id = $1", 1)

    def test_query_failure_is_execution_error(self, db: Database) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            select_many(db.handle(), Book, "SELECT * FROM missing_table")

        assert exc_info.value.operation == "select_many"

    def test_exec_query(self, db: Database) -> None:
        handle = db.handle()

        exec_query(handle, "INSERT INTO books (id, title) VALUES ($1, $2)", 1, "Dune")

        assert select_scalar(handle, "SELECT title FROM books WHERE id = $1", 1) == "Dune"

    def test_exec_query_failure(self, db: Database) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            exec_query(db.handle(), "INSERT INTO missing_table VALUES ($1)", 1)

        assert exc_info.value.operation == "exec_query"
