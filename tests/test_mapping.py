"""Tests for table/column metadata reflection."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from zumi_db import IGNORE, MappingError, column, entity, reflect, table_marker
from zumi_db.mapping import ColumnMapping, field_columns, require_primary_keys

from entities import REVIEW_COUNT_SQL, Book, BookTag, Review


class TestReflect:
    """Test building entity mappings from dataclass metadata."""

    def test_reflect_table_and_alias(self) -> None:
        mapping = reflect(Book)

        assert mapping.entity is Book
        assert mapping.table == "books"
        assert mapping.alias == "b"
        assert mapping.marker_field == "table_name"

    def test_reflect_columns_in_declaration_order(self) -> None:
        mapping = reflect(Book)

        assert mapping.columns == (
            ColumnMapping("id", "id", primary=True),
            ColumnMapping("title", "title"),
            ColumnMapping("description", "description"),
            ColumnMapping("review_count", "review_count", expression=REVIEW_COUNT_SQL),
        )

    def test_computed_columns_are_not_writable(self) -> None:
        mapping = reflect(Book)

        assert [c.column for c in mapping.computed_columns] == ["review_count"]
        assert [c.column for c in mapping.writable_columns] == ["id", "title", "description"]

    def test_column_name_defaults_to_field_name(self) -> None:
        mapping = reflect(Review)

        assert [c.column for c in mapping.columns] == ["id", "book_id", "rating"]

    def test_ignored_field_is_skipped(self) -> None:
        """Fields whose column is the ignore sentinel never appear in the mapping."""
        mapping = reflect(Review)

        assert "cached_label" not in {c.field_name for c in mapping.columns}

    def test_composite_primary_key(self) -> None:
        assert reflect(BookTag).primary_keys == ("book_id", "tag")

    def test_primary_flag_accepts_string_true(self) -> None:
        @dataclass
        class Legacy:
            code: str = dataclasses.field(metadata={"column": "code", "primary": "true"})
            label: str = dataclasses.field(default="", metadata={"primary": "false"})
            table_name: str = table_marker("legacy l")

        assert reflect(Legacy).primary_keys == ("code",)

    def test_raw_metadata_ignore_sentinel(self) -> None:
        @dataclass
        class Raw:
            id: int = dataclasses.field(metadata={"column": "id", "primary": True})
            scratch: str = dataclasses.field(default="", metadata={"column": IGNORE})
            table_name: str = table_marker("raw r")

        assert [c.column for c in reflect(Raw).columns] == ["id"]

    def test_reflect_is_cached_per_type(self) -> None:
        assert reflect(Book) is reflect(Book)


class TestReflectErrors:
    """Test rejection of missing or malformed metadata."""

    def test_missing_table_marker(self) -> None:
        @dataclass
        class NoTable:
            id: int = column("id", primary=True)

        with pytest.raises(MappingError) as exc_info:
            reflect(NoTable)

        assert exc_info.value.operation == "reflect"
        assert "no table marker" in str(exc_info.value)

    def test_multiple_table_markers(self) -> None:
        @dataclass
        class TwoTables:
            id: int = column("id", primary=True)
            first: str = table_marker("a x")
            second: str = table_marker("b y")

        with pytest.raises(MappingError, match="more than one table marker"):
            reflect(TwoTables)

    @pytest.mark.parametrize("spec", ["books", "books b extra", ""])
    def test_malformed_table_marker(self, spec: str) -> None:
        @dataclass
        class Malformed:
            id: int = column("id", primary=True)
            table_name: str = table_marker(spec)

        with pytest.raises(MappingError, match="name alias"):
            reflect(Malformed)

    def test_not_a_dataclass(self) -> None:
        class Plain:
            id = 1

        with pytest.raises(MappingError, match="expected a dataclass"):
            reflect(Plain)

    def test_entity_decorator_fails_at_definition(self) -> None:
        with pytest.raises(MappingError):

            @entity
            @dataclass
            class Broken:
                id: int = column("id")

    def test_require_primary_keys(self) -> None:
        @dataclass
        class Keyless:
            name: str = column("name")
            table_name: str = table_marker("keyless k")

        with pytest.raises(MappingError, match="no primary key"):
            require_primary_keys(reflect(Keyless))


class TestFieldColumns:
    """Test the column lookup used for row decoding."""

    def test_dataclass_columns_are_lower_cased(self) -> None:
        @dataclass
        class Mixed:
            user_id: int = column("UserID")
            name: str = column()

        assert field_columns(Mixed) == {"userid": "user_id", "name": "name"}

    def test_marker_and_ignored_fields_are_left_out(self) -> None:
        assert field_columns(Review) == {"id": "id", "book_id": "book_id", "rating": "rating"}

    def test_pydantic_model(self) -> None:
        class Summary(BaseModel):
            title: str
            Total: int

        assert field_columns(Summary) == {"title": "title", "total": "Total"}

    def test_other_targets_have_no_columns(self) -> None:
        assert field_columns(dict) is None
