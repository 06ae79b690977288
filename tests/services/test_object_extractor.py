"""Tests for SQL object extraction and schema derivation."""

import re

from restorectl.services.object_extractor import (
    derive_schemas,
    extract_schemas,
    extract_tables,
    format_object_list,
    split_object_list,
)


class TestExtractTables:
    """Tests for extract_tables."""

    def test_from_and_join(self):
        sql = "select * from sales.orders o join sales.customers c on o.id = c.id"
        assert set(extract_tables(sql)) == {"sales.orders", "sales.customers"}

    def test_duplicates_collapse_across_clauses(self):
        sql = (
            "insert into sales.orders select * from sales.orders;\n"
            "update sales.orders set x = 1"
        )
        assert extract_tables(sql) == ["sales.orders"]

    def test_case_insensitive_and_lowercased(self):
        sql = "SELECT 1 FROM Sales.Orders\nINNER JOIN   HR.People ON true"
        assert extract_tables(sql) == ["sales.orders", "hr.people"]

    def test_discovery_order_follows_rules(self):
        """insert into is reported before from, whatever the text order."""
        sql = "select * from a.src; insert into b.dst values (1)"
        assert extract_tables(sql) == ["b.dst", "a.src"]

    def test_unqualified_names_ignored(self):
        assert extract_tables("select * from orders join customers") == []

    def test_non_ascii_identifiers_ignored(self):
        assert extract_tables("select * from schéma.t") == []

    def test_empty_text(self):
        assert extract_tables("") == []

    def test_custom_rules(self):
        rules = (re.compile(r"truncate\s+(\w+\.\w+)\b"),)
        assert extract_tables("truncate log.events", rules) == ["log.events"]


class TestDeriveSchemas:
    """Tests for derive_schemas and extract_schemas."""

    def test_unqualified_names_excluded(self):
        assert derive_schemas(["sales.orders", "sales.customers", "temp"]) == ["sales"]

    def test_empty_prefix_excluded(self):
        assert derive_schemas([".orders", "hr.people"]) == ["hr"]

    def test_extract_schemas(self):
        sql = "select * from sales.orders join hr.people on true join sales.items on true"
        assert sorted(extract_schemas(sql)) == ["hr", "sales"]


class TestObjectLists:
    """Tests for rendering and splitting user-facing object lists."""

    def test_format_sorted_comma_separated(self):
        assert format_object_list(["sales.orders", "hr.people"]) == "hr.people, sales.orders"

    def test_format_empty(self):
        assert format_object_list([]) == ""

    def test_split_commas_and_whitespace(self):
        assert split_object_list(" hr.people,sales.orders\n  sales.items ,") == [
            "hr.people", "sales.orders", "sales.items",
        ]

    def test_split_blank(self):
        assert split_object_list("  , ") == []
