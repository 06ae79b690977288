"""Extract schema-qualified table references from pasted SQL.

Users paste queries or migration scripts; the restore form needs the
tables (or just the schemas) they touch. Extraction is regex based and
deliberately permissive: it reads ``insert into``, ``update``, ``from``
and ``join`` clauses and ignores everything else.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

# Each rule captures exactly one ``schema.table`` group.
EXTRACTION_RULES: tuple[re.Pattern[str], ...] = (
    re.compile(r"insert\s+into\s+(\w+\.\w+)\b", re.ASCII),
    re.compile(r"update\s+(\w+\.\w+)\b", re.ASCII),
    re.compile(r"from\s+(\w+\.\w+)\b", re.ASCII),
    re.compile(r"join\s+(\w+\.\w+)\b", re.ASCII),
)

_SEPARATORS_RE = re.compile(r"[\s,]+")


def extract_tables(
    text: str,
    rules: Sequence[re.Pattern[str]] = EXTRACTION_RULES,
) -> list[str]:
    """Return the distinct qualified table names referenced in ``text``.

    The text is lower-cased before matching. Rules are applied in order and
    each contributes every match it finds; a reference seen by several rules
    is kept once, at the position it was first discovered.

    Args:
        text: Free-form SQL or prose.
        rules: Compiled patterns, each with one capture group.

    Returns:
        Qualified names in discovery order.
    """
    lowered = text.lower()
    tables: dict[str, None] = {}
    for rule in rules:
        for match in rule.finditer(lowered):
            name = match.group(1)
            if name:
                tables.setdefault(name, None)
    return list(tables)


def derive_schemas(tables: Iterable[str]) -> list[str]:
    """Reduce qualified table names to their distinct schema names.

    Names without a ``.`` separator, or with an empty prefix, are skipped.
    """
    schemas: dict[str, None] = {}
    for name in tables:
        schema, sep, _ = name.partition(".")
        if sep and schema:
            schemas.setdefault(schema, None)
    return list(schemas)


def extract_schemas(text: str) -> list[str]:
    """Shortcut for ``derive_schemas(extract_tables(text))``."""
    return derive_schemas(extract_tables(text))


def format_object_list(names: Iterable[str]) -> str:
    """Render names sorted and comma separated, as shown in the restore form."""
    return ", ".join(sorted(names))


def split_object_list(value: str) -> list[str]:
    """Split a user-edited object list on commas and whitespace."""
    return [item for item in _SEPARATORS_RE.split(value) if item]
