"""Infer a database name from a backup path using stored naming rules.

A naming rule pairs a regular expression over the backup path with a
replacement template. Rules are kept in precedence order; the first rule
whose pattern matches wins and later rules are never consulted.

Example:
    >>> rule = NamePattern(path_pattern=r"/backup_(\\w+)_\\d+\\.sql$",
    ...                    template="$1", case_mode=CaseMode.UPPER)
    >>> NameInferenceEngine(NamePatternList([rule])).infer(
    ...     "/data/backup_shop_20230101.sql")
    'SHOP'
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Iterator
from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from restorectl.errors import PatternError

logger = logging.getLogger(__name__)

_GROUP_TOKEN_RE = re.compile(r"\$(\d+)")


class CaseMode(str, Enum):
    """Case transform applied to each substituted capture group."""

    NO_CHANGE = "NoChange"
    UPPER = "Upper"
    LOWER = "Lower"

    def apply(self, value: str) -> str:
        if self is CaseMode.UPPER:
            return value.upper()
        if self is CaseMode.LOWER:
            return value.lower()
        return value


class NamePattern(BaseModel):
    """One naming rule.

    Serialized with the keys ``pathPattern``, ``replacePattern`` and
    ``changeCase`` so exported settings stay readable by older clients.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path_pattern: str = Field(alias="pathPattern")
    template: str = Field(alias="replacePattern")
    case_mode: CaseMode = Field(default=CaseMode.NO_CHANGE, alias="changeCase")

    @field_validator("case_mode", mode="before")
    @classmethod
    def _normalize_case_mode(cls, value: Any) -> Any:
        if value is None or value == "None" or value == "":
            return CaseMode.NO_CHANGE
        if isinstance(value, str):
            for mode in CaseMode:
                if mode.value.lower() == value.lower():
                    return mode
        return value

    def to_store(self) -> dict[str, str]:
        return self.model_dump(by_alias=True, mode="json")


class NamePatternList:
    """Immutable ordered sequence of naming rules; order is precedence.

    Every mutator returns a new list and leaves the receiver untouched.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[NamePattern] = ()) -> None:
        self._items: tuple[NamePattern, ...] = tuple(items)

    @classmethod
    def from_store(cls, data: Iterable[Any] | None) -> "NamePatternList":
        """Build from the JSON-compatible form kept in the settings store."""
        if not data:
            return cls()
        return cls(
            item if isinstance(item, NamePattern) else NamePattern.model_validate(item)
            for item in data
        )

    def to_store(self) -> list[dict[str, str]]:
        return [item.to_store() for item in self._items]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._items):
            raise IndexError(f"Pattern index {index} out of range (0..{len(self._items) - 1})")

    def insert(self, pattern: NamePattern, index: int | None = None) -> "NamePatternList":
        """Return a new list with ``pattern`` inserted (appended when index is None)."""
        items = list(self._items)
        if index is None:
            items.append(pattern)
        elif 0 <= index <= len(items):
            items.insert(index, pattern)
        else:
            raise IndexError(f"Insert position {index} out of range (0..{len(items)})")
        return NamePatternList(items)

    def remove(self, index: int) -> "NamePatternList":
        self._check_index(index)
        return NamePatternList(self._items[:index] + self._items[index + 1:])

    def move_up(self, index: int) -> "NamePatternList":
        """Swap the rule at ``index`` with its predecessor. No-op at the top."""
        self._check_index(index)
        if index == 0:
            return NamePatternList(self._items)
        items = list(self._items)
        items[index - 1], items[index] = items[index], items[index - 1]
        return NamePatternList(items)

    def move_down(self, index: int) -> "NamePatternList":
        """Swap the rule at ``index`` with its successor. No-op at the bottom."""
        self._check_index(index)
        if index == len(self._items) - 1:
            return NamePatternList(self._items)
        items = list(self._items)
        items[index], items[index + 1] = items[index + 1], items[index]
        return NamePatternList(items)

    def __iter__(self) -> Iterator[NamePattern]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> NamePattern:
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, NamePatternList):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"NamePatternList({list(self._items)!r})"


@lru_cache(maxsize=128)
def _compile(path_pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(path_pattern)
    except re.error as exc:
        raise PatternError(path_pattern, str(exc)) from exc


def expand_template(match: re.Match[str], template: str,
                    transform: Callable[[str], str]) -> str:
    """Replace each ``$N`` token in ``template`` with capture group N.

    Group 0 is the whole match. Out-of-range and unmatched groups expand to
    the empty string. ``transform`` is applied to substituted values only.
    """
    def _replace(token: re.Match[str]) -> str:
        index = int(token.group(1))
        if index > match.re.groups:
            return ""
        value = match.group(index)
        if value is None:
            return ""
        return transform(value)

    return _GROUP_TOKEN_RE.sub(_replace, template)


def try_infer(pattern: NamePattern, subject: str) -> str | None:
    """Apply a single rule; None when its pattern does not match."""
    match = _compile(pattern.path_pattern).search(subject)
    if match is None:
        return None
    return expand_template(match, pattern.template, pattern.case_mode.apply)


class NameInferenceEngine:
    """First-match-wins evaluation of an ordered list of naming rules."""

    def __init__(self, patterns: NamePatternList | None = None) -> None:
        self.patterns = patterns if patterns is not None else NamePatternList()

    @classmethod
    def from_store(cls, store) -> "NameInferenceEngine":
        """Load rules from a settings store exposing get_name_patterns()."""
        return cls(store.get_name_patterns())

    def infer(self, subject: str) -> str | None:
        """Return the expansion of the first matching rule, or None.

        Raises:
            PatternError: If a rule evaluated before the first match has an
                invalid regular expression.
        """
        for index, pattern in enumerate(self.patterns):
            result = try_infer(pattern, subject)
            if result is not None:
                logger.debug("Rule %d (%s) matched %r -> %r",
                             index, pattern.path_pattern, subject, result)
                return result
        logger.debug("No naming rule matched %r", subject)
        return None

    def infer_into(self, subject: str, current: str) -> str:
        """Return the inferred name, or ``current`` unchanged when nothing matches."""
        result = self.infer(subject)
        return current if result is None else result
