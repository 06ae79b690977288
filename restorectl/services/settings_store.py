"""Persistent client settings: preferred destination and naming rules.

Settings live in a small JSON document keyed by ``PreferredDestination``
and ``NamePatterns``. Writing ``None`` removes a key. The document can be
exported to a single line of text and imported back, which is how users
share naming rules between machines.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from restorectl.errors import PatternImportFailure, SettingsStoreError
from restorectl.services.name_inference import NamePattern, NamePatternList

logger = logging.getLogger(__name__)

KEY_PREFERRED_DESTINATION = "PreferredDestination"
KEY_NAME_PATTERNS = "NamePatterns"

EXPORT_SEPARATOR = ";"


class SettingsStore:
    """JSON-file backed key-value store for client settings."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            raise SettingsStoreError(str(self._path), str(exc)) from exc
        if not isinstance(data, dict):
            raise SettingsStoreError(str(self._path), "top-level value is not an object")
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def read(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def write(self, key: str, value: Any) -> None:
        data = self._read_all()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self._write_all(data)

    def write_many(self, values: dict[str, Any]) -> None:
        """Apply several keys in one file write."""
        data = self._read_all()
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self._write_all(data)

    def get_preferred_destination(self) -> int | None:
        return self.read(KEY_PREFERRED_DESTINATION)

    def set_preferred_destination(self, value: int | None) -> None:
        self.write(KEY_PREFERRED_DESTINATION, value)
        logger.info("Preferred destination set to %s", value)

    def get_name_patterns(self) -> NamePatternList:
        try:
            return NamePatternList.from_store(self.read(KEY_NAME_PATTERNS, []))
        except ValidationError as exc:
            raise SettingsStoreError(str(self._path), f"invalid name patterns: {exc}") from exc

    def set_name_patterns(self, patterns: NamePatternList | list[NamePattern] | None) -> None:
        if patterns is None:
            self.write(KEY_NAME_PATTERNS, None)
            return
        self.write(KEY_NAME_PATTERNS, NamePatternList(patterns).to_store())
        logger.info("Stored %d name pattern(s)", len(patterns))


def export_settings(store: SettingsStore) -> str:
    """Serialize settings as ``<destination JSON>;<patterns JSON>``."""
    destination = json.dumps(store.get_preferred_destination())
    patterns = json.dumps(store.get_name_patterns().to_store())
    return f"{destination}{EXPORT_SEPARATOR}{patterns}"


def parse_settings(text: str) -> tuple[int, NamePatternList]:
    """Validate exported settings text without touching any store.

    Raises:
        PatternImportFailure: With a distinct code for a missing separator,
            a non-integer destination, a negative destination, or an
            invalid pattern list.
    """
    head, sep, tail = text.partition(EXPORT_SEPARATOR)
    if not sep:
        raise PatternImportFailure("E-1001")

    try:
        destination = int(head.strip())
    except ValueError:
        raise PatternImportFailure("E-1002", value=head.strip()) from None
    if destination < 0:
        raise PatternImportFailure("E-1003", value=destination)

    try:
        raw = json.loads(tail)
    except json.JSONDecodeError as exc:
        raise PatternImportFailure("E-1004", detail=str(exc)) from exc
    if not isinstance(raw, list):
        raise PatternImportFailure("E-1004", detail=f"expected array, got {type(raw).__name__}")
    try:
        patterns = NamePatternList.from_store(raw)
    except ValidationError as exc:
        raise PatternImportFailure("E-1004", detail=str(exc)) from exc
    return destination, patterns


def import_settings(store: SettingsStore, text: str) -> tuple[int, NamePatternList]:
    """Validate and apply exported settings text atomically.

    Nothing is written unless both fields validate.
    """
    destination, patterns = parse_settings(text)
    store.write_many({
        KEY_PREFERRED_DESTINATION: destination,
        KEY_NAME_PATTERNS: patterns.to_store(),
    })
    logger.info("Imported settings: destination=%s, %d pattern(s)", destination, len(patterns))
    return destination, patterns
