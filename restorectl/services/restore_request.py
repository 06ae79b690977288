"""Assemble and validate restore requests before submission."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from restorectl.errors import ValidationFailure
from restorectl.services.name_inference import NameInferenceEngine
from restorectl.services.object_extractor import (
    extract_schemas,
    extract_tables,
    format_object_list,
    split_object_list,
)

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w")


class BackupType(str, Enum):
    PATH = "Path"
    URL = "Url"


class DatabaseMode(str, Enum):
    """What to do with the target database before restoring."""

    EXISTS = "Exists"
    CREATE = "Create"
    DROP_AND_CREATE = "DropAndCreate"


class RestoreType(str, Enum):
    FULL = "Full"
    PARTIAL = "Partial"


def detect_backup_type(source: str) -> BackupType:
    """URL when the source starts with http:// or https://, else a path."""
    if source.startswith(("http://", "https://")):
        return BackupType.URL
    return BackupType.PATH


def convert_slashes(path: str) -> str:
    """Flip path separators to whichever kind is currently in the minority."""
    if path.count("/") > path.count("\\"):
        return path.replace("/", "\\")
    return path.replace("\\", "/")


@dataclass
class RestoreRequest:
    """A validated restore request ready for the transport."""

    destination: int
    backup_type: BackupType
    backup: str
    database_name: str
    database: DatabaseMode
    restore_type: RestoreType
    ignore_errors: bool = False
    objects: list[str] = field(default_factory=list)
    restore_schema: bool = True
    restore_indexes: bool = True

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body expected by POST /api/v1/restore."""
        backup: dict[str, str] = {"type": self.backup_type.value}
        if self.backup_type is BackupType.URL:
            backup["url"] = self.backup
        else:
            backup["path"] = self.backup

        restore: dict[str, Any] = {"type": self.restore_type.value}
        if self.restore_type is RestoreType.PARTIAL:
            restore["objects"] = list(self.objects)
            restore["restore_schema"] = self.restore_schema
            restore["restore_indexes"] = self.restore_indexes

        return {
            "destination": self.destination,
            "backup": backup,
            "database_name": self.database_name,
            "database": self.database.value,
            "restore": restore,
            "ignore_errors": self.ignore_errors,
        }


@dataclass
class RestoreRequestBuilder:
    """Mutable form state that produces a RestoreRequest.

    ``objects`` holds the free-text object list exactly as the user edits
    it; it is split on commas and whitespace only when the request is built.
    """

    destination: int | None = None
    backup: str = ""
    database_name: str = ""
    database: DatabaseMode = DatabaseMode.CREATE
    restore_type: RestoreType = RestoreType.FULL
    objects: str = ""
    restore_schema: bool = True
    restore_indexes: bool = True
    ignore_errors: bool = False

    @property
    def backup_type(self) -> BackupType:
        return detect_backup_type(self.backup)

    def tables_from_text(self, text: str) -> str:
        """Switch to a partial restore of the tables referenced in ``text``."""
        self.restore_type = RestoreType.PARTIAL
        self.objects = format_object_list(extract_tables(text))
        return self.objects

    def schemas_from_text(self, text: str) -> str:
        """Switch to a partial restore of the schemas referenced in ``text``."""
        self.restore_type = RestoreType.PARTIAL
        self.objects = format_object_list(extract_schemas(text))
        return self.objects

    def infer_database_name(self, engine: NameInferenceEngine) -> str:
        """Fill database_name from naming rules; keeps the old value on no match."""
        self.database_name = engine.infer_into(self.backup, self.database_name)
        return self.database_name

    def validate(self) -> list[ValidationFailure]:
        """Return every validation failure, in form order."""
        failures: list[ValidationFailure] = []
        if self.destination is None:
            failures.append(ValidationFailure("E-2001", field="destination"))
        if not self.backup:
            failures.append(ValidationFailure("E-2002", field="backup"))
        if not self.database_name:
            failures.append(
                ValidationFailure("E-2003", field="database_name", backup=self.backup)
            )
        if self.restore_type is RestoreType.PARTIAL and not _WORD_RE.search(self.objects):
            failures.append(ValidationFailure("E-2004", field="objects"))
        return failures

    def build(self) -> RestoreRequest:
        """Validate and produce the request.

        Raises:
            ValidationFailure: The first failing check; nothing is submitted.
        """
        failures = self.validate()
        if failures:
            logger.debug("Restore request rejected: %s", failures[0])
            raise failures[0]
        objects = (
            split_object_list(self.objects)
            if self.restore_type is RestoreType.PARTIAL
            else []
        )
        return RestoreRequest(
            destination=self.destination,
            backup_type=self.backup_type,
            backup=self.backup,
            database_name=self.database_name,
            database=self.database,
            restore_type=self.restore_type,
            ignore_errors=self.ignore_errors,
            objects=objects,
            restore_schema=self.restore_schema,
            restore_indexes=self.restore_indexes,
        )
