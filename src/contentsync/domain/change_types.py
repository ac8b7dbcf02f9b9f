"""
Enums for the reconciliation engine.

This module is the single source of truth for the enumerations used by
validation, change detection, dispatch and audit logging.

Architecture Note:
    This is a pure domain module with NO external dependencies.
    It should only contain enums and their small helpers.
"""

from __future__ import annotations

from enum import Enum


class DataType(str, Enum):
    """Declared data type of a content field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"

    @classmethod
    def from_string(cls, value: str | None) -> DataType:
        """Parse a data type, accepting common aliases. None means string."""
        if value is None:
            return cls.STRING
        lowered = str(value).strip().lower()
        aliases = {
            "str": cls.STRING,
            "text": cls.STRING,
            "int": cls.NUMBER,
            "integer": cls.NUMBER,
            "float": cls.NUMBER,
            "bool": cls.BOOLEAN,
            "datetime": cls.DATE,
            "date-time": cls.DATE,
            "list": cls.ARRAY,
            "dict": cls.OBJECT,
        }
        if lowered in aliases:
            return aliases[lowered]
        for member in cls:
            if member.value == lowered:
                return member
        raise ValueError(
            f"Invalid data type {value!r}. Must be one of: "
            + ", ".join(member.value for member in cls)
        )


class ImportType(str, Enum):
    """Origin of an import batch."""

    FILE = "file"  # Uploaded CSV/XLSX
    SHEET = "sheet"  # Spreadsheet tab (sheet id + tab name)

    @classmethod
    def from_string(cls, value: str) -> ImportType:
        """Parse import type, accepting the legacy 'csv'/'gsheet' names."""
        lowered = str(value).strip().lower()
        if lowered in ("file", "csv", "xlsx"):
            return cls.FILE
        if lowered in ("sheet", "gsheet", "sheets"):
            return cls.SHEET
        raise ValueError(f"Invalid import type {value!r}. Must be 'file' or 'sheet'")


class ValidationCode(str, Enum):
    """Reason a source failed validation."""

    NO_MATCHING_EXPORT = "no_matching_export"
    SOURCE_MISMATCH = "source_mismatch"
    INVALID_SOURCE = "invalid_source"


class AuditActionType(str, Enum):
    """Action type recorded on audit entries."""

    IMPORT_SYNC = "import_sync"
    IMPORT_SYNC_FAILED = "import_sync_failed"

    @classmethod
    def for_outcome(cls, was_successful: bool) -> AuditActionType:
        """Pick the action type for a sync outcome."""
        return cls.IMPORT_SYNC if was_successful else cls.IMPORT_SYNC_FAILED
