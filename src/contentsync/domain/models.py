"""
Domain models for contentsync.

This module contains the core entities of the reconciliation engine:
- Field metadata and source identity
- Snapshots (export baselines) and import batches
- Change sets produced by change detection
- Sync results and audit entries

These models are pure data structures with no I/O dependencies.
They can be serialized to/from SQLite via the infrastructure layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from contentsync.domain.change_types import DataType, ImportType, ValidationCode


# ============================================================================
# Schema & Source Identity
# ============================================================================

@dataclass(frozen=True, slots=True)
class FieldMetadata:
    """
    Classification of a single content field.

    Attributes:
        key: Field key as stored in snapshots (snake_case)
        data_type: Declared type, drives value coercion during diffing
        read_only: Field is never diffed or synced
        editable: Field may be edited in-app
    """
    key: str
    data_type: DataType = DataType.STRING
    read_only: bool = False
    editable: bool = True


@dataclass(frozen=True, slots=True)
class SourceKey:
    """
    Identity of an import origin.

    Either a file name, or a sheet id + tab name pair. Used to bind an
    import to the snapshot captured when that source was exported.
    """
    file_name: str | None = None
    sheet_id: str | None = None
    tab_name: str | None = None

    def __post_init__(self) -> None:
        has_file = bool(self.file_name)
        has_sheet = bool(self.sheet_id) or bool(self.tab_name)
        if has_file == has_sheet:
            raise ValueError("SourceKey needs either file_name or sheet_id + tab_name")

    @classmethod
    def for_file(cls, file_name: str) -> SourceKey:
        return cls(file_name=str(file_name).strip())

    @classmethod
    def for_sheet(cls, sheet_id: str, tab_name: str) -> SourceKey:
        return cls(sheet_id=str(sheet_id).strip(), tab_name=str(tab_name).strip())

    @classmethod
    def parse(cls, text: str) -> SourceKey:
        """Parse the persisted form produced by as_string()."""
        kind, _, rest = text.partition(":")
        if kind == "file" and rest:
            return cls.for_file(rest)
        if kind == "sheet" and "/" in rest:
            sheet_id, _, tab_name = rest.partition("/")
            return cls.for_sheet(sheet_id, tab_name)
        raise ValueError(f"Unrecognized source key: {text!r}")

    @property
    def kind(self) -> ImportType:
        return ImportType.FILE if self.file_name else ImportType.SHEET

    @property
    def is_complete(self) -> bool:
        """Sheet keys need both parts; file keys need a name."""
        if self.kind is ImportType.FILE:
            return bool(self.file_name)
        return bool(self.sheet_id) and bool(self.tab_name)

    def as_string(self) -> str:
        if self.kind is ImportType.FILE:
            return f"file:{self.file_name}"
        return f"sheet:{self.sheet_id}/{self.tab_name}"

    def __str__(self) -> str:
        if self.kind is ImportType.FILE:
            return str(self.file_name)
        return f"sheet {self.sheet_id} / tab {self.tab_name}"


# ============================================================================
# Baselines & Imports
# ============================================================================

@dataclass
class Snapshot:
    """
    Baseline row-set captured at export time.

    Attributes:
        user_id: Owner of the export
        content_type: Normalized content type (e.g. "landing_pages")
        source_key: Where the export was written
        rows: {record_id: {field_key: value}}
        captured_at: Export timestamp
        id: Store-assigned identifier
        version: Store-assigned version (1 = first export for this key)
    """
    user_id: str
    content_type: str
    source_key: SourceKey
    rows: dict[str, dict[str, Any]] = field(default_factory=dict)
    captured_at: datetime | None = None
    id: int | None = None
    version: int | None = None

    @property
    def record_count(self) -> int:
        return len(self.rows)


@dataclass
class ImportBatch:
    """Rows read from an import source. Transient, never persisted."""
    source_key: SourceKey
    rows: list[dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


# ============================================================================
# Change Detection
# ============================================================================

@dataclass(frozen=True, slots=True)
class FieldChange:
    """A single field-level difference. Values are in plain normalized form."""
    record_id: str
    field: str
    previous_value: Any
    new_value: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "field": self.field,
            "previous_value": self.previous_value,
            "new_value": self.new_value,
        }


@dataclass(frozen=True, slots=True)
class NewRecord:
    """Import row with no baseline in the snapshot."""
    record_id: str
    row: dict[str, Any] = field(compare=False, default_factory=dict)


@dataclass(frozen=True, slots=True)
class SkippedRow:
    """Import row that could not be diffed."""
    row_index: int
    reason: str
    record_id: str | None = None


@dataclass(frozen=True)
class ChangeSet:
    """
    Field-level differences produced by one reconciliation run.

    Never mutated in place: operator confirmation calls select(), which
    returns a new ChangeSet.
    """
    source_key: SourceKey
    changes: tuple[FieldChange, ...] = ()
    total_records_scanned: int = 0
    records_with_changes: int = 0
    new_records: tuple[NewRecord, ...] = ()
    skipped_rows: tuple[SkippedRow, ...] = ()

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self):
        return iter(self.changes)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    @property
    def record_ids(self) -> tuple[str, ...]:
        """Changed record ids in first-seen order."""
        return tuple(dict.fromkeys(change.record_id for change in self.changes))

    def grouped(self) -> dict[str, list[FieldChange]]:
        """Changes grouped by record, preserving detection order."""
        groups: dict[str, list[FieldChange]] = {}
        for change in self.changes:
            groups.setdefault(change.record_id, []).append(change)
        return groups

    def select(
        self,
        record_ids: Iterable[str] | None = None,
        fields: Iterable[str] | None = None,
    ) -> ChangeSet:
        """
        Return a new ChangeSet restricted to the approved records/fields.

        Args:
            record_ids: Records to keep (None keeps all)
            fields: Field keys to keep (None keeps all)
        """
        wanted_records = None if record_ids is None else {str(r) for r in record_ids}
        wanted_fields = None if fields is None else set(fields)

        kept = tuple(
            change
            for change in self.changes
            if (wanted_records is None or change.record_id in wanted_records)
            and (wanted_fields is None or change.field in wanted_fields)
        )
        return ChangeSet(
            source_key=self.source_key,
            changes=kept,
            total_records_scanned=self.total_records_scanned,
            records_with_changes=len({change.record_id for change in kept}),
            new_records=self.new_records,
            skipped_rows=self.skipped_rows,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_key": self.source_key.as_string(),
            "changes": [change.to_dict() for change in self.changes],
            "total_records_scanned": self.total_records_scanned,
            "records_with_changes": self.records_with_changes,
            "new_records": [record.record_id for record in self.new_records],
            "skipped_rows": [
                {"row_index": s.row_index, "record_id": s.record_id, "reason": s.reason}
                for s in self.skipped_rows
            ],
        }


# ============================================================================
# Validation, Dispatch & Audit
# ============================================================================

@dataclass(frozen=True, slots=True)
class ExportDetails:
    """Snapshot a validated import is bound to."""
    import_type: ImportType
    content_type: str
    source_key: SourceKey
    snapshot_id: int | None
    captured_at: datetime | None
    record_count: int = 0


@dataclass(frozen=True, slots=True)
class ValidationFailure:
    """Why an import source was rejected."""
    code: ValidationCode
    message: str
    content_type: str = ""
    source_key: SourceKey | None = None
    known_sources: tuple[SourceKey, ...] = ()


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one dispatch. Per-record failures never abort the batch."""
    success_count: int = 0
    failure_count: int = 0
    per_record_errors: dict[str, str] = field(default_factory=dict)
    succeeded_record_ids: tuple[str, ...] = ()
    skipped_record_ids: tuple[str, ...] = ()
    cancelled: bool = False

    @property
    def attempted(self) -> int:
        return self.success_count + self.failure_count

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0 and not self.cancelled


@dataclass(frozen=True, slots=True)
class PageChange:
    """Human-readable field change stored on an audit entry."""
    record_id: str
    record_label: str
    field: str
    previous_value: str
    new_value: str

    def to_dict(self) -> dict[str, str]:
        return {
            "record_id": self.record_id,
            "record_label": self.record_label,
            "field": self.field,
            "previous_value": self.previous_value,
            "new_value": self.new_value,
        }


@dataclass
class AuditEntry:
    """
    Persisted record of one logical sync operation.

    Created once, never updated. Corrections are new entries.
    """
    id: str
    user_id: str
    action_type: str
    content_type: str
    change_count: int
    success_count: int
    failure_count: int
    was_successful: bool
    created_at: datetime
    error_message: str | None = None
    page_changes: list[PageChange] = field(default_factory=list)
    record_errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Skipped:
    """Returned by the audit logger when a duplicate operation is suppressed."""
    fingerprint: str
    reason: str = "duplicate_operation"
