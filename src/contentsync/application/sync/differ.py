"""
Change Detector - Field-level diff between an import and its export snapshot.

Compares every editable field of every imported row against the stored
baseline and emits one FieldChange per differing field.

Rules:
- Read-only fields, the identity field and ignored fields are never compared
- Fields missing from metadata are editable by default
- Rows absent from the snapshot become new_records (not diffed)
- Snapshot rows absent from the import are ignored (never deletions)
- Malformed rows are skipped and counted, never raised

Output order is deterministic: import-row order, then field order in the row.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Protocol

from contentsync.domain.change_types import DataType
from contentsync.domain.errors import MetadataUnavailable, RowMalformed
from contentsync.domain.models import (
    ChangeSet,
    FieldChange,
    FieldMetadata,
    ImportBatch,
    NewRecord,
    SkippedRow,
    Snapshot,
)
from contentsync.domain.values import infer_data_type, is_empty, plain_equal, to_plain

logger = logging.getLogger(__name__)

DEFAULT_ID_FIELD = "id"


# =============================================================================
# Protocols
# =============================================================================


class FieldMetadataProvider(Protocol):
    """Protocol for field classification lookups."""

    def get_field_metadata(self, content_type: str) -> dict[str, FieldMetadata]:
        """Field key -> metadata for a content type."""
        ...


# =============================================================================
# Helper Functions
# =============================================================================


def normalize_record_id(value: Any) -> str:
    """
    Normalize a record identity to its string form.

    Spreadsheets hand back numeric ids as floats (123.0), so integral
    numbers are rendered without a fractional part.
    """
    if isinstance(value, bool):
        raise RowMalformed(f"Invalid record id: {value!r}")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value).strip()
    raise RowMalformed(f"Invalid record id type: {type(value).__name__}")


def resolve_data_type(
    metadata: FieldMetadata | None, previous: Any, new: Any
) -> DataType:
    """
    Pick the type used to coerce both sides of a comparison.

    Declared non-string types win. Otherwise the type is inferred from
    whichever side is not a plain string.
    """
    if metadata is not None and metadata.data_type is not DataType.STRING:
        return metadata.data_type
    return infer_data_type(previous) or infer_data_type(new) or DataType.STRING


def diff_row(
    record_id: str,
    row: Mapping[str, Any],
    baseline: Mapping[str, Any],
    field_metadata: Mapping[str, FieldMetadata],
    excluded: set[str],
) -> list[FieldChange]:
    """
    Diff one import row against its baseline row.

    Raises:
        RowMalformed: if any compared value is outside the closed Value type
    """
    changes: list[FieldChange] = []
    for field_key, new_value in row.items():
        if field_key in excluded:
            continue
        metadata = field_metadata.get(field_key)
        if metadata is not None and metadata.read_only:
            continue

        previous_value = baseline.get(field_key)
        data_type = resolve_data_type(metadata, previous_value, new_value)
        try:
            previous_plain = to_plain(previous_value, data_type)
            new_plain = to_plain(new_value, data_type)
        except RowMalformed as e:
            raise RowMalformed(f"Field {field_key!r}: {e.reason}", record_id) from e

        if not plain_equal(previous_plain, new_plain, data_type):
            changes.append(
                FieldChange(
                    record_id=record_id,
                    field=field_key,
                    previous_value=previous_plain,
                    new_value=new_plain,
                )
            )
    return changes


# =============================================================================
# Detection
# =============================================================================


def detect_changes(
    batch: ImportBatch,
    snapshot: Snapshot,
    field_metadata: Mapping[str, FieldMetadata] | None,
    id_field: str = DEFAULT_ID_FIELD,
    ignored_fields: Iterable[str] = (),
) -> ChangeSet:
    """
    Compute the change set between an import batch and a snapshot.

    Args:
        batch: Imported rows
        snapshot: Baseline captured at export time
        field_metadata: Field key -> metadata for the snapshot's content type
        id_field: Row key holding the record identity
        ignored_fields: Extra field keys never compared

    Returns:
        ChangeSet with changes, new records and skipped rows

    Raises:
        MetadataUnavailable: if field_metadata is None or empty
    """
    if not field_metadata:
        raise MetadataUnavailable(snapshot.content_type, "no field metadata")

    baseline_rows = {str(k): v for k, v in snapshot.rows.items()}
    excluded = {id_field, *ignored_fields}

    changes: list[FieldChange] = []
    new_records: list[NewRecord] = []
    skipped: list[SkippedRow] = []
    seen: set[str] = set()
    changed_records = 0

    for index, row in enumerate(batch.rows):
        if not isinstance(row, Mapping):
            skipped.append(SkippedRow(index, "row is not a mapping"))
            continue

        raw_id = row.get(id_field)
        if is_empty(raw_id):
            skipped.append(SkippedRow(index, f"missing {id_field}"))
            continue

        try:
            record_id = normalize_record_id(raw_id)
        except RowMalformed as e:
            skipped.append(SkippedRow(index, e.reason))
            continue

        if record_id in seen:
            skipped.append(SkippedRow(index, f"duplicate {id_field}", record_id))
            continue
        seen.add(record_id)

        baseline = baseline_rows.get(record_id)
        if baseline is None:
            new_records.append(NewRecord(record_id, dict(row)))
            continue

        try:
            row_changes = diff_row(record_id, row, baseline, field_metadata, excluded)
        except RowMalformed as e:
            logger.debug("Skipping row %d (%s): %s", index, record_id, e.reason)
            skipped.append(SkippedRow(index, e.reason, record_id))
            continue

        if row_changes:
            changed_records += 1
            changes.extend(row_changes)

    change_set = ChangeSet(
        source_key=batch.source_key,
        changes=tuple(changes),
        total_records_scanned=len(batch.rows),
        records_with_changes=changed_records,
        new_records=tuple(new_records),
        skipped_rows=tuple(skipped),
    )
    logger.info(
        "Change detection for %s: %d rows scanned, %d records changed, "
        "%d field changes, %d new, %d skipped",
        batch.source_key,
        change_set.total_records_scanned,
        change_set.records_with_changes,
        len(change_set),
        len(new_records),
        len(skipped),
    )
    return change_set


class ChangeDetector:
    """
    Change detection bound to a field metadata provider.

    Usage:
        detector = ChangeDetector(metadata_provider, ignored_fields=["updated_at"])
        change_set = detector.detect(batch, snapshot)
    """

    def __init__(
        self,
        metadata_provider: FieldMetadataProvider,
        id_field: str = DEFAULT_ID_FIELD,
        ignored_fields: Iterable[str] = (),
    ) -> None:
        self.metadata_provider = metadata_provider
        self.id_field = id_field
        self.ignored_fields = tuple(ignored_fields)

    def load_metadata(self, content_type: str) -> dict[str, FieldMetadata]:
        """
        Fetch field metadata, refusing to continue without it.

        Raises:
            MetadataUnavailable: on provider error or empty metadata
        """
        try:
            metadata = self.metadata_provider.get_field_metadata(content_type)
        except MetadataUnavailable:
            raise
        except Exception as e:
            raise MetadataUnavailable(content_type, str(e)) from e
        if not metadata:
            raise MetadataUnavailable(content_type, "provider returned no fields")
        return metadata

    def detect(
        self,
        batch: ImportBatch,
        snapshot: Snapshot,
        field_metadata: Mapping[str, FieldMetadata] | None = None,
    ) -> ChangeSet:
        """Detect changes, loading metadata from the provider when not given."""
        if field_metadata is None:
            field_metadata = self.load_metadata(snapshot.content_type)
        return detect_changes(
            batch,
            snapshot,
            field_metadata,
            id_field=self.id_field,
            ignored_fields=self.ignored_fields,
        )
