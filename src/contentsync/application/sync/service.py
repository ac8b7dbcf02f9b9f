"""
Reconciliation Service - Orchestrates an import from validation to audit.

Flow:
    prepare():  ValidationGate -> snapshot lookup -> ChangeDetector
    (operator reviews the plan and narrows it with ChangeSet.select)
    apply():    SyncDispatcher -> AuditLogger

Also records exports (snapshots) so later imports have a baseline.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol

from contentsync.application.actions.audit_logger import AuditLogger
from contentsync.application.sync.differ import ChangeDetector, normalize_record_id
from contentsync.application.sync.dispatcher import SyncDispatcher
from contentsync.application.validation.gate import SnapshotReader, ValidationGate
from contentsync.domain.change_types import ImportType, ValidationCode
from contentsync.domain.errors import RowMalformed, SourceValidationError
from contentsync.domain.field_registry import normalize_content_type
from contentsync.domain.models import (
    AuditEntry,
    ChangeSet,
    ExportDetails,
    FieldMetadata,
    ImportBatch,
    Skipped,
    Snapshot,
    SourceKey,
    SyncResult,
    ValidationFailure,
)
from contentsync.domain.values import is_empty

logger = logging.getLogger(__name__)


class SnapshotStore(SnapshotReader, Protocol):
    """Snapshot reads plus the export-side write."""

    def put_snapshot(self, snapshot: Snapshot) -> Snapshot:
        ...


@dataclass
class ReconciliationPlan:
    """Everything the operator needs to review before applying."""
    details: ExportDetails
    snapshot: Snapshot
    change_set: ChangeSet
    batch: ImportBatch
    field_metadata: dict[str, FieldMetadata] = field(default_factory=dict)

    @property
    def records(self) -> dict[str, dict[str, Any]]:
        """Baseline rows overlaid with imported rows, for record labels."""
        merged = {rid: dict(row) for rid, row in self.snapshot.rows.items()}
        for change in self.change_set.changes:
            merged.setdefault(change.record_id, {})[change.field] = change.new_value
        for record in self.change_set.new_records:
            merged.setdefault(record.record_id, dict(record.row))
        return merged


@dataclass
class ApplyOutcome:
    """Result of applying a change set."""
    sync_result: SyncResult
    audit: AuditEntry | Skipped | None = None

    @property
    def was_successful(self) -> bool:
        return self.sync_result.all_succeeded


def summarize_failure(sync_result: SyncResult) -> str | None:
    """Operator-facing error summary for an audit entry, None when all succeeded."""
    parts = []
    if sync_result.failure_count:
        parts.append(
            f"{sync_result.failure_count} of {sync_result.attempted} records failed"
        )
    if sync_result.cancelled:
        parts.append(
            f"cancelled with {len(sync_result.skipped_record_ids)} records not sent"
        )
    return "; ".join(parts) or None


class ReconciliationService:
    """
    End-to-end import reconciliation.

    Usage:
        plan = service.prepare(user_id, "landing_pages", "file", batch)
        approved = plan.change_set.select(record_ids=["101", "102"])
        outcome = service.apply(user_id, "landing_pages", approved, records=plan.records)
    """

    def __init__(
        self,
        store: SnapshotStore,
        detector: ChangeDetector,
        dispatcher: SyncDispatcher,
        audit_logger: AuditLogger,
        gate: ValidationGate | None = None,
    ) -> None:
        self.store = store
        self.gate = gate or ValidationGate(store)
        self.detector = detector
        self.dispatcher = dispatcher
        self.audit_logger = audit_logger

    # ========================================================================
    # Export side
    # ========================================================================

    def record_export(
        self,
        user_id: str,
        content_type: str,
        source_key: SourceKey,
        rows: Iterable[Mapping[str, Any]],
    ) -> Snapshot:
        """
        Store exported rows as the new baseline for a source.

        Rows without a usable identity are dropped; later duplicates win.
        """
        id_field = self.detector.id_field
        indexed: dict[str, dict[str, Any]] = {}
        dropped = 0
        for row in rows:
            raw_id = row.get(id_field) if isinstance(row, Mapping) else None
            if is_empty(raw_id):
                dropped += 1
                continue
            try:
                indexed[normalize_record_id(raw_id)] = dict(row)
            except RowMalformed:
                dropped += 1
        if dropped:
            logger.warning("Dropped %d exported rows without a usable %s", dropped, id_field)

        return self.store.put_snapshot(
            Snapshot(
                user_id=user_id,
                content_type=normalize_content_type(content_type),
                source_key=source_key,
                rows=indexed,
            )
        )

    # ========================================================================
    # Import side
    # ========================================================================

    def prepare(
        self,
        user_id: str,
        content_type: str,
        import_type: ImportType | str,
        batch: ImportBatch,
    ) -> ReconciliationPlan:
        """
        Validate the source and compute its change set.

        Raises:
            SourceValidationError: source does not match a stored export
            MetadataUnavailable: field metadata could not be loaded
        """
        content_type = normalize_content_type(content_type)
        result = self.gate.validate(user_id, content_type, import_type, batch.source_key)
        if not result.ok:
            raise SourceValidationError(result.error)
        details: ExportDetails = result.value

        snapshot = self.store.get_snapshot(user_id, content_type, batch.source_key)
        if snapshot is None:
            raise SourceValidationError(
                ValidationFailure(
                    code=ValidationCode.NO_MATCHING_EXPORT,
                    message=f"Export for {batch.source_key} is no longer available",
                    content_type=content_type,
                    source_key=batch.source_key,
                )
            )

        metadata = self.detector.load_metadata(content_type)
        change_set = self.detector.detect(batch, snapshot, metadata)
        return ReconciliationPlan(
            details=details,
            snapshot=snapshot,
            change_set=change_set,
            batch=batch,
            field_metadata=metadata,
        )

    def apply(
        self,
        user_id: str,
        content_type: str,
        change_set: ChangeSet,
        *,
        records: Mapping[str, Mapping[str, Any]] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ApplyOutcome:
        """
        Dispatch confirmed changes and record the outcome.

        An empty change set makes no external calls and writes no audit entry.
        """
        content_type = normalize_content_type(content_type)
        if change_set.is_empty:
            logger.info("Nothing to apply for %s", content_type)
            return ApplyOutcome(SyncResult())

        sync_result = self.dispatcher.dispatch(
            user_id, content_type, change_set, cancel_event=cancel_event
        )
        was_successful = sync_result.failure_count == 0 and not sync_result.cancelled
        audit = self.audit_logger.log(
            user_id,
            change_set,
            sync_result,
            was_successful,
            summarize_failure(sync_result),
            content_type=content_type,
            records=records,
        )
        return ApplyOutcome(sync_result=sync_result, audit=audit)
