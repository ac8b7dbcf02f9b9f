"""
Audit Logger - Persists one audit entry per logical sync operation.

This module handles:
- Fingerprinting sync outcomes for deduplication
- Suppressing repeats inside a short window (double submits, re-renders)
- Expanding FieldChanges into human-readable PageChanges

Architecture Note:
    - Dedup state lives in a caller-owned TimedCache (no module globals)
    - Entries are written for failed syncs too
    - Store errors propagate; an audit entry is never silently dropped
"""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Protocol

from contentsync.domain.change_types import AuditActionType
from contentsync.domain.field_registry import (
    FIELD_NOT_SET,
    field_label,
    normalize_content_type,
    resolve_record_label,
)
from contentsync.domain.models import (
    AuditEntry,
    ChangeSet,
    PageChange,
    Skipped,
    SyncResult,
)
from contentsync.domain.values import display_value, is_empty
from contentsync.infrastructure.cache.timed_cache import TimedCache

logger = logging.getLogger(__name__)

DEDUP_WINDOW_SECONDS = 2.0


# =============================================================================
# Protocols
# =============================================================================


class AuditStore(Protocol):
    """Protocol for audit persistence operations."""

    def insert_audit_entry(self, entry: AuditEntry) -> str:
        """Persist an entry. Returns its id."""
        ...

    def list_audit_entries(self, user_id: str, limit: int = 20) -> list[AuditEntry]:
        """Most recent entries for a user."""
        ...


# =============================================================================
# Helper Functions
# =============================================================================


def compute_fingerprint(
    change_set: ChangeSet,
    sync_result: SyncResult,
    was_successful: bool,
) -> str:
    """
    Fingerprint a sync outcome.

    Two calls describing the same changes with the same outcome produce
    the same fingerprint.
    """
    payload = {
        "changes": [change.to_dict() for change in change_set.changes],
        "success_count": sync_result.success_count,
        "failure_count": sync_result.failure_count,
        "was_successful": was_successful,
        "record_ids": sorted(change_set.record_ids),
    }
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def expand_page_changes(
    change_set: ChangeSet,
    records: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[PageChange]:
    """
    Expand field changes into display rows, one per FieldChange.

    Args:
        change_set: Changes that were dispatched
        records: record_id -> row, used to resolve record labels
    """
    records = records or {}
    page_changes = []
    for change in change_set.changes:
        previous = (
            FIELD_NOT_SET
            if is_empty(change.previous_value)
            else display_value(change.previous_value)
        )
        page_changes.append(
            PageChange(
                record_id=change.record_id,
                record_label=resolve_record_label(
                    change.record_id, records.get(change.record_id)
                ),
                field=field_label(change.field),
                previous_value=previous,
                new_value=display_value(change.new_value),
            )
        )
    return page_changes


def new_entry_id(action_type: AuditActionType, created_at: datetime) -> str:
    """Entry ids look like import_sync_1718000000000_9f2c4e1a."""
    millis = int(created_at.timestamp() * 1000)
    return f"{action_type.value}_{millis}_{secrets.token_hex(4)}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Logger
# =============================================================================


class AuditLogger:
    """
    Records sync outcomes exactly once per logical operation.

    Usage:
        audit = AuditLogger(store, TimedCache(window_seconds=2.0))
        outcome = audit.log(user_id, change_set, result, result.all_succeeded,
                            content_type="landing_pages")
        if isinstance(outcome, Skipped):
            ...  # duplicate inside the window
    """

    def __init__(
        self,
        store: AuditStore,
        dedup_cache: TimedCache | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.dedup_cache = (
            dedup_cache if dedup_cache is not None else TimedCache(DEDUP_WINDOW_SECONDS)
        )
        self._now = now

    def log(
        self,
        user_id: str,
        change_set: ChangeSet,
        sync_result: SyncResult,
        was_successful: bool,
        error_message: str | None = None,
        *,
        content_type: str,
        records: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> AuditEntry | Skipped:
        """
        Persist an audit entry unless the same outcome was just logged.

        Returns:
            The stored AuditEntry, or Skipped for a duplicate inside the window

        Raises:
            Any store error (the entry is not recorded as seen in that case)
        """
        fingerprint = compute_fingerprint(change_set, sync_result, was_successful)
        # Reserved atomically; released again if the write fails
        if not self.dedup_cache.add_if_absent(fingerprint, None):
            logger.info("Skipping duplicate audit entry %s", fingerprint[:12])
            return Skipped(fingerprint)

        action_type = AuditActionType.for_outcome(was_successful)
        created_at = self._now()
        entry = AuditEntry(
            id=new_entry_id(action_type, created_at),
            user_id=user_id,
            action_type=action_type.value,
            content_type=normalize_content_type(content_type),
            change_count=len(change_set),
            success_count=sync_result.success_count,
            failure_count=sync_result.failure_count,
            was_successful=was_successful,
            error_message=error_message,
            page_changes=expand_page_changes(change_set, records),
            record_errors=dict(sync_result.per_record_errors),
            created_at=created_at,
        )

        try:
            self.store.insert_audit_entry(entry)
        except Exception:
            self.dedup_cache.invalidate(fingerprint)
            raise
        self.dedup_cache.put(fingerprint, entry.id)

        logger.info(
            "Audit entry %s: %d changes, %d succeeded, %d failed",
            entry.id,
            entry.change_count,
            entry.success_count,
            entry.failure_count,
        )
        return entry
