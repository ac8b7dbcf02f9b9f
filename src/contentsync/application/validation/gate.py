"""
Validation Gate - Binds an import source to the export it claims to update.

This module handles:
- Import type vs. source shape checks (file name / sheet id + tab)
- Export file name convention checks
- Lookup of the most recent snapshot for (user, content type, source)

Architecture Note:
    - Pure read: never writes to the store
    - Returns Success/Failure; callers decide whether to raise
"""

from __future__ import annotations

import logging
from typing import Protocol

from contentsync.domain.change_types import ImportType, ValidationCode
from contentsync.domain.field_registry import (
    normalize_content_type,
    parse_export_filename,
)
from contentsync.domain.models import (
    ExportDetails,
    Snapshot,
    SourceKey,
    ValidationFailure,
)
from contentsync.domain.results import Failure, Result, Success

logger = logging.getLogger(__name__)


# =============================================================================
# Protocols
# =============================================================================


class SnapshotReader(Protocol):
    """Protocol for snapshot lookups used during validation and detection."""

    def get_snapshot(
        self, user_id: str, content_type: str, source_key: SourceKey
    ) -> Snapshot | None:
        """Latest snapshot for the triple, or None."""
        ...

    def list_snapshot_sources(self, user_id: str, content_type: str) -> list[SourceKey]:
        """Sources that have at least one snapshot for this content type."""
        ...


# =============================================================================
# Gate
# =============================================================================


class ValidationGate:
    """
    Confirms that an import matches a stored export before any diff runs.

    Usage:
        gate = ValidationGate(store)
        result = gate.validate(user_id, "landing_pages", "file", SourceKey.for_file(name))
        if not result.ok:
            print(result.error.message)
    """

    def __init__(self, store: SnapshotReader) -> None:
        self.store = store

    def validate(
        self,
        user_id: str,
        content_type: str,
        import_type: ImportType | str,
        source_key: SourceKey,
    ) -> Result[ExportDetails, ValidationFailure]:
        """
        Validate an import source.

        Args:
            user_id: Operator performing the import
            content_type: Content type the import claims to update
            import_type: "file" or "sheet"
            source_key: Identity of the import origin

        Returns:
            Success(ExportDetails) or Failure(ValidationFailure)
        """
        content_type = normalize_content_type(content_type)

        try:
            kind = (
                import_type
                if isinstance(import_type, ImportType)
                else ImportType.from_string(import_type)
            )
        except ValueError as e:
            return self._fail(ValidationCode.INVALID_SOURCE, str(e), content_type, source_key)

        if source_key.kind is not kind or not source_key.is_complete:
            needs = (
                "a file name"
                if kind is ImportType.FILE
                else "both a sheet id and a tab name"
            )
            return self._fail(
                ValidationCode.INVALID_SOURCE,
                f"A {kind.value} import needs {needs}; got {source_key}",
                content_type,
                source_key,
            )

        if kind is ImportType.FILE:
            parsed = parse_export_filename(source_key.file_name or "")
            if parsed is not None and parsed.content_type != content_type:
                return self._fail(
                    ValidationCode.SOURCE_MISMATCH,
                    f"File {source_key} was exported for {parsed.content_type}, "
                    f"not {content_type}",
                    content_type,
                    source_key,
                )

        snapshot = self.store.get_snapshot(user_id, content_type, source_key)
        if snapshot is not None:
            logger.debug(
                "Validated %s against snapshot %s (v%s)",
                source_key,
                snapshot.id,
                snapshot.version,
            )
            return Success(
                ExportDetails(
                    import_type=kind,
                    content_type=content_type,
                    source_key=source_key,
                    snapshot_id=snapshot.id,
                    captured_at=snapshot.captured_at,
                    record_count=snapshot.record_count,
                )
            )

        known = tuple(self.store.list_snapshot_sources(user_id, content_type))
        if known:
            names = ", ".join(str(key) for key in known)
            return self._fail(
                ValidationCode.SOURCE_MISMATCH,
                f"{source_key} does not match any {content_type} export. "
                f"Known exports: {names}",
                content_type,
                source_key,
                known,
            )

        return self._fail(
            ValidationCode.NO_MATCHING_EXPORT,
            f"No {content_type} export found. Export the content before importing.",
            content_type,
            source_key,
        )

    def _fail(
        self,
        code: ValidationCode,
        message: str,
        content_type: str,
        source_key: SourceKey,
        known: tuple[SourceKey, ...] = (),
    ) -> Failure[ValidationFailure]:
        logger.info("Import validation failed (%s): %s", code.value, message)
        return Failure(
            ValidationFailure(
                code=code,
                message=message,
                content_type=content_type,
                source_key=source_key,
                known_sources=known,
            ),
            recoverable=True,
        )
