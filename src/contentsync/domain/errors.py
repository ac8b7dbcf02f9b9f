"""
Error taxonomy for the reconciliation engine.

Fatal errors (anything that would make the output wrong) derive from
ContentSyncError and propagate to the caller. Errors that only make the
output partial are raised internally and absorbed into result structures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contentsync.domain.models import ValidationFailure


class ContentSyncError(Exception):
    """Base class for engine errors."""


class SourceValidationError(ContentSyncError):
    """Raised when an import source does not match a stored export.

    Fatal for the operation: no diff or sync work begins.

    Usage:
        raise SourceValidationError(failure)
    """

    def __init__(self, failure: ValidationFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure

    @property
    def code(self):
        return self.failure.code


class MetadataUnavailable(ContentSyncError):
    """Raised when field metadata for a content type cannot be obtained.

    Fatal for the operation: a diff with unknown read-only fields is never run.
    """

    def __init__(self, content_type: str, reason: str = "") -> None:
        message = f"Field metadata unavailable for content type {content_type!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.content_type = content_type


class RowMalformed(ContentSyncError):
    """Raised when a single import row cannot be diffed.

    Recoverable - the row is skipped and counted, the batch continues.
    """

    def __init__(self, reason: str, record_id: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.record_id = record_id


class ExternalCallFailed(ContentSyncError):
    """Raised when the external content system rejects a single record.

    Recoverable - recorded in SyncResult.per_record_errors.
    """

    def __init__(self, record_id: str, message: str) -> None:
        super().__init__(f"{record_id}: {message}")
        self.record_id = record_id
        self.message = message


class ConfigError(ContentSyncError):
    """Raised when a configuration file is missing or invalid."""
