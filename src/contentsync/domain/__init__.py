"""
Domain layer package.

Contains pure data models with no I/O dependencies.
Models can be serialized to/from SQLite via the infrastructure layer.
"""

from contentsync.domain.change_types import (
    AuditActionType,
    DataType,
    ImportType,
    ValidationCode,
)
from contentsync.domain.errors import (
    ConfigError,
    ContentSyncError,
    ExternalCallFailed,
    MetadataUnavailable,
    RowMalformed,
    SourceValidationError,
)
from contentsync.domain.models import (
    AuditEntry,
    ChangeSet,
    ExportDetails,
    FieldChange,
    FieldMetadata,
    ImportBatch,
    NewRecord,
    PageChange,
    Skipped,
    SkippedRow,
    Snapshot,
    SourceKey,
    SyncResult,
    ValidationFailure,
)
from contentsync.domain.results import Failure, Result, Success

__all__ = [
    # Enums
    "AuditActionType",
    "DataType",
    "ImportType",
    "ValidationCode",
    # Errors
    "ConfigError",
    "ContentSyncError",
    "ExternalCallFailed",
    "MetadataUnavailable",
    "RowMalformed",
    "SourceValidationError",
    # Models
    "AuditEntry",
    "ChangeSet",
    "ExportDetails",
    "FieldChange",
    "FieldMetadata",
    "ImportBatch",
    "NewRecord",
    "PageChange",
    "Skipped",
    "SkippedRow",
    "Snapshot",
    "SourceKey",
    "SyncResult",
    "ValidationFailure",
    # Results
    "Failure",
    "Result",
    "Success",
]
