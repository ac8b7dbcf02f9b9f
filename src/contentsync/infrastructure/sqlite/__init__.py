"""
SQLite infrastructure package.

Provides SQLite storage for snapshots and audit entries.
"""

from contentsync.infrastructure.sqlite.store import ReconciliationStore

__all__ = ["ReconciliationStore"]
