"""
SQLite-based reconciliation store.

Provides persistence for:
- Export snapshots (versioned, copy-on-write)
- Audit entries (append-only)

Uses stdlib sqlite3 with no ORM.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from contentsync.domain.errors import ConfigError
from contentsync.domain.models import AuditEntry, PageChange, Snapshot, SourceKey

logger = logging.getLogger(__name__)

# Schema version - increment when making breaking changes
SCHEMA_VERSION = 1


class ReconciliationStore:
    """
    SQLite-backed storage for snapshots and audit history.

    Usage:
        store = ReconciliationStore(Path("output/contentsync.db"))
        store.initialize_schema()

        snapshot = store.put_snapshot(Snapshot(user_id, "landing_pages", key, rows))
        latest = store.get_snapshot(user_id, "landing_pages", key)
        store.insert_audit_entry(entry)
    """

    def __init__(self, db_path: Path | str) -> None:
        """
        Initialize reconciliation store.

        Args:
            db_path: Path to SQLite database file (created if not exists),
                or ":memory:" for an in-process database
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        logger.info("ReconciliationStore initialized: %s", self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            # Dispatch workers and the CLI share one connection under _lock
            self._connection = sqlite3.connect(
                str(self.db_path), check_same_thread=False
            )
            self._connection.execute("PRAGMA foreign_keys = ON")
            self._connection.row_factory = sqlite3.Row
            logger.debug("Database connection established")
        return self._connection

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.debug("Database connection closed")

    # ========================================================================
    # Schema Management
    # ========================================================================

    def initialize_schema(self) -> None:
        """
        Create database tables if they don't exist.

        Safe to call multiple times - uses CREATE TABLE IF NOT EXISTS.

        Raises:
            ConfigError: if the database was written by a newer schema
        """
        with self._lock:
            conn = self._get_connection()

            existing = self.get_schema_version()
            if existing is not None and existing > SCHEMA_VERSION:
                raise ConfigError(
                    f"Database {self.db_path} uses schema version {existing}; "
                    f"this release supports up to {SCHEMA_VERSION}"
                )

            # One row per export; version increments per (user, type, source)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    content_type TEXT NOT NULL,
                    source_key TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    captured_at TEXT NOT NULL,
                    record_count INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (user_id, content_type, source_key, version)
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshot_rows (
                    snapshot_id INTEGER NOT NULL,
                    position INTEGER NOT NULL,
                    record_id TEXT NOT NULL,
                    row_json TEXT NOT NULL,
                    PRIMARY KEY (snapshot_id, record_id),
                    FOREIGN KEY (snapshot_id) REFERENCES snapshots(id) ON DELETE CASCADE
                )
            """
            )

            # Append-only; never updated after insert
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS audit_entries (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    action_type TEXT NOT NULL,
                    content_type TEXT NOT NULL,
                    change_count INTEGER NOT NULL DEFAULT 0,
                    success_count INTEGER NOT NULL DEFAULT 0,
                    failure_count INTEGER NOT NULL DEFAULT 0,
                    was_successful INTEGER NOT NULL,
                    error_message TEXT,
                    page_changes_json TEXT NOT NULL DEFAULT '[]',
                    record_errors_json TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_snapshots_lookup
                ON snapshots (user_id, content_type, source_key, version)
            """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_audit_user_created
                ON audit_entries (user_id, created_at)
            """
            )

            # Schema metadata (for future migrations)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """
            )
            conn.execute(
                """
                INSERT OR REPLACE INTO schema_meta (key, value)
                VALUES ('version', ?)
            """,
                (str(SCHEMA_VERSION),),
            )

            conn.commit()
        logger.info("Database schema initialized (version %d)", SCHEMA_VERSION)

    def get_schema_version(self) -> int | None:
        """Return the stored schema version, None before initialization."""
        with self._lock:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT value FROM schema_meta WHERE key = 'version'"
                ).fetchone()
            except sqlite3.OperationalError:
                return None
            return int(row["value"]) if row else None

    # ========================================================================
    # Snapshot Operations
    # ========================================================================

    def put_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """
        Store a new snapshot version.

        Existing versions are never modified. The header and every row are
        written in one transaction, so readers never see a partial snapshot.

        Args:
            snapshot: Snapshot to store (id/version are ignored)

        Returns:
            New Snapshot with id, version and captured_at populated
        """
        captured_at = snapshot.captured_at or datetime.now(timezone.utc)
        key = snapshot.source_key.as_string()

        with self._lock:
            conn = self._get_connection()
            with conn:
                row = conn.execute(
                    """
                    SELECT COALESCE(MAX(version), 0) AS latest FROM snapshots
                    WHERE user_id = ? AND content_type = ? AND source_key = ?
                """,
                    (snapshot.user_id, snapshot.content_type, key),
                ).fetchone()
                version = int(row["latest"]) + 1

                cursor = conn.execute(
                    """
                    INSERT INTO snapshots
                        (user_id, content_type, source_key, version, captured_at, record_count)
                    VALUES (?, ?, ?, ?, ?, ?)
                """,
                    (
                        snapshot.user_id,
                        snapshot.content_type,
                        key,
                        version,
                        captured_at.isoformat(),
                        len(snapshot.rows),
                    ),
                )
                snapshot_id = cursor.lastrowid

                conn.executemany(
                    """
                    INSERT INTO snapshot_rows (snapshot_id, position, record_id, row_json)
                    VALUES (?, ?, ?, ?)
                """,
                    [
                        (snapshot_id, position, str(record_id), _dumps(row_data))
                        for position, (record_id, row_data) in enumerate(
                            snapshot.rows.items()
                        )
                    ],
                )

        logger.info(
            "Stored snapshot %d (%s v%d, %d records)",
            snapshot_id,
            key,
            version,
            len(snapshot.rows),
        )
        return Snapshot(
            user_id=snapshot.user_id,
            content_type=snapshot.content_type,
            source_key=snapshot.source_key,
            rows={str(k): dict(v) for k, v in snapshot.rows.items()},
            captured_at=captured_at,
            id=snapshot_id,
            version=version,
        )

    def get_snapshot(
        self, user_id: str, content_type: str, source_key: SourceKey
    ) -> Snapshot | None:
        """Get the latest snapshot for (user, content type, source), or None."""
        with self._lock:
            conn = self._get_connection()
            header = conn.execute(
                """
                SELECT * FROM snapshots
                WHERE user_id = ? AND content_type = ? AND source_key = ?
                ORDER BY version DESC
                LIMIT 1
            """,
                (user_id, content_type, source_key.as_string()),
            ).fetchone()
            if header is None:
                return None

            rows = conn.execute(
                """
                SELECT record_id, row_json FROM snapshot_rows
                WHERE snapshot_id = ?
                ORDER BY position
            """,
                (header["id"],),
            ).fetchall()

        return Snapshot(
            user_id=header["user_id"],
            content_type=header["content_type"],
            source_key=SourceKey.parse(header["source_key"]),
            rows={row["record_id"]: json.loads(row["row_json"]) for row in rows},
            captured_at=datetime.fromisoformat(header["captured_at"]),
            id=header["id"],
            version=header["version"],
        )

    def list_snapshot_sources(self, user_id: str, content_type: str) -> list[SourceKey]:
        """List distinct sources with snapshots for this user and content type."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                """
                SELECT source_key, MAX(captured_at) AS latest FROM snapshots
                WHERE user_id = ? AND content_type = ?
                GROUP BY source_key
                ORDER BY latest DESC, source_key
            """,
                (user_id, content_type),
            ).fetchall()
        return [SourceKey.parse(row["source_key"]) for row in rows]

    # ========================================================================
    # Audit Operations
    # ========================================================================

    def insert_audit_entry(self, entry: AuditEntry) -> str:
        """
        Persist an audit entry.

        Raises:
            sqlite3.Error: if the entry cannot be written (never swallowed)
        """
        with self._lock:
            conn = self._get_connection()
            with conn:
                conn.execute(
                    """
                    INSERT INTO audit_entries (
                        id, user_id, action_type, content_type, change_count,
                        success_count, failure_count, was_successful, error_message,
                        page_changes_json, record_errors_json, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        entry.id,
                        entry.user_id,
                        entry.action_type,
                        entry.content_type,
                        entry.change_count,
                        entry.success_count,
                        entry.failure_count,
                        1 if entry.was_successful else 0,
                        entry.error_message,
                        _dumps([change.to_dict() for change in entry.page_changes]),
                        _dumps(entry.record_errors),
                        entry.created_at.isoformat(),
                    ),
                )
        logger.debug("Audit entry stored: %s", entry.id)
        return entry.id

    def list_audit_entries(self, user_id: str, limit: int = 20) -> list[AuditEntry]:
        """Most recent audit entries for a user, newest first."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                """
                SELECT * FROM audit_entries
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
            """,
                (user_id, limit),
            ).fetchall()
        return [self._row_to_audit_entry(row) for row in rows]

    def get_audit_entry(self, entry_id: str) -> AuditEntry | None:
        """Get a single audit entry by id."""
        with self._lock:
            conn = self._get_connection()
            row = conn.execute(
                "SELECT * FROM audit_entries WHERE id = ?", (entry_id,)
            ).fetchone()
        return self._row_to_audit_entry(row) if row else None

    def _row_to_audit_entry(self, row: sqlite3.Row) -> AuditEntry:
        """Convert database row to AuditEntry."""
        return AuditEntry(
            id=row["id"],
            user_id=row["user_id"],
            action_type=row["action_type"],
            content_type=row["content_type"],
            change_count=row["change_count"],
            success_count=row["success_count"],
            failure_count=row["failure_count"],
            was_successful=bool(row["was_successful"]),
            error_message=row["error_message"],
            page_changes=[
                PageChange(**item) for item in json.loads(row["page_changes_json"])
            ],
            record_errors=json.loads(row["record_errors_json"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)
