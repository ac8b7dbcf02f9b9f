"""
Tests for the SQLite reconciliation store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from contentsync.domain.errors import ConfigError
from contentsync.domain.models import AuditEntry, PageChange, Snapshot, SourceKey
from contentsync.infrastructure.sqlite.store import SCHEMA_VERSION, ReconciliationStore

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def _snapshot(key, rows, captured_at=T0, user="alice", content_type="landing_pages"):
    return Snapshot(user, content_type, key, rows=rows, captured_at=captured_at)


class TestSnapshots:
    def test_round_trip_preserves_rows_and_order(self, store, file_key):
        rows = {
            "9": {"id": "9", "name": "Nine", "tags": ["a", "b"]},
            "1": {"id": "1", "name": "One", "settings": {"x": 1}},
        }

        stored = store.put_snapshot(_snapshot(file_key, rows))
        loaded = store.get_snapshot("alice", "landing_pages", file_key)

        assert stored.version == 1
        assert loaded.id == stored.id
        assert loaded.source_key == file_key
        assert loaded.captured_at == T0
        assert list(loaded.rows) == ["9", "1"]
        assert loaded.rows["9"]["tags"] == ["a", "b"]
        assert loaded.rows["1"]["settings"] == {"x": 1}

    def test_new_export_adds_version_and_latest_wins(self, store, file_key):
        first = store.put_snapshot(_snapshot(file_key, {"1": {"name": "Old"}}))
        second = store.put_snapshot(
            _snapshot(file_key, {"1": {"name": "New"}}, captured_at=T0 + timedelta(hours=1))
        )

        latest = store.get_snapshot("alice", "landing_pages", file_key)

        assert (first.version, second.version) == (1, 2)
        assert latest.id == second.id
        assert latest.rows["1"]["name"] == "New"
        assert store.list_snapshot_sources("alice", "landing_pages") == [file_key]

    def test_missing_snapshot(self, store, file_key):
        assert store.get_snapshot("alice", "landing_pages", file_key) is None
        assert store.get_snapshot("bob", "landing_pages", file_key) is None

    def test_snapshots_are_scoped_by_user_and_type(self, store, file_key):
        store.put_snapshot(_snapshot(file_key, {"1": {}}))

        assert store.get_snapshot("bob", "landing_pages", file_key) is None
        assert store.get_snapshot("alice", "site_pages", file_key) is None

    def test_list_sources_newest_first(self, store):
        file_a = SourceKey.for_file("a.csv")
        sheet = SourceKey.for_sheet("sheet1", "Pages")
        store.put_snapshot(_snapshot(file_a, {"1": {}}))
        store.put_snapshot(_snapshot(sheet, {"1": {}}, captured_at=T0 + timedelta(days=1)))
        store.put_snapshot(_snapshot(SourceKey.for_file("b.csv"), {"1": {}}, user="bob"))

        assert store.list_snapshot_sources("alice", "landing_pages") == [sheet, file_a]
        assert store.list_snapshot_sources("alice", "blog_posts") == []


class TestAuditEntries:
    def _entry(self, entry_id, created_at, user="alice"):
        return AuditEntry(
            id=entry_id,
            user_id=user,
            action_type="import_sync_failed",
            content_type="landing_pages",
            change_count=2,
            success_count=1,
            failure_count=1,
            was_successful=False,
            error_message="1 of 2 records failed",
            page_changes=[PageChange("1", "Home", "HTML Title", "Field not set", "Hi")],
            record_errors={"2": "HTTP 500: upstream"},
            created_at=created_at,
        )

    def test_round_trip(self, store):
        entry = self._entry("import_sync_failed_1_abcd", T0)

        assert store.insert_audit_entry(entry) == entry.id
        assert store.get_audit_entry(entry.id) == entry

    def test_list_newest_first_with_limit(self, store):
        for i in range(3):
            store.insert_audit_entry(self._entry(f"e{i}", T0 + timedelta(minutes=i)))
        store.insert_audit_entry(self._entry("other", T0, user="bob"))

        assert [e.id for e in store.list_audit_entries("alice")] == ["e2", "e1", "e0"]
        assert [e.id for e in store.list_audit_entries("alice", limit=1)] == ["e2"]

    def test_get_unknown_entry(self, store):
        assert store.get_audit_entry("nope") is None


class TestSchema:
    def test_version_recorded(self, store):
        assert store.get_schema_version() == SCHEMA_VERSION

    def test_initialize_is_idempotent_and_persistent(self, tmp_path):
        db_path = tmp_path / "nested" / "sync.db"
        store = ReconciliationStore(db_path)
        store.initialize_schema()
        store.put_snapshot(_snapshot(SourceKey.for_file("a.csv"), {"1": {"name": "x"}}))
        store.close()

        reopened = ReconciliationStore(db_path)
        reopened.initialize_schema()
        try:
            assert reopened.get_snapshot(
                "alice", "landing_pages", SourceKey.for_file("a.csv")
            ).rows == {"1": {"name": "x"}}
        finally:
            reopened.close()

    def test_version_before_initialize(self):
        store = ReconciliationStore(":memory:")
        try:
            assert store.get_schema_version() is None
        finally:
            store.close()

    def test_newer_schema_is_refused(self, tmp_path):
        db_path = tmp_path / "sync.db"
        store = ReconciliationStore(db_path)
        store.initialize_schema()
        store._get_connection().execute(
            "UPDATE schema_meta SET value = ? WHERE key = 'version'",
            (str(SCHEMA_VERSION + 1),),
        )
        store._get_connection().commit()
        store.close()

        reopened = ReconciliationStore(db_path)
        try:
            with pytest.raises(ConfigError, match="schema version"):
                reopened.initialize_schema()
        finally:
            reopened.close()
