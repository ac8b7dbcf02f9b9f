"""
Tests for change detection between an import batch and its export snapshot.
"""

import copy
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from contentsync.application.sync.differ import (
    ChangeDetector,
    detect_changes,
    normalize_record_id,
)
from contentsync.domain.change_types import DataType
from contentsync.domain.errors import MetadataUnavailable, RowMalformed
from contentsync.domain.models import FieldChange, FieldMetadata, ImportBatch, Snapshot, SourceKey
from contentsync.infrastructure.schema.metadata_provider import StaticFieldMetadataProvider


def _batch(key, rows):
    return ImportBatch(source_key=key, rows=rows)


def _snapshot(rows, key=None):
    return Snapshot(
        user_id="u1",
        content_type="blog_posts",
        source_key=key or SourceKey.for_file("posts.csv"),
        rows=rows,
    )


class TestDetectChanges:
    """Core diff properties."""

    def test_identical_import_yields_no_changes(self, snapshot, field_metadata):
        batch = _batch(snapshot.source_key, [dict(row) for row in snapshot.rows.values()])

        change_set = detect_changes(batch, snapshot, field_metadata)

        assert change_set.changes == ()
        assert change_set.records_with_changes == 0
        assert change_set.total_records_scanned == 3
        assert change_set.new_records == ()

    def test_read_only_field_scenario(self, field_metadata):
        snapshot = _snapshot({"42": {"id": "42", "title": "Old", "views": 10}})
        batch = _batch(snapshot.source_key, [{"id": "42", "title": "New", "views": 10}])

        change_set = detect_changes(batch, snapshot, field_metadata)

        assert change_set.changes == (
            FieldChange(record_id="42", field="title", previous_value="Old", new_value="New"),
        )
        assert change_set.records_with_changes == 1

    def test_read_only_field_never_emitted_even_when_different(self, snapshot, field_metadata):
        rows = [dict(row) for row in snapshot.rows.values()]
        for row in rows:
            row["views"] = 999

        change_set = detect_changes(_batch(snapshot.source_key, rows), snapshot, field_metadata)

        assert all(change.field != "views" for change in change_set.changes)
        assert change_set.is_empty

    def test_new_record_is_reported_not_diffed(self, snapshot, field_metadata):
        batch = _batch(
            snapshot.source_key,
            [{"id": "99", "name": "Brand new", "html_title": "Fresh"}],
        )

        change_set = detect_changes(batch, snapshot, field_metadata)

        assert [record.record_id for record in change_set.new_records] == ["99"]
        assert change_set.changes == ()
        assert change_set.records_with_changes == 0

    def test_array_order_is_ignored(self, field_metadata):
        snapshot = _snapshot({"1": {"id": "1", "tags": ["a", "b"]}})
        batch = _batch(snapshot.source_key, [{"id": "1", "tags": ["b", "a"]}])

        assert detect_changes(batch, snapshot, field_metadata).is_empty

    def test_array_from_comma_string(self, field_metadata):
        snapshot = _snapshot({"1": {"id": "1", "tags": ["news", "product"]}})
        batch = _batch(snapshot.source_key, [{"id": "1", "tags": "product, news"}])

        assert detect_changes(batch, snapshot, field_metadata).is_empty

    def test_detection_is_idempotent(self, snapshot, field_metadata):
        rows = [
            {"id": "101", "name": "Home page", "html_title": "Welcome"},
            {"id": "102", "name": "Pricing", "html_title": "Plans & pricing"},
            {"id": "104", "name": "Careers"},
        ]
        batch = _batch(snapshot.source_key, rows)

        first = detect_changes(batch, snapshot, field_metadata)
        second = detect_changes(copy.deepcopy(batch), snapshot, field_metadata)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_snapshot_rows_missing_from_import_are_not_deletions(self, snapshot, field_metadata):
        batch = _batch(snapshot.source_key, [dict(snapshot.rows["101"])])

        change_set = detect_changes(batch, snapshot, field_metadata)

        assert change_set.is_empty
        assert change_set.total_records_scanned == 1

    def test_output_order_follows_import_rows_then_fields(self, snapshot, field_metadata):
        rows = [
            {"id": "102", "html_title": "B-title", "name": "B-name"},
            {"id": "101", "name": "A-name", "html_title": "A-title"},
        ]

        change_set = detect_changes(_batch(snapshot.source_key, rows), snapshot, field_metadata)

        assert [(c.record_id, c.field) for c in change_set.changes] == [
            ("102", "html_title"),
            ("102", "name"),
            ("101", "name"),
            ("101", "html_title"),
        ]
        assert change_set.record_ids == ("102", "101")

    def test_empty_previous_value_is_none(self, snapshot, field_metadata):
        batch = _batch(snapshot.source_key, [{"id": "103", "html_title": "About us"}])

        change_set = detect_changes(batch, snapshot, field_metadata)

        assert change_set.changes == (FieldChange("103", "html_title", None, "About us"),)

    def test_empty_like_values_are_equal(self, field_metadata):
        snapshot = _snapshot({"1": {"id": "1", "title": None, "tags": [], "settings": {}}})
        batch = _batch(
            snapshot.source_key,
            [{"id": "1", "title": "  ", "tags": "", "settings": "null"}],
        )

        assert detect_changes(batch, snapshot, field_metadata).is_empty

    def test_strings_compare_trimmed_and_case_sensitive(self, field_metadata):
        snapshot = _snapshot({"1": {"id": "1", "title": "Hello"}})

        trimmed = detect_changes(
            _batch(snapshot.source_key, [{"id": "1", "title": "  Hello "}]), snapshot, field_metadata
        )
        cased = detect_changes(
            _batch(snapshot.source_key, [{"id": "1", "title": "hello"}]), snapshot, field_metadata
        )

        assert trimmed.is_empty
        assert len(cased) == 1

    def test_typed_coercion(self, field_metadata):
        snapshot = _snapshot(
            {
                "1": {
                    "id": "1",
                    "published": True,
                    "priority": 10,
                    "publish_date": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
                    "settings": {"b": 2, "a": 1},
                }
            }
        )
        batch = _batch(
            snapshot.source_key,
            [
                {
                    "id": "1",
                    "published": "TRUE",
                    "priority": "10.0",
                    "publish_date": "2024-05-01T12:00:00Z",
                    "settings": '{"a": 1, "b": 2}',
                }
            ],
        )

        assert detect_changes(batch, snapshot, field_metadata).is_empty

    def test_type_inferred_for_unknown_fields(self, field_metadata):
        snapshot = _snapshot({"1": {"id": "1", "score": 3, "flag": False}})
        batch = _batch(snapshot.source_key, [{"id": "1", "score": "3", "flag": "no"}])

        assert detect_changes(batch, snapshot, field_metadata).is_empty

    def test_numeric_ids_from_spreadsheets_match(self, field_metadata):
        snapshot = _snapshot({"42": {"id": "42", "title": "Old"}})
        batch = _batch(snapshot.source_key, [{"id": 42.0, "title": "New"}])

        change_set = detect_changes(batch, snapshot, field_metadata)

        assert change_set.record_ids == ("42",)

    def test_ignored_fields_are_not_compared(self, field_metadata):
        snapshot = _snapshot({"1": {"id": "1", "title": "Same", "updated_at": "2024-01-01"}})
        batch = _batch(snapshot.source_key, [{"id": "1", "title": "Same", "updated_at": "2025-01-01"}])

        change_set = detect_changes(batch, snapshot, field_metadata, ignored_fields=["updated_at"])

        assert change_set.is_empty

    def test_custom_id_field(self, field_metadata):
        snapshot = _snapshot({"p-1": {"page_id": "p-1", "title": "Old"}})
        batch = _batch(snapshot.source_key, [{"page_id": "p-1", "title": "New"}])

        change_set = detect_changes(batch, snapshot, field_metadata, id_field="page_id")

        assert [(c.record_id, c.field) for c in change_set.changes] == [("p-1", "title")]


class TestSkippedRows:
    """Malformed rows are skipped, never raised."""

    def test_malformed_rows_are_skipped_and_counted(self, snapshot, field_metadata):
        rows = [
            ["not", "a", "mapping"],
            {"name": "no id"},
            {"id": "101", "name": "Home 2"},
            {"id": "101", "name": "Duplicate"},
            {"id": "102", "name": object()},
            {"id": "   ", "name": "blank id"},
        ]

        change_set = detect_changes(_batch(snapshot.source_key, rows), snapshot, field_metadata)

        assert [s.row_index for s in change_set.skipped_rows] == [0, 1, 3, 4, 5]
        assert change_set.skipped_rows[2].record_id == "101"
        assert change_set.skipped_rows[3].record_id == "102"
        assert change_set.changes == (FieldChange("101", "name", "Home", "Home 2"),)
        assert change_set.total_records_scanned == 6

    def test_row_with_bad_value_contributes_no_partial_changes(self, snapshot, field_metadata):
        rows = [{"id": "101", "name": "Changed", "html_title": object()}]

        change_set = detect_changes(_batch(snapshot.source_key, rows), snapshot, field_metadata)

        assert change_set.is_empty
        assert len(change_set.skipped_rows) == 1

    def test_normalize_record_id(self):
        assert normalize_record_id(" 7 ") == "7"
        assert normalize_record_id(7.0) == "7"
        assert normalize_record_id(12345678901) == "12345678901"
        with pytest.raises(RowMalformed):
            normalize_record_id(True)
        with pytest.raises(RowMalformed):
            normalize_record_id(["1"])


class TestMetadataRequired:
    """Detection refuses to run without field metadata."""

    @pytest.mark.parametrize("metadata", [None, {}])
    def test_missing_metadata_raises(self, snapshot, metadata):
        batch = _batch(snapshot.source_key, [])
        with pytest.raises(MetadataUnavailable):
            detect_changes(batch, snapshot, metadata)

    def test_provider_error_becomes_metadata_unavailable(self, snapshot):
        class BrokenProvider:
            def get_field_metadata(self, content_type):
                raise ConnectionError("schema service down")

        detector = ChangeDetector(BrokenProvider())

        with pytest.raises(MetadataUnavailable, match="schema service down"):
            detector.detect(_batch(snapshot.source_key, []), snapshot)

    def test_unknown_content_type_is_unavailable(self, snapshot):
        detector = ChangeDetector(StaticFieldMetadataProvider({"blog_posts": {}}))

        with pytest.raises(MetadataUnavailable):
            detector.detect(_batch(snapshot.source_key, []), snapshot)

    def test_detector_uses_provider(self, snapshot, field_metadata):
        provider = StaticFieldMetadataProvider({"Landing Pages": field_metadata})
        detector = ChangeDetector(provider, ignored_fields=["name"])
        batch = _batch(snapshot.source_key, [{"id": "101", "name": "X", "html_title": "Hi"}])

        change_set = detector.detect(batch, snapshot)

        assert [(c.field, c.new_value) for c in change_set.changes] == [("html_title", "Hi")]


class TestChangeSetSelection:
    """Operator confirmation narrows a change set without mutating it."""

    def test_select_records_and_fields(self, snapshot, field_metadata):
        rows = [
            {"id": "101", "name": "A", "html_title": "A-title"},
            {"id": "102", "name": "B", "html_title": "B-title"},
        ]
        change_set = detect_changes(_batch(snapshot.source_key, rows), snapshot, field_metadata)

        only_102 = change_set.select(record_ids=["102"])
        only_names = change_set.select(fields=["name"])

        assert len(change_set) == 4
        assert only_102.record_ids == ("102",)
        assert only_102.records_with_changes == 1
        assert {c.field for c in only_names} == {"name"}
        assert only_names.records_with_changes == 2

    def test_grouped_by_record(self, snapshot, field_metadata):
        rows = [{"id": "101", "name": "A", "html_title": "A-title"}]
        change_set = detect_changes(_batch(snapshot.source_key, rows), snapshot, field_metadata)

        grouped = change_set.grouped()

        assert list(grouped) == ["101"]
        assert [c.field for c in grouped["101"]] == ["name", "html_title"]


def test_decimal_and_date_values_in_snapshot(field_metadata):
    metadata = dict(field_metadata, price=FieldMetadata("price", DataType.NUMBER))
    snapshot = _snapshot({"1": {"id": "1", "price": Decimal("19.90"), "publish_date": date(2024, 1, 2)}})
    batch = _batch(snapshot.source_key, [{"id": "1", "price": 19.9, "publish_date": "2024-01-02"}])

    assert detect_changes(batch, snapshot, metadata).is_empty


def test_date_stored_as_text_matches_reimported_datetime(field_metadata):
    snapshot = _snapshot({"1": {"id": "1", "publish_date": "2024-05-01"}})
    batch = _batch(snapshot.source_key, [{"id": "1", "publish_date": datetime(2024, 5, 1)}])

    assert detect_changes(batch, snapshot, field_metadata).is_empty


def test_date_moved_to_another_day_is_a_change(field_metadata):
    snapshot = _snapshot({"1": {"id": "1", "publish_date": "2024-05-01"}})
    batch = _batch(snapshot.source_key, [{"id": "1", "publish_date": datetime(2024, 5, 3)}])

    change_set = detect_changes(batch, snapshot, field_metadata)

    assert change_set.changes == (
        FieldChange(
            record_id="1",
            field="publish_date",
            previous_value="2024-05-01",
            new_value="2024-05-03T00:00:00+00:00",
        ),
    )
