"""
Tests for import source validation.
"""

import unittest

from contentsync.application.validation.gate import ValidationGate
from contentsync.domain.change_types import ImportType, ValidationCode
from contentsync.domain.models import Snapshot, SourceKey
from contentsync.infrastructure.sqlite.store import ReconciliationStore


class TestValidationGate(unittest.TestCase):
    """Validate imports against snapshots in a real (in-memory) store."""

    def setUp(self):
        self.store = ReconciliationStore(":memory:")
        self.store.initialize_schema()
        self.gate = ValidationGate(self.store)

    def tearDown(self):
        self.store.close()

    def _export(self, content_type, key, user="u1"):
        return self.store.put_snapshot(
            Snapshot(user, content_type, key, rows={"1": {"id": "1", "name": "One"}})
        )

    def test_matching_sheet_export(self):
        key = SourceKey.for_sheet("sheetA", "tabX")
        stored = self._export("blog_posts", key)

        result = self.gate.validate("u1", "blog_posts", "sheet", key)

        self.assertTrue(result.ok)
        self.assertEqual(result.value.snapshot_id, stored.id)
        self.assertEqual(result.value.import_type, ImportType.SHEET)
        self.assertEqual(result.value.record_count, 1)

    def test_other_tab_is_source_mismatch(self):
        self._export("blog", SourceKey.for_sheet("sheetA", "tabY"))

        result = self.gate.validate("u1", "blog", "sheet", SourceKey.for_sheet("sheetA", "tabX"))

        self.assertFalse(result.ok)
        self.assertEqual(result.error.code, ValidationCode.SOURCE_MISMATCH)
        self.assertEqual(result.error.known_sources, (SourceKey.for_sheet("sheetA", "tabY"),))
        self.assertIn("tabY", result.error.message)

    def test_no_export_at_all(self):
        self._export("blog_posts", SourceKey.for_file("posts.csv"), user="someone-else")

        result = self.gate.validate("u1", "blog_posts", "file", SourceKey.for_file("posts.csv"))

        self.assertFalse(result.ok)
        self.assertEqual(result.error.code, ValidationCode.NO_MATCHING_EXPORT)

    def test_import_type_must_match_key_shape(self):
        self._export("blog_posts", SourceKey.for_file("posts.csv"))

        result = self.gate.validate("u1", "blog_posts", "sheet", SourceKey.for_file("posts.csv"))

        self.assertEqual(result.error.code, ValidationCode.INVALID_SOURCE)

    def test_incomplete_sheet_key(self):
        result = self.gate.validate("u1", "blog_posts", "sheet", SourceKey.for_sheet("sheetA", ""))

        self.assertEqual(result.error.code, ValidationCode.INVALID_SOURCE)

    def test_unknown_import_type(self):
        result = self.gate.validate("u1", "blog_posts", "ftp", SourceKey.for_file("posts.csv"))

        self.assertEqual(result.error.code, ValidationCode.INVALID_SOURCE)

    def test_export_filename_for_other_content_type(self):
        key = SourceKey.for_file("hubspot_site_pages_4_items_2024-05-01.csv")
        self._export("landing_pages", key)

        result = self.gate.validate("u1", "landing_pages", "file", key)

        self.assertEqual(result.error.code, ValidationCode.SOURCE_MISMATCH)

    def test_content_type_is_normalized(self):
        key = SourceKey.for_file("hubspot_landing_pages_4_items_2024-05-01.csv")
        self._export("landing_pages", key)

        result = self.gate.validate("u1", "Landing Pages", "csv", key)

        self.assertTrue(result.ok)
        self.assertEqual(result.value.content_type, "landing_pages")

    def test_validation_is_read_only(self):
        key = SourceKey.for_file("posts.csv")
        self._export("blog_posts", key)

        self.gate.validate("u1", "blog_posts", "file", key)
        self.gate.validate("u1", "blog_posts", "file", SourceKey.for_file("other.csv"))

        self.assertEqual(self.store.get_snapshot("u1", "blog_posts", key).version, 1)
        self.assertEqual(self.store.list_snapshot_sources("u1", "blog_posts"), [key])
        self.assertEqual(self.store.list_audit_entries("u1"), [])


if __name__ == "__main__":
    unittest.main()
