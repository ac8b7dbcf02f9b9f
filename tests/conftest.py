"""
Shared fixtures for contentsync tests.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parents[1] / "src"))

from contentsync.domain.change_types import DataType
from contentsync.domain.models import FieldMetadata, Snapshot, SourceKey
from contentsync.infrastructure.sqlite.store import ReconciliationStore
from fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    store = ReconciliationStore(":memory:")
    store.initialize_schema()
    yield store
    store.close()


@pytest.fixture
def field_metadata():
    return {
        "id": FieldMetadata("id", DataType.STRING, read_only=True, editable=False),
        "name": FieldMetadata("name"),
        "title": FieldMetadata("title"),
        "html_title": FieldMetadata("html_title"),
        "views": FieldMetadata("views", DataType.NUMBER, read_only=True, editable=False),
        "tags": FieldMetadata("tags", DataType.ARRAY),
        "published": FieldMetadata("published", DataType.BOOLEAN),
        "publish_date": FieldMetadata("publish_date", DataType.DATE),
        "settings": FieldMetadata("settings", DataType.OBJECT),
        "priority": FieldMetadata("priority", DataType.NUMBER),
    }


@pytest.fixture
def file_key():
    return SourceKey.for_file("hubspot_landing_pages_3_items_2024-05-01.csv")


@pytest.fixture
def snapshot(file_key):
    return Snapshot(
        user_id="alice",
        content_type="landing_pages",
        source_key=file_key,
        rows={
            "101": {"id": "101", "name": "Home", "html_title": "Welcome", "views": 10},
            "102": {"id": "102", "name": "Pricing", "html_title": "Plans", "views": 4},
            "103": {"id": "103", "name": "About", "html_title": "", "views": 1},
        },
    )
