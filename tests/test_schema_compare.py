"""
Tests for the missing field comparator.
"""

import pytest

from contentsync.application.schema_compare import (
    MissingField,
    MissingFieldComparator,
    detect_field_type,
)
from contentsync.domain.change_types import DataType
from contentsync.domain.models import FieldMetadata
from contentsync.infrastructure.cache.timed_cache import TimedCache
from contentsync.infrastructure.schema.metadata_provider import StaticFieldMetadataProvider


class FakeSampleSource:
    def __init__(self, samples):
        self.samples = samples
        self.calls = 0

    def fetch_sample(self, content_type):
        self.calls += 1
        return self.samples.get(content_type)


@pytest.fixture
def provider():
    return StaticFieldMetadataProvider(
        {"landing_pages": {"id": FieldMetadata("id"), "name": FieldMetadata("name")}}
    )


@pytest.fixture
def source():
    return FakeSampleSource(
        {
            "landing_pages": {
                "id": "1",
                "name": "Home",
                "archived": False,
                "publish_date": "2024-05-01T10:00:00Z",
                "layout_sections": {},
            }
        }
    )


def test_reports_undefined_fields(source, provider, clock):
    comparator = MissingFieldComparator(source, provider, TimedCache(300, clock=clock))

    report = comparator.compare("Landing Pages")

    assert report.sample_found
    assert report.has_missing
    assert report.missing == (
        MissingField("archived", DataType.BOOLEAN),
        MissingField("publish_date", DataType.DATE),
        MissingField("layout_sections", DataType.OBJECT),
    )


def test_cached_until_ttl_expires(source, provider, clock):
    comparator = MissingFieldComparator(source, provider, TimedCache(300, clock=clock))

    comparator.compare("landing_pages")
    clock.advance(299)
    cached = comparator.compare("landing_pages")
    clock.advance(2)
    fresh = comparator.compare("landing_pages")

    assert cached.from_cache
    assert not fresh.from_cache
    assert source.calls == 2


def test_force_refresh_bypasses_cache(source, provider, clock):
    comparator = MissingFieldComparator(source, provider, TimedCache(300, clock=clock))

    comparator.compare("landing_pages")
    report = comparator.compare("landing_pages", force_refresh=True)

    assert not report.from_cache
    assert source.calls == 2


def test_no_sample_is_not_cached(provider, clock):
    source = FakeSampleSource({})
    comparator = MissingFieldComparator(source, provider, TimedCache(300, clock=clock))

    first = comparator.compare("blog_posts")
    comparator.compare("blog_posts")

    assert not first.sample_found
    assert first.missing == ()
    assert source.calls == 2


@pytest.mark.parametrize(
    "value, expected",
    [
        (True, DataType.BOOLEAN),
        (3, DataType.NUMBER),
        (2.5, DataType.NUMBER),
        (["a"], DataType.ARRAY),
        ({"a": 1}, DataType.OBJECT),
        ("2024-01-01T00:00:00Z", DataType.DATE),
        ("2024-01-01", DataType.STRING),
        ("hello", DataType.STRING),
        (None, DataType.STRING),
    ],
)
def test_detect_field_type(value, expected):
    assert detect_field_type(value) == expected
