"""
Missing field comparator.

Fetches a live sample record per content type and reports fields
(with their inferred type) that local field metadata does not define.
Results are cached per content type; force_refresh bypasses the cache.

Independent of reconciliation: nothing here reads snapshots or change sets.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Protocol

from contentsync.application.sync.differ import FieldMetadataProvider
from contentsync.domain.change_types import DataType
from contentsync.domain.field_registry import normalize_content_type
from contentsync.infrastructure.cache.timed_cache import TimedCache

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0

_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")


class SampleSource(Protocol):
    """Protocol for fetching a representative record."""

    def fetch_sample(self, content_type: str) -> dict[str, Any] | None:
        ...


@dataclass(frozen=True, slots=True)
class MissingField:
    key: str
    data_type: DataType


@dataclass(frozen=True)
class MissingFieldsReport:
    """Fields present in the live sample but absent from local metadata."""
    content_type: str
    missing: tuple[MissingField, ...]
    sample_found: bool
    checked_at: datetime
    from_cache: bool = False

    @property
    def has_missing(self) -> bool:
        return bool(self.missing)


def detect_field_type(value: Any) -> DataType:
    """Infer a field's type from a live sample value."""
    if isinstance(value, bool):
        return DataType.BOOLEAN
    if isinstance(value, (int, float)):
        return DataType.NUMBER
    if isinstance(value, list):
        return DataType.ARRAY
    if isinstance(value, dict):
        return DataType.OBJECT
    if isinstance(value, str) and _ISO_DATETIME.match(value):
        return DataType.DATE
    return DataType.STRING


class MissingFieldComparator:
    """
    Compares live sample records with local field metadata.

    Usage:
        comparator = MissingFieldComparator(client, metadata_provider)
        report = comparator.compare("landing_pages")
        for item in report.missing:
            print(item.key, item.data_type.value)
    """

    def __init__(
        self,
        sample_source: SampleSource,
        metadata_provider: FieldMetadataProvider,
        cache: TimedCache | None = None,
    ) -> None:
        self.sample_source = sample_source
        self.metadata_provider = metadata_provider
        self.cache = cache if cache is not None else TimedCache(DEFAULT_TTL_SECONDS)

    def compare(self, content_type: str, force_refresh: bool = False) -> MissingFieldsReport:
        content_type = normalize_content_type(content_type)

        if not force_refresh:
            cached = self.cache.get(content_type)
            if cached is not None:
                logger.debug("Using cached missing-field report for %s", content_type)
                return replace(cached, from_cache=True)

        sample = self.sample_source.fetch_sample(content_type)
        known = self.metadata_provider.get_field_metadata(content_type)

        missing: list[MissingField] = []
        if sample:
            for key, value in sample.items():
                if key not in known:
                    missing.append(MissingField(key, detect_field_type(value)))

        report = MissingFieldsReport(
            content_type=content_type,
            missing=tuple(missing),
            sample_found=bool(sample),
            checked_at=datetime.now(timezone.utc),
        )
        # A failed fetch is not cached, so the next call retries
        if sample:
            self.cache.put(content_type, report)
        logger.info(
            "Missing-field check for %s: %d undefined fields",
            content_type,
            len(missing),
        )
        return report
