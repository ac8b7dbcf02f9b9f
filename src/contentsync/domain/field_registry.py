"""
Centralized Field Registry.

SINGLE SOURCE OF TRUTH for naming conventions shared across the engine:
- Content type normalization ("Landing Pages" -> "landing_pages")
- Import header -> field key normalization ("HTML Title" -> "html_title")
- Friendly field labels for audit history
- Record display-label fallback chain
- Export file naming convention
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from contentsync.domain.values import is_empty

# Sentinel shown for previous values that were missing or empty
FIELD_NOT_SET = "Field not set"

# Name-like placeholder the CMS uses for unnamed content
UNTITLED = "Untitled"

# Candidate fields tried in priority order when labelling a record
RECORD_LABEL_FIELDS: tuple[str, ...] = (
    "name",
    "html_title",
    "title",
    "meta_title",
    "page_title",
    "label",
    "slug",
)

FIELD_LABELS: dict[str, str] = {
    "name": "Page Name",
    "html_title": "HTML Title",
    "title": "Title",
    "meta_title": "Meta Title",
    "meta_description": "Meta Description",
    "slug": "Slug",
    "body_content": "Body Content",
    "state": "State",
    "publish_date": "Publish Date",
    "archived_at": "Archived At",
    "language": "Language",
    "domain": "Domain",
    "author_name": "Author Name",
    "tag_ids": "Tags",
    "featured_image": "Featured Image",
    "redirect_style": "Redirect Style",
    "destination": "Destination",
    "route_prefix": "Route Prefix",
}

# Export file names: hubspot_<content_type>_<count>_items_<YYYY-MM-DD>.<ext>
EXPORT_FILENAME_PATTERN = re.compile(
    r"^hubspot_(?P<content_type>.+)_(?P<count>\d+)_items_(?P<date>\d{4}-\d{2}-\d{2})\.(?P<ext>csv|xlsx?)$",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class ExportFileName:
    """Parsed parts of an export file name."""
    content_type: str
    item_count: int
    export_date: str
    extension: str


def normalize_content_type(value: str) -> str:
    """
    Normalize a content type name.

    Examples:
        "Landing Pages" -> "landing_pages"
        "landing-pages" -> "landing_pages"
    """
    clean = str(value or "").strip().lower().replace("-", " ")
    return re.sub(r"\s+", "_", clean)


def header_to_field_key(header: str) -> str:
    """
    Convert an import column header to a field key.

    Examples:
        "HTML Title" -> "html_title"
        "Meta Description" -> "meta_description"
        "htmlTitle" -> "html_title"
    """
    text = str(header or "").strip()
    # camelCase -> camel_Case
    text = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", text)
    text = re.sub(r"[\s\-]+", "_", text)
    return text.lower()


def field_label(field_key: str) -> str:
    """Friendly label for a field key, falling back to the raw key."""
    return FIELD_LABELS.get(field_key, field_key)


def resolve_record_label(
    record_id: str,
    row: Mapping[str, Any] | None,
    candidates: Sequence[str] = RECORD_LABEL_FIELDS,
) -> str:
    """
    Resolve a display label for a record.

    Tries each candidate field in priority order and returns the first
    non-empty value that is not the "Untitled" placeholder. A leading
    "Untitled " prefix is stripped. Falls back to "Record {id}".
    """
    if row:
        for key in candidates:
            value = row.get(key)
            if is_empty(value) or not isinstance(value, (str, int, float)):
                continue
            text = re.sub(rf"^{UNTITLED}\s*", "", str(value).strip())
            if text and text != UNTITLED:
                return text
    return f"Record {record_id}"


def parse_export_filename(file_name: str) -> ExportFileName | None:
    """Parse an export file name; None if it does not follow the convention."""
    match = EXPORT_FILENAME_PATTERN.match(str(file_name or "").strip())
    if not match:
        return None
    return ExportFileName(
        content_type=normalize_content_type(match.group("content_type")),
        item_count=int(match.group("count")),
        export_date=match.group("date"),
        extension=match.group("ext").lower(),
    )
