"""
Value normalization for change detection.

Rows are maps of field key -> Value, where Value is a closed set of types:

    str | int | float | Decimal | bool | date | datetime | list | dict | None

Every value is first coerced to a plain, JSON-compatible form (to_plain),
then compared by a canonical key (plain_equal). Two values are equal
when their keys are equal. Anything outside the closed set
raises RowMalformed so the caller can skip the row.

Normalization rules:
    - None, '', whitespace and the placeholders n/a, null, undefined are EMPTY
    - empty arrays and empty objects are EMPTY
    - booleans compare by value; "TRUE"/"yes"/"1" coerce for boolean fields
    - numbers compare by decimal value (10 == 10.0 == "10" for number fields)
    - dates compare by ISO form; naive datetimes are taken as UTC
    - a date-only value equals any datetime on the same UTC day
    - arrays compare as order-insensitive sets
    - objects compare by key-sorted canonical JSON
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Union

from contentsync.domain.change_types import DataType
from contentsync.domain.errors import RowMalformed

Value = Union[str, int, float, Decimal, bool, date, datetime, list, dict, None]

# Comparison key shared by every empty-like value
EMPTY = ""

_EMPTY_PLACEHOLDERS = frozenset({"", "n/a", "null", "undefined"})
_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "0", "off"})


def is_empty(value: Any) -> bool:
    """Check if a value is empty-like (None, blank, placeholder, empty container)."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _EMPTY_PLACEHOLDERS
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def infer_data_type(value: Any) -> DataType | None:
    """Infer a data type from a non-string Python value. Strings give None."""
    if isinstance(value, bool):
        return DataType.BOOLEAN
    if isinstance(value, (int, float, Decimal)):
        return DataType.NUMBER
    if isinstance(value, (date, datetime)):
        return DataType.DATE
    if isinstance(value, (list, tuple, set, frozenset)):
        return DataType.ARRAY
    if isinstance(value, dict):
        return DataType.OBJECT
    return None


def to_plain(value: Any, data_type: DataType | None = None) -> Any:
    """
    Coerce a value into its plain, JSON-compatible form.

    Args:
        value: Raw cell or snapshot value
        data_type: Declared type of the field, if known

    Returns:
        None for empty values, otherwise str | int | float | bool | list | dict

    Raises:
        RowMalformed: if the value is outside the closed Value type
    """
    if is_empty(value):
        return None

    if isinstance(value, bool):
        return value

    if isinstance(value, (list, tuple, set, frozenset)):
        return _plain_array(value)

    if isinstance(value, dict):
        return _plain_object(value)

    if isinstance(value, datetime):
        return _iso_datetime(value)

    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, (int, float, Decimal)):
        if data_type is DataType.BOOLEAN and value in (0, 1):
            return bool(value)
        return _plain_number(value)

    if isinstance(value, str):
        return _plain_string(value.strip(), data_type)

    raise RowMalformed(f"Unsupported value type: {type(value).__name__}")


def plain_equal(left: Any, right: Any, data_type: DataType | None = None) -> bool:
    """
    Compare two values already returned by to_plain().

    For DATE fields, a date-only side is compared against the other
    side's UTC calendar date.
    """
    if data_type is DataType.DATE:
        left, right = _at_date_precision(left, right)
    return _key(left) == _key(right)


def display_value(plain: Any) -> str:
    """Render a plain value for human-readable output."""
    if plain is None:
        return ""
    if isinstance(plain, bool):
        return "true" if plain else "false"
    if isinstance(plain, list):
        return ", ".join(display_value(item) for item in plain)
    if isinstance(plain, dict):
        return json.dumps(plain, sort_keys=True, ensure_ascii=False)
    return str(plain)


# =============================================================================
# Internal helpers
# =============================================================================


def _plain_string(text: str, data_type: DataType | None) -> Any:
    """Apply type coercion to a trimmed string."""
    if data_type is DataType.BOOLEAN:
        lowered = text.lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        return text

    if data_type is DataType.NUMBER:
        try:
            number = Decimal(text)
        except InvalidOperation:
            return text
        return _plain_number(number) if number.is_finite() else text

    if data_type is DataType.DATE:
        parsed = _parse_iso(text)
        return parsed if parsed is not None else text

    if data_type is DataType.ARRAY:
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except ValueError:
                decoded = None
            if isinstance(decoded, list):
                return to_plain(decoded)
        return to_plain([part.strip() for part in text.split(",")])

    if data_type is DataType.OBJECT and text.startswith("{"):
        try:
            decoded = json.loads(text)
        except ValueError:
            return text
        if isinstance(decoded, dict):
            return to_plain(decoded)

    return text


def _plain_number(value: int | float | Decimal) -> Any:
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return str(value)
        return int(value) if value.is_integer() else value
    if not value.is_finite():
        return str(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _plain_array(items) -> list | None:
    seen: dict[str, Any] = {}
    for item in items:
        plain = to_plain(item)
        if plain is None:
            continue
        seen.setdefault(_key(plain), plain)
    if not seen:
        return None
    return [seen[key] for key in sorted(seen)]


def _plain_object(mapping: dict) -> dict | None:
    result = {}
    for key in sorted(mapping, key=str):
        plain = to_plain(mapping[key])
        if plain is not None:
            result[str(key)] = plain
    return result or None


def _iso_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_iso(text: str) -> str | None:
    """Parse an ISO date or datetime string into its canonical form."""
    if len(text) == 10:
        try:
            return date.fromisoformat(text).isoformat()
        except ValueError:
            return None
    candidate = text[:-1] + "+00:00" if text[-1:] in ("Z", "z") else text
    try:
        return _iso_datetime(datetime.fromisoformat(candidate))
    except ValueError:
        return None


def _at_date_precision(left: Any, right: Any) -> tuple[Any, Any]:
    if _is_iso_date(left) and _is_iso_timestamp(right):
        return left, right[:10]
    if _is_iso_date(right) and _is_iso_timestamp(left):
        return left[:10], right
    return left, right


def _is_iso_date(plain: Any) -> bool:
    return isinstance(plain, str) and len(plain) == 10 and _parse_iso(plain) == plain


def _is_iso_timestamp(plain: Any) -> bool:
    return isinstance(plain, str) and len(plain) > 10 and _parse_iso(plain) == plain


def _number_text(value: int | float) -> str:
    if isinstance(value, int):
        return str(value)
    return format(Decimal(repr(value)).normalize(), "f")


def _key(plain: Any) -> str:
    if plain is None:
        return EMPTY
    if isinstance(plain, bool):
        return "true" if plain else "false"
    if isinstance(plain, (int, float)):
        return _number_text(plain)
    if isinstance(plain, (list, dict)):
        return json.dumps(plain, sort_keys=True, ensure_ascii=False, default=str)
    return str(plain)
