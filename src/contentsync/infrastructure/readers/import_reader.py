"""
Import file reader.

Reads an uploaded CSV or XLSX export back into rows of
{field_key: value}. Header cells are converted to field keys
("HTML Title" -> "html_title"); blank header columns are dropped and
fully blank rows are skipped.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Iterable

from openpyxl import load_workbook

from contentsync.domain.field_registry import header_to_field_key
from contentsync.domain.models import ImportBatch, SourceKey
from contentsync.domain.values import is_empty

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xlsm")


def _rows_from_table(table: Iterable[Iterable[Any]]) -> list[dict[str, Any]]:
    """Turn a header row + data rows into dicts keyed by field key."""
    iterator = iter(table)
    try:
        header = list(next(iterator))
    except StopIteration:
        return []

    keys = [
        header_to_field_key(cell) if not is_empty(cell) else None
        for cell in header
    ]
    rows: list[dict[str, Any]] = []
    for values in iterator:
        values = list(values)
        if all(is_empty(value) for value in values):
            continue
        row = {
            key: values[index] if index < len(values) else None
            for index, key in enumerate(keys)
            if key is not None
        }
        rows.append(row)
    return rows


def read_csv_rows(path: Path) -> list[dict[str, Any]]:
    # utf-8-sig strips the BOM Excel writes
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return _rows_from_table(csv.reader(f))


def read_xlsx_rows(path: Path, tab: str | None = None) -> list[dict[str, Any]]:
    """Read the named sheet (or the active one) of a workbook."""
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        if tab is not None:
            if tab not in workbook.sheetnames:
                raise ValueError(
                    f"Sheet {tab!r} not found in {path.name}; "
                    f"available: {', '.join(workbook.sheetnames)}"
                )
            sheet = workbook[tab]
        else:
            sheet = workbook.active
        return _rows_from_table(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()


def read_import_file(
    path: Path | str,
    tab: str | None = None,
    source_key: SourceKey | None = None,
) -> ImportBatch:
    """
    Read an import file into an ImportBatch.

    Args:
        path: CSV or XLSX file
        tab: Worksheet name for workbooks (defaults to the active sheet)
        source_key: Override the source identity (defaults to the file name)

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: on unsupported extension or unknown worksheet
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Import file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        rows = read_csv_rows(path)
    elif suffix in (".xlsx", ".xlsm"):
        rows = read_xlsx_rows(path, tab)
    else:
        raise ValueError(
            f"Unsupported import file type {suffix!r}; expected one of "
            f"{', '.join(SUPPORTED_EXTENSIONS)}"
        )

    logger.info("Read %d rows from %s", len(rows), path.name)
    return ImportBatch(
        source_key=source_key or SourceKey.for_file(path.name),
        rows=rows,
    )
