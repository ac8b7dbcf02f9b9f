"""
Tests for reading CSV/XLSX import files.
"""

import pytest
from openpyxl import Workbook

from contentsync.domain.models import SourceKey
from contentsync.infrastructure.readers.import_reader import read_import_file


def test_csv_with_bom_and_blank_rows(tmp_path):
    path = tmp_path / "hubspot_landing_pages_2_items_2024-05-01.csv"
    path.write_text(
        "﻿ID,Page Name,HTML Title,\n"
        "101,Home,Welcome,\n"
        ",,,\n"
        "\n"
        "102,Pricing\n",
        encoding="utf-8",
    )

    batch = read_import_file(path)

    assert batch.source_key == SourceKey.for_file(path.name)
    assert batch.rows == [
        {"id": "101", "page_name": "Home", "html_title": "Welcome"},
        {"id": "102", "page_name": "Pricing", "html_title": None},
    ]


def test_xlsx_named_tab(tmp_path):
    path = tmp_path / "export.xlsx"
    workbook = Workbook()
    workbook.active.title = "Summary"
    workbook.active.append(["ignored"])
    sheet = workbook.create_sheet("Pages")
    sheet.append(["id", "Meta Description", "Published"])
    sheet.append([101, "About us", True])
    sheet.append([None, None, None])
    workbook.save(path)

    key = SourceKey.for_sheet("sheet-1", "Pages")
    batch = read_import_file(path, tab="Pages", source_key=key)

    assert batch.source_key == key
    assert batch.rows == [{"id": 101, "meta_description": "About us", "published": True}]


def test_xlsx_unknown_tab(tmp_path):
    path = tmp_path / "export.xlsx"
    Workbook().save(path)

    with pytest.raises(ValueError, match="not found"):
        read_import_file(path, tab="Missing")


def test_unsupported_extension(tmp_path):
    path = tmp_path / "export.json"
    path.write_text("[]")

    with pytest.raises(ValueError, match="Unsupported"):
        read_import_file(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_import_file(tmp_path / "nope.csv")


def test_empty_csv(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")

    assert read_import_file(path).rows == []
