import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
from boxall import csv_utils


@pytest.mark.parametrize(
    "raw,expected",
    [("1,234", 1234), (" 42 ", 42), ("abc", 7), ("", 7), (None, 7), ("-3", 7), ("3.5", 7)],
)
def test_parse_int(raw, expected):
    assert csv_utils.parse_int(raw, 7, minimum=0) == expected


@pytest.mark.parametrize(
    "raw,expected",
    [("$1,234.50", 1234.5), ("0.05", 0.05), ("€2", 2.0), ("n/a", 0.0), ("", 0.0), ("nan", 0.0)],
)
def test_parse_decimal(raw, expected):
    assert csv_utils.parse_decimal(raw) == pytest.approx(expected)


def test_norm_header():
    assert csv_utils.norm_header("Part Number") == "partnumber"
    assert csv_utils.norm_header("part_number") == "partnumber"
    assert csv_utils.norm_header("PartNumber") == "partnumber"
    assert csv_utils.norm_header(None) == ""


def test_read_rows_skips_blank_lines_and_numbers_data_rows():
    text = (
        "BoxName,Position,PartNumber\n"
        "Main,A-01,R1\n"
        ",,\n"
        "\n"
        "Main,A-02,R2\n"
    )
    rows = csv_utils.read_rows(text)
    assert [number for number, _ in rows] == [1, 2]
    assert rows[1][1]["partnumber"] == "R2"


def test_get_field_defaults_for_blank_and_missing():
    row = {"category": "  ", "boxname": " Main "}
    assert csv_utils.get_field(row, "BoxName") == "Main"
    assert csv_utils.get_field(row, "Category", "Other") == "Other"
    assert csv_utils.get_field(row, "Notes") == ""


def test_iter_rows_from_path_with_bom(tmp_path):
    path = tmp_path / "parts.csv"
    path.write_text("\ufeffBoxName,Position\nMain,a-01\n", encoding="utf-8")
    rows = list(csv_utils.iter_rows(str(path)))
    assert rows == [(1, {"boxname": "Main", "position": "a-01"})]


def test_quoted_fields_keep_commas():
    rows = csv_utils.read_rows('BoxName,Description\nMain,"10k, 1%"\n')
    assert rows[0][1]["description"] == "10k, 1%"


def test_empty_input():
    assert csv_utils.read_rows("") == []


def test_stream_with_bom_header():
    rows = csv_utils.read_rows("﻿BoxName,Position\nMain,A-01\n")
    assert rows == [(1, {"boxname": "Main", "position": "A-01"})]
