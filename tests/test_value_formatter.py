"""セル値変換のテスト"""
from datetime import date, datetime

import pytest

from app.schemas.excel import FieldFormat
from app.services.value_formatter import (
    format_for_spreadsheet,
    get_number_format,
    parse_for_domain,
    to_number,
)


@pytest.mark.parametrize("fmt", list(FieldFormat))
def test_empty_values_are_not_extracted(fmt):
    assert parse_for_domain(None, fmt) is None
    assert parse_for_domain("", fmt) is None


def test_currency_strings_are_cleaned():
    assert parse_for_domain("¥1,200,000", FieldFormat.CURRENCY) == 1200000
    assert parse_for_domain("-3,500円", FieldFormat.CURRENCY) == -3500
    assert parse_for_domain(15000, FieldFormat.CURRENCY) == 15000


def test_unparseable_number_and_currency_differ():
    # number は未抽出、currency / percentage は 0 として扱う
    assert parse_for_domain("未定", FieldFormat.NUMBER) is None
    assert parse_for_domain("未定", FieldFormat.CURRENCY) == 0
    assert parse_for_domain("未定", FieldFormat.PERCENTAGE) == 0


def test_percentage_cell_value_passes_through():
    assert parse_for_domain(0.15, FieldFormat.PERCENTAGE) == 0.15


def test_dates_are_iso_formatted():
    assert parse_for_domain(datetime(2025, 4, 1, 9, 30), FieldFormat.DATE) == "2025-04-01"
    assert parse_for_domain(date(2025, 4, 1), FieldFormat.DATE) == "2025-04-01"
    assert parse_for_domain("令和7年4月1日", FieldFormat.DATE) == "令和7年4月1日"


def test_text_is_stripped_and_unknown_format_is_text():
    assert parse_for_domain("  株式会社テスト \n", FieldFormat.TEXT) == "株式会社テスト"
    assert parse_for_domain(12345, "unknown-format") == "12345"


def test_format_numbers_for_spreadsheet():
    assert format_for_spreadsheet("1,500,000", FieldFormat.CURRENCY) == 1500000
    assert format_for_spreadsheet("abc", FieldFormat.NUMBER) == 0
    assert format_for_spreadsheet(None, FieldFormat.CURRENCY) == 0


def test_percentage_is_scaled_to_fraction():
    assert format_for_spreadsheet(10, FieldFormat.PERCENTAGE) == pytest.approx(0.1)
    assert format_for_spreadsheet("12.5%", FieldFormat.PERCENTAGE) == pytest.approx(0.125)


def test_format_dates_for_spreadsheet():
    assert format_for_spreadsheet("2025-04-01", FieldFormat.DATE) == datetime(2025, 4, 1)
    assert format_for_spreadsheet("2025/04/01", FieldFormat.DATE) == datetime(2025, 4, 1)
    assert format_for_spreadsheet(date(2025, 4, 1), FieldFormat.DATE) == datetime(2025, 4, 1)
    with pytest.raises(ValueError):
        format_for_spreadsheet("来年度", FieldFormat.DATE)


def test_format_text_for_spreadsheet():
    assert format_for_spreadsheet(None, FieldFormat.TEXT) == ""
    assert format_for_spreadsheet(42, FieldFormat.TEXT) == "42"


def test_number_formats():
    assert get_number_format(FieldFormat.CURRENCY) == "¥#,##0"
    assert get_number_format(FieldFormat.PERCENTAGE) == "0.00%"
    assert get_number_format(FieldFormat.NUMBER) == "#,##0"
    assert get_number_format(FieldFormat.DATE) == "yyyy/mm/dd"
    assert get_number_format(FieldFormat.TEXT) is None


def test_to_number():
    assert to_number("12名") == 12
    assert to_number(True) is None
    assert to_number(float("nan")) is None
    assert to_number("") is None
