"""
セル値変換モジュール

Excelセルの値とフォームの値（ドメイン値）を相互に変換する。

- parse_for_domain: セル値 → ドメイン値（読み取り時）
- format_for_spreadsheet: ドメイン値 → セル値（書き込み時）
- get_number_format: 形式ごとの表示書式（¥#,##0 など）

パーセンテージはドメイン値を整数の百分率（10 = 10%）、
セル値を0〜1の小数（0.1 = 10%）として扱う。
"""
import math
import re
from datetime import date, datetime
from typing import Any, Optional, Union

from app.schemas.excel import FieldFormat


# 数値変換時に残す文字（数字・小数点・マイナス）
_NON_NUMERIC_PATTERN = re.compile(r"[^\d.\-]")

# 先頭から読み取れる数値部分
_LEADING_FLOAT_PATTERN = re.compile(r"^-?(\d+\.?\d*|\.\d+)")

# 形式ごとの表示書式
NUMBER_FORMATS = {
    FieldFormat.CURRENCY: "¥#,##0",
    FieldFormat.PERCENTAGE: "0.00%",
    FieldFormat.NUMBER: "#,##0",
    FieldFormat.DATE: "yyyy/mm/dd",
}

# 文字列日付として受け付ける形式
_DATE_FORMATS = ["%Y-%m-%d", "%Y/%m/%d", "%Y年%m月%d日"]

_NUMERIC_FORMATS = {FieldFormat.NUMBER, FieldFormat.CURRENCY, FieldFormat.PERCENTAGE}


# =============================================================================
# ユーティリティ関数
# =============================================================================

def _normalize_format(fmt: Optional[Union[FieldFormat, str]]) -> FieldFormat:
    """形式指定をFieldFormatに正規化する（未指定・未知の形式はtext）"""
    if fmt is None:
        return FieldFormat.TEXT
    try:
        return FieldFormat(fmt)
    except ValueError:
        return FieldFormat.TEXT


def _parse_float(value: Any) -> Optional[float]:
    """
    数値以外の文字を除去して先頭の数値部分を読み取る

    "¥1,200,000" → 1200000.0、"12.5%" → 12.5。読み取れない場合はNone。
    """
    cleaned = _NON_NUMERIC_PATTERN.sub("", str(value))
    match = _LEADING_FLOAT_PATTERN.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> Optional[float]:
    """
    入力値を数値として解釈する

    Args:
        value: 数値または数値を含む文字列

    Returns:
        数値、空または解釈できない場合はNone
    """
    if value is None or value == "":
        return None
    if _is_number(value):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    return _parse_float(value)


def _parse_date(value: Any) -> datetime:
    """書き込み用に日付値をdatetimeへ変換する"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"日付として解釈できません: {value}")


# =============================================================================
# 読み取り方向（セル値 → ドメイン値）
# =============================================================================

def parse_for_domain(value: Any, fmt: Optional[Union[FieldFormat, str]] = None) -> Any:
    """
    セルの値をドメイン値に変換する

    None・空文字は形式に関わらずNone（未抽出）を返す。

    Args:
        value: セルの値
        fmt: フィールドの形式

    Returns:
        - number: 数値、解釈できない場合はNone
        - currency / percentage: 数値、解釈できない場合は0
        - date: "YYYY-MM-DD"（日付型の場合）またはそのままの文字列
        - text: 前後の空白を除いた文字列
    """
    if value is None or value == "":
        return None

    field_format = _normalize_format(fmt)

    if field_format in _NUMERIC_FORMATS:
        number = to_number(value)
        if number is None and field_format != FieldFormat.NUMBER:
            return 0
        return number

    if field_format == FieldFormat.DATE:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        return str(value)

    return str(value).strip()


# =============================================================================
# 書き込み方向（ドメイン値 → セル値）
# =============================================================================

def format_for_spreadsheet(value: Any, fmt: Optional[Union[FieldFormat, str]] = None) -> Any:
    """
    ドメイン値をセルに書き込む値に変換する

    数値系の形式では必ず具体的な数値を返す（解釈できない場合は0）。
    数式セルには使用しないこと。

    Args:
        value: フォームの入力値
        fmt: フィールドの形式

    Returns:
        セルに設定する値

    Raises:
        ValueError: date形式で日付として解釈できない場合
    """
    field_format = _normalize_format(fmt)

    if field_format in (FieldFormat.CURRENCY, FieldFormat.NUMBER):
        return to_number(value) or 0

    if field_format == FieldFormat.PERCENTAGE:
        return (to_number(value) or 0) / 100

    if field_format == FieldFormat.DATE:
        return _parse_date(value)

    return "" if value is None else str(value)


def get_number_format(fmt: Optional[Union[FieldFormat, str]] = None) -> Optional[str]:
    """形式に対応する表示書式を返す（textはNone）"""
    return NUMBER_FORMATS.get(_normalize_format(fmt))
