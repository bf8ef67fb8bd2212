"""
テンプレート生成サービスモジュール

補助金申請書類の入力用Excelテンプレートを生成する。
フィールドマッピング定義のセル位置に合わせて項目名・数式・表示書式を配置する。

本番では公募要領に添付された様式をテンプレートディレクトリに配置する。
ここで生成するテンプレートは開発・検証用の簡易版。
"""
import logging
from pathlib import Path
from typing import Dict, List, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.cell import coordinate_from_string

from app.services.field_mapping import (
    EXPENSE_BASE_ROW,
    EXPENSE_ROW_COUNT,
    TARGET_FILES,
    detect_subsidy_type,
    get_field_mappings,
)
from app.services.value_formatter import get_number_format


logger = logging.getLogger(__name__)

# スタイル定義
HEADER_FILL = PatternFill(start_color="E2EFDA", end_color="E2EFDA", fill_type="solid")
HEADER_FONT = Font(bold=True)
CENTER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

_EXPENSE_LAST_ROW = EXPENSE_BASE_ROW + EXPENSE_ROW_COUNT - 1

# ファイル名キーワード → シート名・数式・項目名の配置
TEMPLATE_LAYOUTS: Dict[str, Dict] = {
    "chingin_houkoku": {
        "title": "賃金報告書",
        "formulas": {
            "C13": "=IF(C11>0,(C12-C11)/C11,0)",
        },
    },
    "jisshinaiyosetsumei": {
        "title": "実施内容説明書",
        "formulas": {},
    },
    "kakakusetsumei": {
        "title": "価格説明書",
        "formulas": {
            "C10": "=SUM(C5:C8)",
            "C12": "=C5+C6+C7",
            "C13": "=MIN(C12*0.5,4500000)",
        },
    },
    "CAGR": {
        "title": "CAGR算出",
        "formulas": {
            "E10": "=IF(C5>0,(C8/C5)^(1/3)-1,0)",
            "E11": "=IF(C5>0,(C9/C5)^(1/5)-1,0)",
        },
    },
    "r3i_y3": {
        "title": "様式3",
        "formulas": {
            **{
                f"G{row}": f"=E{row}*F{row}"
                for row in range(EXPENSE_BASE_ROW, _EXPENSE_LAST_ROW + 1)
            },
            "G42": f"=SUM(G{EXPENSE_BASE_ROW}:G{_EXPENSE_LAST_ROW})",
            "G43": "=ROUND(G42*2/3,0)",
        },
        # 経費明細表のヘッダー行
        "table_header": {
            "row": EXPENSE_BASE_ROW - 1,
            "columns": {
                "C": "経費区分",
                "D": "内容・経費内訳",
                "E": "数量",
                "F": "単価（円）",
                "G": "金額（円）",
            },
        },
        "label_column": {"G42": "F", "G43": "F"},
    },
}


def _find_layout(file_name: str) -> Union[Dict, None]:
    for keyword, layout in TEMPLATE_LAYOUTS.items():
        if keyword in file_name:
            return layout
    return None


def build_template(file_name: str) -> Workbook:
    """
    テンプレートワークブックを生成する

    Args:
        file_name: テンプレートファイル名

    Returns:
        Workbook: 生成したワークブック（マッピング未定義の書類は見出しのみ）
    """
    wb = Workbook()
    ws = wb.active

    layout = _find_layout(file_name)
    if layout is None:
        ws.title = "Sheet1"
        ws["A1"] = Path(file_name).stem
        ws["A1"].font = HEADER_FONT
        return wb

    ws.title = layout["title"]
    ws.column_dimensions["A"].width = 30
    ws.column_dimensions["B"].width = 40
    ws.column_dimensions["C"].width = 18

    ws["A1"] = layout["title"]
    ws["A1"].font = HEADER_FONT

    table_header = layout.get("table_header")
    if table_header:
        for column, header in table_header["columns"].items():
            cell = ws[f"{column}{table_header['row']}"]
            cell.value = header
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = CENTER_ALIGNMENT
            cell.border = THIN_BORDER

    label_columns = layout.get("label_column", {})
    subsidy_type = detect_subsidy_type(file_name)
    for mapping in get_field_mappings(subsidy_type, file_name):
        ref = mapping.cell_reference
        column, row = coordinate_from_string(ref)

        # 経費明細の各行は表のヘッダーで項目名を示す
        if not (table_header and EXPENSE_BASE_ROW <= row <= _EXPENSE_LAST_ROW):
            ws[f"{label_columns.get(ref, 'A')}{row}"] = mapping.label
        else:
            ws[ref].border = THIN_BORDER

        formula = layout["formulas"].get(ref)
        if formula:
            ws[ref] = formula
        number_format = get_number_format(mapping.format)
        if number_format:
            ws[ref].number_format = number_format

    return wb


def create_all_templates(output_dir: Union[str, Path]) -> List[Path]:
    """
    すべての対象ファイルのテンプレートを出力する

    .xlsx以外（Word様式など）は対象外。

    Args:
        output_dir: 出力ディレクトリ

    Returns:
        List[Path]: 生成したファイルのパス
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    file_names = []
    for frames in TARGET_FILES.values():
        for files in frames.values():
            for file_name in files:
                if file_name.endswith(".xlsx") and file_name not in file_names:
                    file_names.append(file_name)

    created = []
    for file_name in file_names:
        path = output_dir / file_name
        build_template(file_name).save(path)
        logger.info("テンプレート作成: %s", path)
        created.append(path)
    return created
