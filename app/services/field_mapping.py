"""
フィールドマッピング定義モジュール

フォームの入力項目（フィールドID）と、補助金申請書類Excelのセル位置の対応を定義する。

機能:
- 補助金種別・ファイル名からのマッピング取得
- 申請枠ごとの対象ファイル解決
- ファイル名からの補助金種別判定
- フィールドマッピング情報（画面表示用）の生成

テンプレートはファイル名の部分一致で書類の種類を判別する
（例: it2025_chingin_houkoku.xlsx → IT導入補助金の賃金報告書）。
"""
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict

from app.schemas.excel import (
    FieldFormat,
    FieldInfo,
    FieldMappingInfo,
    SubsidyType,
    TemplateFileInfo,
    UNKNOWN_SUBSIDY_TYPE,
)


class FieldMapping(BaseModel):
    """
    1フィールドの1ファイル上の位置

    カタログ構築時に生成され、以後変更しない。
    """
    field_id: str
    file_name: str
    cell_reference: str
    format: FieldFormat = FieldFormat.TEXT
    sheet_name: Optional[str] = None
    is_formula: bool = False
    label: str = ""
    max_length: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    model_config = ConfigDict(frozen=True)


def _field(
    field_id: str,
    cell_reference: str,
    fmt: FieldFormat,
    label: str,
    is_formula: bool = False,
    max_length: Optional[int] = None,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> Dict[str, Any]:
    return {
        "field_id": field_id,
        "cell_reference": cell_reference,
        "format": fmt,
        "label": label,
        "is_formula": is_formula,
        "max_length": max_length,
        "min_value": min_value,
        "max_value": max_value,
    }


# =============================================================================
# 経費明細表（持続化補助金 様式3）
# =============================================================================

# 経費明細の行数と開始行（row = EXPENSE_BASE_ROW + index）
EXPENSE_ROW_COUNT = 16
EXPENSE_BASE_ROW = 25


def _expense_fields() -> List[Dict[str, Any]]:
    """経費明細表の16行×4項目を生成する"""
    fields = []
    for i in range(EXPENSE_ROW_COUNT):
        row = EXPENSE_BASE_ROW + i
        fields.extend([
            _field(f"expense_item_{i}", f"D{row}", FieldFormat.TEXT, f"経費明細{i + 1} 品名"),
            _field(f"expense_quantity_{i}", f"E{row}", FieldFormat.NUMBER, f"経費明細{i + 1} 数量", min_value=0),
            _field(f"expense_unit_price_{i}", f"F{row}", FieldFormat.CURRENCY, f"経費明細{i + 1} 単価", min_value=0),
            _field(f"expense_amount_{i}", f"G{row}", FieldFormat.CURRENCY, f"経費明細{i + 1} 金額", is_formula=True),
        ])
    return fields


# =============================================================================
# 書類定義
# =============================================================================

# 補助金種別 → [(ファイル名キーワード, 書類名, フィールド定義)]
TEMPLATE_CATALOG: Dict[SubsidyType, List[Dict[str, Any]]] = {
    SubsidyType.IT_DONYU: [
        {
            "keyword": "chingin_houkoku",
            "display_name": "賃金報告書",
            "fields": [
                _field("company_name", "C4", FieldFormat.TEXT, "申請者名（法人名/屋号）", max_length=100),
                _field("corporate_number", "C5", FieldFormat.TEXT, "法人番号"),
                _field("representative_title", "C6", FieldFormat.TEXT, "代表者役職", max_length=20),
                _field("representative_name", "C7", FieldFormat.TEXT, "代表者氏名", max_length=50),
                _field("employee_count", "C10", FieldFormat.NUMBER, "直近決算期の従業員数", min_value=1, max_value=9999),
                _field("current_avg_salary", "C11", FieldFormat.CURRENCY, "直近決算期の平均給与額", min_value=0),
                _field("planned_avg_salary", "C12", FieldFormat.CURRENCY, "事業計画期間終了時の平均給与額", min_value=0),
                _field("salary_increase_rate", "C13", FieldFormat.PERCENTAGE, "給与引上げ率", is_formula=True),
            ],
        },
        {
            "keyword": "jisshinaiyosetsumei",
            "display_name": "実施内容説明書",
            "fields": [
                _field("it_tool_name", "B3", FieldFormat.TEXT, "ITツール名", max_length=100),
                _field("it_provider_name", "B4", FieldFormat.TEXT, "ITツール提供事業者名", max_length=100),
                _field("current_issues", "B7", FieldFormat.TEXT, "導入前の課題・問題点", max_length=500),
                _field("expected_effects", "B10", FieldFormat.TEXT, "導入により期待される効果", max_length=500),
                _field("usage_method", "B13", FieldFormat.TEXT, "具体的な活用方法", max_length=800),
                _field("productivity_target", "B16", FieldFormat.TEXT, "生産性向上の定量的目標", max_length=200),
                _field("implementation_schedule", "B19", FieldFormat.TEXT, "導入スケジュール", max_length=100),
            ],
        },
        {
            "keyword": "kakakusetsumei",
            "display_name": "価格説明書",
            "fields": [
                _field("software_cost", "C5", FieldFormat.CURRENCY, "ソフトウェア費用", min_value=0),
                _field("implementation_cost", "C6", FieldFormat.CURRENCY, "導入関連費用", min_value=0),
                _field("service_cost", "C7", FieldFormat.CURRENCY, "役務費用", min_value=0),
                _field("maintenance_cost", "C8", FieldFormat.CURRENCY, "保守費用（年額）", min_value=0),
                _field("total_cost", "C10", FieldFormat.CURRENCY, "合計額", is_formula=True),
                _field("eligible_cost", "C12", FieldFormat.CURRENCY, "補助対象経費", is_formula=True),
                _field("subsidy_amount", "C13", FieldFormat.CURRENCY, "補助金申請額", is_formula=True),
            ],
        },
    ],
    SubsidyType.MONOZUKURI: [
        {
            "keyword": "CAGR",
            "display_name": "CAGR算出ツール",
            "fields": [
                _field("base_year_revenue", "C5", FieldFormat.CURRENCY, "基準年度売上高", min_value=1000),
                _field("year1_target", "C6", FieldFormat.CURRENCY, "1年後売上高目標", min_value=1000),
                _field("year2_target", "C7", FieldFormat.CURRENCY, "2年後売上高目標", min_value=1000),
                _field("year3_target", "C8", FieldFormat.CURRENCY, "3年後売上高目標", min_value=1000),
                _field("year5_target", "C9", FieldFormat.CURRENCY, "5年後売上高目標", min_value=1000),
                _field("cagr_3year", "E10", FieldFormat.PERCENTAGE, "3年間CAGR", is_formula=True),
                _field("cagr_5year", "E11", FieldFormat.PERCENTAGE, "5年間CAGR", is_formula=True),
            ],
        },
    ],
    SubsidyType.JIZOKUKA: [
        {
            "keyword": "r3i_y3",
            "display_name": "様式3 補助事業計画書",
            "fields": [
                _field("subsidy_project_name", "B3", FieldFormat.TEXT, "補助事業名", max_length=30),
                _field("sales_expansion_plan", "B5", FieldFormat.TEXT, "販路開拓等の取組内容", max_length=2000),
                _field("project_effects", "B22", FieldFormat.TEXT, "補助事業の効果", max_length=500),
                *_expense_fields(),
                _field("total_eligible_cost", "G42", FieldFormat.CURRENCY, "補助対象経費合計", is_formula=True),
                _field("subsidy_request_amount", "G43", FieldFormat.CURRENCY, "補助金交付申請額", is_formula=True),
            ],
        },
    ],
}


# =============================================================================
# 申請枠 → 対象ファイル
# =============================================================================

TARGET_FILES: Dict[SubsidyType, Dict[str, List[str]]] = {
    SubsidyType.IT_DONYU: {
        "normal": [
            "it2025_chingin_houkoku.xlsx",
            "it2025_jisshinaiyosetsumei_cate5.xlsx",
            "it2025_kakakusetsumei_cate5.xlsx",
        ],
        "digital": [
            "it2025_torihiki_denshi.xlsx",
            "it2025_jisshinaiyosetsumei_cate6.xlsx",
            "it2025_kakakusetsumei_cate6.xlsx",
        ],
        "security": [
            "it2025_torihiki_security.xlsx",
            "it2025_jisshinaiyosetsumei_cate7.xlsx",
            "it2025_kakakusetsumei_cate7.xlsx",
        ],
        "all": [
            "it2025_chingin_houkoku.xlsx",
            "it2025_jisshinaiyosetsumei_cate5.xlsx",
            "it2025_kakakusetsumei_cate5.xlsx",
            "it2025_jisshinaiyosetsumei_cate6.xlsx",
            "it2025_kakakusetsumei_cate6.xlsx",
            "it2025_jisshinaiyosetsumei_cate7.xlsx",
            "it2025_kakakusetsumei_cate7.xlsx",
        ],
    },
    SubsidyType.MONOZUKURI: {
        "all": ["事業計画書記載項目.docx", "CAGR算出ツール_20250314.xlsx"],
    },
    SubsidyType.JIZOKUKA: {
        "all": ["r3i_y3e.xlsx"],
    },
}

# テンプレート名省略時のデフォルト
DEFAULT_TEMPLATES: Dict[SubsidyType, str] = {
    SubsidyType.IT_DONYU: "it2025_chingin_houkoku.xlsx",
    SubsidyType.MONOZUKURI: "CAGR算出ツール_20250314.xlsx",
    SubsidyType.JIZOKUKA: "r3i_y3e.xlsx",
}

# 補助金種別ごとの必須フィールド
REQUIRED_FIELDS: Dict[SubsidyType, List[str]] = {
    SubsidyType.IT_DONYU: ["company_name", "representative_name", "employee_count"],
    SubsidyType.MONOZUKURI: ["base_year_revenue", "year3_target"],
    SubsidyType.JIZOKUKA: ["subsidy_project_name", "sales_expansion_plan"],
}

# ファイル名による補助金種別判定キーワード（判定順）
SUBSIDY_KEYWORDS: List[tuple] = [
    (SubsidyType.IT_DONYU, ("it2025", "IT導入")),
    (SubsidyType.MONOZUKURI, ("monozukuri", "ものづくり", "CAGR")),
    (SubsidyType.JIZOKUKA, ("jizokuka", "持続化", "r3i_y3")),
]


# =============================================================================
# 参照関数
# =============================================================================

def _coerce_subsidy_type(subsidy_type: Any) -> Optional[SubsidyType]:
    try:
        return SubsidyType(subsidy_type)
    except ValueError:
        return None


def _find_template(subsidy_type: Any, file_name: str, use_default: bool = False) -> Optional[Dict[str, Any]]:
    """
    ファイル名のキーワードに一致する書類定義を返す

    use_default=Trueの場合、一致する定義がなければ補助金種別のデフォルト書類の定義を返す。
    """
    key = _coerce_subsidy_type(subsidy_type)
    if key is None:
        return None
    for template in TEMPLATE_CATALOG[key]:
        if template["keyword"] in file_name:
            return template
    if use_default:
        default_file = DEFAULT_TEMPLATES[key]
        for template in TEMPLATE_CATALOG[key]:
            if template["keyword"] in default_file:
                return template
    return None


def get_field_mappings(subsidy_type: Any, file_name: str, use_default: bool = False) -> List[FieldMapping]:
    """
    補助金種別・ファイル名に対応するマッピングを取得する

    Args:
        subsidy_type: 補助金種別（SubsidyTypeまたはその値）
        file_name: テンプレートファイル名
        use_default: ファイル名から書類を判別できない場合に、
            補助金種別のデフォルト書類のマッピングを使うかどうか

    Returns:
        List[FieldMapping]: 定義順のマッピング。該当なしの場合は空リスト
    """
    template = _find_template(subsidy_type, file_name, use_default)
    if template is None:
        return []
    return [FieldMapping(file_name=file_name, **definition) for definition in template["fields"]]


def get_target_files(subsidy_type: Any, application_frame: Optional[str] = None) -> List[str]:
    """
    申請枠に対応する対象ファイル一覧を取得する

    申請枠が未定義の場合は "all" を使用し、補助金種別が未知の場合は空リストを返す。
    """
    key = _coerce_subsidy_type(subsidy_type)
    if key is None:
        return []
    frames = TARGET_FILES[key]
    files = frames.get(application_frame or "all") or frames.get("all", [])
    return list(files)


def get_default_template(subsidy_type: Any) -> str:
    """補助金種別のデフォルトテンプレート名を返す（未知の種別はIT導入補助金）"""
    key = _coerce_subsidy_type(subsidy_type)
    return DEFAULT_TEMPLATES.get(key, DEFAULT_TEMPLATES[SubsidyType.IT_DONYU])


def detect_subsidy_type(file_name: str, document_type: Optional[str] = None) -> str:
    """
    補助金種別を判定する

    明示的な書類種別（SubsidyTypeの値）が指定されていればそれを優先し、
    なければファイル名のキーワードで判定する。

    Args:
        file_name: ファイル名
        document_type: 呼び出し元が指定する補助金種別

    Returns:
        str: 補助金種別の値、判定できない場合は "unknown"
    """
    if document_type:
        key = _coerce_subsidy_type(document_type)
        if key is not None:
            return key.value

    for subsidy_type, keywords in SUBSIDY_KEYWORDS:
        if any(keyword in file_name for keyword in keywords):
            return subsidy_type.value
    return UNKNOWN_SUBSIDY_TYPE


def iter_field_definitions(subsidy_type: Any) -> Iterator[FieldMapping]:
    """
    補助金種別の全フィールド定義をフィールドIDの重複なしで返す

    同じフィールドが複数ファイルに現れる場合は最初の定義を使う。
    """
    key = _coerce_subsidy_type(subsidy_type)
    if key is None:
        return
    seen = set()
    for file_name in get_target_files(key, "all"):
        for mapping in get_field_mappings(key, file_name):
            if mapping.field_id in seen:
                continue
            seen.add(mapping.field_id)
            yield mapping


def get_field_mapping_info(subsidy_type: Any) -> FieldMappingInfo:
    """
    画面表示用のフィールドマッピング情報を生成する

    マッピングを持つ対象ファイルごとに、入力可能（数式以外）なフィールドを列挙する。
    """
    key = _coerce_subsidy_type(subsidy_type)
    if key is None:
        return FieldMappingInfo()

    required = set(REQUIRED_FIELDS[key])
    files = []
    for file_name in get_target_files(key, "all"):
        template = _find_template(key, file_name)
        if template is None:
            continue
        fields = [
            FieldInfo(
                id=mapping.field_id,
                label=mapping.label,
                cell_reference=mapping.cell_reference,
                required=mapping.field_id in required,
            )
            for mapping in get_field_mappings(key, file_name)
            if not mapping.is_formula
        ]
        files.append(
            TemplateFileInfo(
                file_name=file_name,
                display_name=template["display_name"],
                fields=fields,
            )
        )
    return FieldMappingInfo(files=files)
