"""
フォームデータ検証サービス

補助金申請フォームの入力値を検証する。
エラー（提出不可）と警告（助言、提出は可能）を区別して返す。

検証内容:
- 必須項目の入力チェック
- 法人番号の形式（13桁の数字）
- 数値項目の範囲（従業員数 1〜9999 等）と文字数上限
- 平均給与額の計画値と現在値の比較（警告）
- IT導入補助金の申請額下限・上限
- ものづくり補助金の3年間CAGR（警告）
"""
import logging
import re
from typing import Any, Dict, List, Optional

from app.schemas.excel import FieldFormat, SubsidyType, ValidationIssue, ValidationResult
from app.services.field_mapping import REQUIRED_FIELDS, FieldMapping, iter_field_definitions
from app.services.value_formatter import to_number


logger = logging.getLogger(__name__)

CORPORATE_NUMBER_PATTERN = re.compile(r"^\d{13}$")

# IT導入補助金の申請額（ソフトウェア費 + 導入関連費 + 役務費）
IT_MIN_APPLICATION_AMOUNT = 300_000
IT_MAX_APPLICATION_AMOUNT = 4_500_000
IT_COST_FIELDS = ["software_cost", "implementation_cost", "service_cost"]

# ものづくり補助金の推奨成長率（3年間CAGR）
MONOZUKURI_MIN_CAGR = 0.05

# 持続化補助金の補助事業名として具体的とみなす最小文字数
JIZOKUKA_MIN_PROJECT_NAME_LENGTH = 5


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _check_field(mapping: FieldMapping, value: Any) -> Optional[str]:
    """
    カタログの定義に基づいて1フィールドを検証する

    Returns:
        エラーメッセージ、問題がなければNone
    """
    label = mapping.label or mapping.field_id

    if mapping.format in (FieldFormat.NUMBER, FieldFormat.CURRENCY, FieldFormat.PERCENTAGE):
        number = to_number(value)
        if number is None:
            return f"{label}は数値で入力してください"
        if mapping.min_value is not None and mapping.max_value is not None:
            if not mapping.min_value <= number <= mapping.max_value:
                return f"{label}は{mapping.min_value:g}以上{mapping.max_value:g}以下で入力してください"
        elif mapping.min_value is not None and number < mapping.min_value:
            return f"{label}は{mapping.min_value:g}以上で入力してください"
        elif mapping.max_value is not None and number > mapping.max_value:
            return f"{label}は{mapping.max_value:g}以下で入力してください"

    elif mapping.max_length is not None and len(str(value)) > mapping.max_length:
        return f"{label}は{mapping.max_length}文字以下で入力してください"

    return None


def validate_form_data(subsidy_type: Any, form_data: Dict[str, Any]) -> ValidationResult:
    """
    フォームデータを検証する

    入力不備は例外ではなく、常にValidationResultとして返す。

    Args:
        subsidy_type: 補助金種別
        form_data: フィールドID → 入力値

    Returns:
        ValidationResult: 検証結果
    """
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    missing_fields: List[str] = []

    try:
        key = SubsidyType(subsidy_type)
    except ValueError:
        key = None

    # 必須項目チェック
    for field_id in REQUIRED_FIELDS.get(key, []):
        if _is_empty(form_data.get(field_id)):
            missing_fields.append(field_id)
            errors.append(ValidationIssue(
                field_id=field_id,
                message=f"必須フィールド「{field_id}」が入力されていません",
            ))

    # 項目ごとの形式・範囲チェック
    for mapping in iter_field_definitions(key):
        if mapping.is_formula or mapping.field_id == "corporate_number":
            continue
        value = form_data.get(mapping.field_id)
        if _is_empty(value):
            continue
        message = _check_field(mapping, value)
        if message:
            errors.append(ValidationIssue(field_id=mapping.field_id, message=message))

    # 法人番号の形式チェック
    corporate_number = form_data.get("corporate_number")
    if not _is_empty(corporate_number) and not CORPORATE_NUMBER_PATTERN.match(str(corporate_number)):
        errors.append(ValidationIssue(
            field_id="corporate_number",
            message="法人番号は13桁の数字で入力してください",
        ))

    # 給与の計画値チェック（警告）
    current_salary = to_number(form_data.get("current_avg_salary"))
    planned_salary = to_number(form_data.get("planned_avg_salary"))
    if current_salary is not None and planned_salary is not None and planned_salary <= current_salary:
        warnings.append(ValidationIssue(
            field_id="planned_avg_salary",
            message="計画給与額は現在の給与額より高く設定することを推奨します",
        ))

    # 補助金種別ごとの業務ルール
    if key == SubsidyType.IT_DONYU:
        total_cost = sum(to_number(form_data.get(field_id)) or 0 for field_id in IT_COST_FIELDS)
        if total_cost < IT_MIN_APPLICATION_AMOUNT:
            errors.append(ValidationIssue(
                field_id="total_cost",
                message="IT導入補助金の最低申請額は30万円です（ソフトウェア費・導入関連費・役務費の合計）",
            ))
        elif total_cost > IT_MAX_APPLICATION_AMOUNT:
            warnings.append(ValidationIssue(
                field_id="total_cost",
                message="IT導入補助金の上限額は450万円です",
            ))

    elif key == SubsidyType.MONOZUKURI:
        base_revenue = to_number(form_data.get("base_year_revenue")) or 0
        year3_revenue = to_number(form_data.get("year3_target")) or 0
        if base_revenue > 0 and year3_revenue > 0:
            try:
                cagr = (float(year3_revenue) / float(base_revenue)) ** (1 / 3) - 1
            except OverflowError:
                # floatで表せない桁数の売上は成長率を判定しない
                cagr = None
            if cagr is not None and cagr < MONOZUKURI_MIN_CAGR:
                warnings.append(ValidationIssue(
                    field_id="year3_target",
                    message=f"3年間のCAGRが5%未満です（{cagr * 100:.2f}%）。成長性を見直すことを推奨します",
                ))

    elif key == SubsidyType.JIZOKUKA:
        project_name = form_data.get("subsidy_project_name")
        if not _is_empty(project_name) and len(str(project_name).strip()) < JIZOKUKA_MIN_PROJECT_NAME_LENGTH:
            warnings.append(ValidationIssue(
                field_id="subsidy_project_name",
                message="補助事業名はより具体的に記載することを推奨します",
            ))

    result = ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        missing_fields=missing_fields,
    )
    logger.info(
        "フォーム検証: %s エラー%d件 警告%d件",
        subsidy_type, len(errors), len(warnings),
    )
    return result
