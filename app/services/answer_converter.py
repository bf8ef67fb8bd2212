"""
診断回答変換サービス

補助金診断の回答データを、補助金種別ごとのExcel書き込み用フォームデータに変換する。
回答にない項目は推定値・定型文で補う（申請者が後から編集する前提の下書き）。
"""
import math
from typing import Any, Dict, Optional

from app.schemas.excel import SubsidyType
from app.services.value_formatter import to_number


# 回答の共通項目（そのまま引き継ぐ）
COMMON_TEXT_FIELDS = ["company_name", "industry", "location"]

# 年間売上高・従業員数が未回答の場合の推定に使う値
DEFAULT_ANNUAL_REVENUE_MAN_YEN = 5000
DEFAULT_EMPLOYEE_COUNT = 10

# 計画給与額の引上げ率（15%）
PLANNED_SALARY_RATE = 1.15

# ものづくり補助金の売上目標（基準年度比）
REVENUE_GROWTH_TARGETS = {
    "year1_target": 1.05,
    "year2_target": 1.10,
    "year3_target": 1.15,
    "year5_target": 1.25,
}


def _to_int(value: Any) -> Optional[int]:
    number = to_number(value)
    if number is None:
        return None
    return int(number)


def convert_answers_to_form_data(subsidy_type: Any, answers: Dict[str, Any]) -> Dict[str, Any]:
    """
    診断回答をフォームデータに変換する

    Args:
        subsidy_type: 補助金種別
        answers: 診断の回答（annual_revenueは万円単位）

    Returns:
        Dict[str, Any]: フィールドID → 値
    """
    form_data: Dict[str, Any] = {}

    for field_id in COMMON_TEXT_FIELDS:
        if answers.get(field_id):
            form_data[field_id] = answers[field_id]

    employee_count = _to_int(answers.get("employee_count"))
    if employee_count:
        form_data["employee_count"] = employee_count

    annual_revenue = _to_int(answers.get("annual_revenue"))
    if annual_revenue:
        form_data["annual_revenue"] = annual_revenue

    revenue_man_yen = annual_revenue or DEFAULT_ANNUAL_REVENUE_MAN_YEN

    if subsidy_type == SubsidyType.IT_DONYU:
        company_name = answers.get("company_name") or ""
        form_data["representative_name"] = f"{company_name} 代表者".strip()
        form_data["representative_title"] = "代表取締役"
        # 推定月給 = 年間売上高（円） / 従業員数 / 12
        current_salary = math.floor(
            revenue_man_yen * 10000 / (employee_count or DEFAULT_EMPLOYEE_COUNT) / 12
        )
        form_data["current_avg_salary"] = current_salary
        form_data["planned_avg_salary"] = math.floor(current_salary * PLANNED_SALARY_RATE)
        form_data["it_tool_name"] = "クラウド型業務システム"
        form_data["it_provider_name"] = "ITソリューション株式会社"
        form_data["current_issues"] = "手作業による業務が多く、効率化が課題となっている"
        form_data["expected_effects"] = "IT導入により業務効率を30%向上させ、働き方改革を推進する"

    elif subsidy_type == SubsidyType.MONOZUKURI:
        base_revenue = revenue_man_yen * 10000
        form_data["base_year_revenue"] = base_revenue
        for field_id, rate in REVENUE_GROWTH_TARGETS.items():
            form_data[field_id] = math.floor(base_revenue * rate)

    elif subsidy_type == SubsidyType.JIZOKUKA:
        form_data["subsidy_project_name"] = "販路開拓・顧客獲得促進事業"
        form_data["sales_expansion_plan"] = "Webマーケティング強化により新規顧客開拓を行う"
        form_data["project_effects"] = "売上高20%向上と新規顧客獲得50社を目指す"

    return form_data
