"""診断回答変換のテスト"""
import pytest

from app.schemas.excel import SubsidyType
from app.services.answer_converter import convert_answers_to_form_data
from app.services.form_validator import validate_form_data


ANSWERS = {
    "company_name": "株式会社テスト",
    "industry": "製造業",
    "employee_count": "12",
    "annual_revenue": 6000,
    "location": "東京都",
}


def test_common_answers_are_copied():
    form = convert_answers_to_form_data(SubsidyType.JIZOKUKA, ANSWERS)

    assert form["company_name"] == "株式会社テスト"
    assert form["industry"] == "製造業"
    assert form["location"] == "東京都"
    assert form["employee_count"] == 12
    assert form["annual_revenue"] == 6000


def test_it_donyu_estimates_salaries():
    form = convert_answers_to_form_data(SubsidyType.IT_DONYU, ANSWERS)

    # 6000万円 / 12名 / 12か月
    assert form["current_avg_salary"] == 416666
    assert form["planned_avg_salary"] == 479165
    assert form["representative_title"] == "代表取締役"
    assert form["it_tool_name"]


def test_it_donyu_uses_defaults_when_unanswered():
    form = convert_answers_to_form_data("it-donyu", {})

    # 5000万円 / 10名 / 12か月
    assert form["current_avg_salary"] == 416666
    assert "company_name" not in form
    assert "employee_count" not in form


def test_monozukuri_revenue_targets():
    form = convert_answers_to_form_data(SubsidyType.MONOZUKURI, {"annual_revenue": 10000})

    assert form["base_year_revenue"] == 100_000_000
    assert form["year1_target"] == pytest.approx(105_000_000, abs=1)
    assert form["year3_target"] == pytest.approx(115_000_000, abs=1)
    assert form["year5_target"] == 125_000_000

    result = validate_form_data("monozukuri", form)
    assert result.is_valid


def test_jizokuka_defaults_pass_validation():
    form = convert_answers_to_form_data(SubsidyType.JIZOKUKA, ANSWERS)

    result = validate_form_data("jizokuka", form)
    assert result.is_valid
    assert result.warnings == []
