"""Excel読み取り・書き込み・一括出力のテスト"""
import io
import zipfile
from pathlib import Path

import pytest
from openpyxl import Workbook, load_workbook

from app.schemas.excel import FieldFormat, ProcessingOptions, SubsidyType
from app.services.excel_processor import WORKBOOK_CREATOR, ExcelProcessingError, ExcelProcessor
from app.services.field_mapping import FieldMapping


def _workbook_bytes(wb: Workbook) -> bytes:
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _wage_report_form() -> dict:
    return {
        "company_name": "株式会社テスト",
        "corporate_number": "1234567890123",
        "representative_name": "山田太郎",
        "employee_count": 12,
        "current_avg_salary": "¥300,000",
        "planned_avg_salary": 345000,
        "salary_increase_rate": 99,
        "unrelated_field": "ignored",
    }


# =============================================================================
# 読み取り
# =============================================================================

def test_read_wage_report(processor: ExcelProcessor):
    wb = Workbook()
    ws = wb.active
    ws["C4"] = "  株式会社テスト "
    ws["C7"] = "山田太郎"
    ws["C10"] = 12
    ws["C11"] = "¥300,000"

    result = processor.read_excel_file(_workbook_bytes(wb), "it2025_chingin_houkoku.xlsx")

    assert result.subsidy_type == "it-donyu"
    assert result.file_name == "it2025_chingin_houkoku.xlsx"
    assert result.extracted_data == {
        "company_name": "株式会社テスト",
        "representative_name": "山田太郎",
        "employee_count": 12,
        "current_avg_salary": 300000,
    }
    assert result.timestamp


def test_read_unknown_file_returns_empty_data(processor: ExcelProcessor):
    wb = Workbook()
    wb.active["C4"] = "値"

    result = processor.read_excel_file(_workbook_bytes(wb), "sales_report.xlsx")

    assert result.subsidy_type == "unknown"
    assert result.extracted_data == {}


def test_read_with_explicit_document_type(processor: ExcelProcessor):
    wb = Workbook()
    wb.active["C5"] = 10_000_000

    result = processor.read_excel_file(
        _workbook_bytes(wb), "upload.xlsx", document_type="monozukuri"
    )

    assert result.subsidy_type == "monozukuri"
    assert result.extracted_data == {"base_year_revenue": 10_000_000}


def test_read_with_document_type_uses_default_document(processor: ExcelProcessor):
    wb = Workbook()
    wb.active["C4"] = "株式会社テスト"

    result = processor.read_excel_file(_workbook_bytes(wb), "upload.xlsx", document_type="it-donyu")

    assert result.subsidy_type == "it-donyu"
    assert result.extracted_data == {"company_name": "株式会社テスト"}


def test_read_without_document_type_ignores_unnamed_document(processor: ExcelProcessor):
    wb = Workbook()
    wb.active["C4"] = "株式会社テスト"

    result = processor.read_excel_file(_workbook_bytes(wb), "it2025_upload.xlsx")

    assert result.subsidy_type == "it-donyu"
    assert result.extracted_data == {}


def test_read_skips_field_on_missing_sheet(processor: ExcelProcessor, monkeypatch):
    mappings = [
        FieldMapping(field_id="company_name", file_name="upload.xlsx", cell_reference="C4"),
        FieldMapping(field_id="extra", file_name="upload.xlsx", cell_reference="A1", sheet_name="存在しないシート"),
    ]
    monkeypatch.setattr("app.services.excel_processor.get_field_mappings", lambda *args, **kwargs: mappings)
    wb = Workbook()
    wb.active["C4"] = "株式会社テスト"

    result = processor.read_excel_file(_workbook_bytes(wb), "it2025_upload.xlsx")

    assert result.extracted_data == {"company_name": "株式会社テスト"}


def test_read_invalid_buffer_raises(processor: ExcelProcessor):
    with pytest.raises(ExcelProcessingError) as exc_info:
        processor.read_excel_file(b"not an excel file", "it2025_chingin_houkoku.xlsx")

    assert "Excel読み取りに失敗しました" in exc_info.value.message


def test_formula_without_cached_value_is_omitted(processor: ExcelProcessor, templates_dir: Path):
    content = (templates_dir / "it2025_chingin_houkoku.xlsx").read_bytes()

    result = processor.read_excel_file(content, "it2025_chingin_houkoku.xlsx")

    assert "salary_increase_rate" not in result.extracted_data


# =============================================================================
# 書き込み
# =============================================================================

def test_write_normal_frame(processor: ExcelProcessor, storage):
    options = ProcessingOptions(
        subsidy_type=SubsidyType.IT_DONYU,
        application_frame="normal",
        form_data=_wage_report_form(),
    )

    result = processor.write_form_data_to_excel(options)

    assert result.success
    assert result.errors == []
    assert result.processed_files == [
        "it2025_chingin_houkoku.xlsx",
        "it2025_jisshinaiyosetsumei_cate5.xlsx",
        "it2025_kakakusetsumei_cate5.xlsx",
    ]
    assert len(result.download_urls) == 3
    for file_name, url in zip(result.processed_files, result.download_urls):
        assert url.endswith(file_name)
        assert "/excel-exports/it-donyu/" in url


def test_written_values_and_formats(processor: ExcelProcessor, storage):
    options = ProcessingOptions(
        subsidy_type=SubsidyType.IT_DONYU,
        application_frame="normal",
        form_data=_wage_report_form(),
    )
    processor.write_form_data_to_excel(options)

    path = next(p for p in storage.paths if p.endswith("it2025_chingin_houkoku.xlsx"))
    ws = load_workbook(io.BytesIO(storage.files[path])).worksheets[0]

    assert ws["C4"].value == "株式会社テスト"
    assert ws["C10"].value == 12
    assert ws["C10"].number_format == "#,##0"
    assert ws["C11"].value == 300000
    assert ws["C11"].number_format == "¥#,##0"
    # 数式セルは上書きしない
    assert ws["C13"].value == "=IF(C11>0,(C12-C11)/C11,0)"


def test_write_then_read_restores_input_fields(processor: ExcelProcessor, storage):
    form = {"subsidy_project_name": "新商品の販路開拓事業", "expense_quantity_0": 2, "expense_unit_price_0": 50000}
    options = ProcessingOptions(subsidy_type=SubsidyType.JIZOKUKA, form_data=form)

    result = processor.write_form_data_to_excel(options)
    content = storage.files[storage.paths[0]]
    read_back = processor.read_excel_file(content, result.processed_files[0])

    assert read_back.extracted_data == form


def test_missing_template_creates_new_workbook(make_processor, tmp_path: Path):
    processor = make_processor(templates=tmp_path / "empty")
    storage = processor.storage
    options = ProcessingOptions(
        subsidy_type=SubsidyType.IT_DONYU,
        application_frame="normal",
        form_data={"company_name": "株式会社テスト"},
    )

    result = processor.write_form_data_to_excel(options)

    assert result.success
    wb = load_workbook(io.BytesIO(storage.files[storage.paths[0]]))
    assert wb.properties.creator == WORKBOOK_CREATOR
    assert wb.worksheets[0]["C4"].value == "株式会社テスト"


def test_temp_files_are_removed(processor: ExcelProcessor, tmp_path: Path):
    options = ProcessingOptions(subsidy_type=SubsidyType.JIZOKUKA, form_data={"subsidy_project_name": "販路開拓事業"})

    processor.write_form_data_to_excel(options)

    assert list((tmp_path / "work").iterdir()) == []


def test_upload_failure_is_recorded_per_file(make_processor):
    processor = make_processor(fail_on=("kakakusetsumei",))
    options = ProcessingOptions(subsidy_type=SubsidyType.IT_DONYU, application_frame="normal")

    result = processor.write_form_data_to_excel(options)

    assert not result.success
    assert result.processed_files == [
        "it2025_chingin_houkoku.xlsx",
        "it2025_jisshinaiyosetsumei_cate5.xlsx",
    ]
    assert len(result.download_urls) == 2
    assert len(result.errors) == 1
    assert result.errors[0].startswith("it2025_kakakusetsumei_cate5.xlsx: ")


def test_unparseable_number_is_written_as_zero(processor: ExcelProcessor, storage):
    options = ProcessingOptions(
        subsidy_type=SubsidyType.JIZOKUKA,
        form_data={"subsidy_project_name": "販路開拓事業", "expense_quantity_0": "二"},
    )

    result = processor.write_form_data_to_excel(options)

    assert result.success
    ws = load_workbook(io.BytesIO(storage.files[storage.paths[0]])).worksheets[0]
    assert ws["E25"].value == 0


def test_cell_write_failure_is_skipped(processor: ExcelProcessor, storage, monkeypatch):
    mappings = [
        FieldMapping(field_id="subsidy_project_name", file_name="r3i_y3e.xlsx", cell_reference="B3"),
        FieldMapping(field_id="start_date", file_name="r3i_y3e.xlsx", cell_reference="H3", format=FieldFormat.DATE),
    ]
    monkeypatch.setattr("app.services.excel_processor.get_field_mappings", lambda *args, **kwargs: mappings)
    options = ProcessingOptions(
        subsidy_type=SubsidyType.JIZOKUKA,
        form_data={"subsidy_project_name": "販路開拓事業", "start_date": "来年度"},
    )

    result = processor.write_form_data_to_excel(options)

    assert result.success
    ws = load_workbook(io.BytesIO(storage.files[storage.paths[0]])).worksheets[0]
    assert ws["B3"].value == "販路開拓事業"
    assert ws["H3"].value is None


def test_same_millisecond_uploads_do_not_overwrite(processor: ExcelProcessor, storage, monkeypatch):
    monkeypatch.setattr("app.services.excel_processor._timestamp_ms", lambda: 1700000000000)

    first = processor.write_form_data_to_excel(
        ProcessingOptions(subsidy_type=SubsidyType.JIZOKUKA, form_data={"subsidy_project_name": "事業A"})
    )
    second = processor.write_form_data_to_excel(
        ProcessingOptions(subsidy_type=SubsidyType.JIZOKUKA, form_data={"subsidy_project_name": "事業B"})
    )

    assert first.download_urls != second.download_urls
    assert len(set(storage.paths)) == 2
    names = [load_workbook(io.BytesIO(storage.files[p])).worksheets[0]["B3"].value for p in storage.paths]
    assert names == ["事業A", "事業B"]


# =============================================================================
# 一括出力
# =============================================================================

def test_batch_export_appends_bundle(processor: ExcelProcessor, storage):
    options = ProcessingOptions(subsidy_type=SubsidyType.IT_DONYU, application_frame="normal")

    result = processor.batch_export(options)

    assert result.success
    assert len(result.processed_files) == 7
    assert len(result.download_urls) == len(result.processed_files) + 1
    assert result.download_urls[-1].endswith("it-donyu_bundle.zip")

    bundle_path = next(p for p in storage.paths if p.endswith(".zip"))
    assert storage.content_types[bundle_path] == "application/zip"
    with zipfile.ZipFile(io.BytesIO(storage.files[bundle_path])) as zf:
        assert sorted(zf.namelist()) == sorted(result.processed_files)


def test_batch_export_single_file_has_no_bundle(processor: ExcelProcessor):
    options = ProcessingOptions(subsidy_type=SubsidyType.JIZOKUKA)

    result = processor.batch_export(options)

    assert result.processed_files == ["r3i_y3e.xlsx"]
    assert len(result.download_urls) == 1


def test_batch_export_bundle_failure_is_reported(make_processor):
    processor = make_processor(fail_on=("bundle",))

    result = processor.batch_export(ProcessingOptions(subsidy_type=SubsidyType.MONOZUKURI))

    assert not result.success
    assert len(result.processed_files) == 2
    assert len(result.download_urls) == 2
    assert result.errors[-1].startswith("monozukuri_bundle.zip: ")


# =============================================================================
# テンプレート取得
# =============================================================================

def test_get_default_template(processor: ExcelProcessor, templates_dir: Path):
    content = processor.get_template("jizokuka")

    assert content == (templates_dir / "r3i_y3e.xlsx").read_bytes()


def test_get_named_template(processor: ExcelProcessor):
    content = processor.get_template("it-donyu", "it2025_kakakusetsumei_cate6.xlsx")

    ws = load_workbook(io.BytesIO(content)).worksheets[0]
    assert ws.title == "価格説明書"


def test_get_template_rejects_traversal(processor: ExcelProcessor):
    with pytest.raises(ExcelProcessingError) as exc_info:
        processor.get_template("it-donyu", "../secrets.xlsx")

    assert "テンプレート取得に失敗しました" in exc_info.value.message


def test_get_missing_template_raises(processor: ExcelProcessor):
    with pytest.raises(ExcelProcessingError):
        processor.get_template("it-donyu", "missing.xlsx")
