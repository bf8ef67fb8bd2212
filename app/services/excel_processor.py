"""
Excel処理サービスモジュール

補助金申請書類（Excel様式）の読み取り・自動入力・一括出力を行う。

機能:
- Excel読み取り: アップロードされた書類からフォームデータを抽出
- Excel書き込み: フォームデータをテンプレートの所定セルに書き込み、ストレージに保存
- 一括出力: 補助金種別の全書類を生成し、ZIPにまとめる
- テンプレート取得

1ファイルの失敗で処理全体を止めず、成功したファイルとエラーを並べて返す。
"""
import io
import logging
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import uuid4

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from app.schemas.excel import ExcelProcessingResult, ExcelReadResult, ProcessingOptions
from app.services.field_mapping import (
    FieldMapping,
    detect_subsidy_type,
    get_default_template,
    get_field_mappings,
    get_target_files,
)
from app.services.storage_service import StorageClient, XLSX_CONTENT_TYPE, ZIP_CONTENT_TYPE
from app.services.value_formatter import format_for_spreadsheet, get_number_format, parse_for_domain


logger = logging.getLogger(__name__)

# テンプレートがない場合に新規作成するワークブックの作成者
WORKBOOK_CREATOR = "IT補助金申請アシスタント"


class ExcelProcessingError(Exception):
    """
    Excel処理エラー

    読み取り・書き込み・テンプレート取得が全体として失敗した場合に発生する。
    ファイル単位・セル単位の失敗では発生しない。
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def _timestamp_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class ExcelProcessor:
    """
    補助金申請書類のExcel処理

    Args:
        storage: 生成ファイルのアップロード先
        templates_dir: テンプレートExcelの配置ディレクトリ
        temp_dir: 書き込み結果の一時保存ディレクトリ
        export_prefix: ストレージ上の保存先プレフィックス
    """

    def __init__(
        self,
        storage: StorageClient,
        templates_dir: Union[str, Path],
        temp_dir: Union[str, Path],
        export_prefix: str = "excel-exports",
    ):
        self.storage = storage
        self.templates_dir = Path(templates_dir)
        self.temp_dir = Path(temp_dir)
        self.export_prefix = export_prefix

    # =========================================================================
    # 読み取り
    # =========================================================================

    def read_excel_file(
        self,
        content: bytes,
        file_name: str,
        document_type: Optional[str] = None,
    ) -> ExcelReadResult:
        """
        Excel書類からフォームデータを抽出する

        数式セルはキャッシュされた計算結果を読み取る。
        セル単位の読み取り失敗はログに記録してスキップする。

        Args:
            content: Excelファイルの内容
            file_name: ファイル名（補助金種別・書類種類の判定に使用）
            document_type: 補助金種別の明示指定（ファイル名判定より優先。
                書類をファイル名で判別できない場合は種別のデフォルト書類として読む）

        Returns:
            ExcelReadResult: 抽出結果（値が取れたフィールドのみ）

        Raises:
            ExcelProcessingError: ファイルをExcelとして読み込めない場合
        """
        try:
            logger.info("Excel読み取り開始: %s", file_name)

            wb = load_workbook(io.BytesIO(content), data_only=True)

            subsidy_type = detect_subsidy_type(file_name, document_type)
            # 種別の明示指定があればファイル名で判別できない書類もデフォルト書類として読む
            explicit = document_type is not None and subsidy_type == document_type
            mappings = get_field_mappings(subsidy_type, file_name, use_default=explicit)

            extracted_data: Dict[str, Any] = {}
            for mapping in mappings:
                try:
                    value = self._extract_cell_value(wb, mapping)
                except Exception:
                    logger.warning("セル読み取りエラー: %s", mapping.cell_reference, exc_info=True)
                    continue
                if value is not None:
                    extracted_data[mapping.field_id] = value

            logger.info("Excel読み取り完了: %d件のフィールド抽出", len(extracted_data))
            return ExcelReadResult(
                subsidy_type=subsidy_type,
                file_name=file_name,
                extracted_data=extracted_data,
                timestamp=datetime.now(timezone.utc).isoformat(),
            )

        except Exception as e:
            logger.error("Excel読み取りエラー: %s", file_name, exc_info=True)
            raise ExcelProcessingError(f"Excel読み取りに失敗しました: {str(e)}") from e

    def _extract_cell_value(self, wb: Workbook, mapping: FieldMapping) -> Any:
        if mapping.sheet_name:
            if mapping.sheet_name not in wb.sheetnames:
                raise KeyError(f"シートが見つかりません: {mapping.sheet_name}")
            ws = wb[mapping.sheet_name]
        else:
            ws = wb.worksheets[0]

        return parse_for_domain(ws[mapping.cell_reference].value, mapping.format)

    # =========================================================================
    # 書き込み
    # =========================================================================

    def write_form_data_to_excel(self, options: ProcessingOptions) -> ExcelProcessingResult:
        """
        フォームデータを申請枠の対象ファイルに書き込む

        ファイルごとに独立して処理し、失敗したファイルはerrorsに記録して次へ進む。

        Args:
            options: 補助金種別・申請枠・フォームデータ

        Returns:
            ExcelProcessingResult: 処理結果（errorsが空の場合success=True）

        Raises:
            ExcelProcessingError: ファイル単位の処理以外で失敗した場合
        """
        try:
            logger.info("Excel書き込み開始: %s", options.subsidy_type.value)
            result, _ = self._write_all(options)
            return result
        except Exception as e:
            logger.error("Excel書き込みエラー", exc_info=True)
            raise ExcelProcessingError(f"Excel書き込みに失敗しました: {str(e)}") from e

    def _write_all(self, options: ProcessingOptions) -> Tuple[ExcelProcessingResult, List[Tuple[str, bytes]]]:
        """
        対象ファイルをすべて処理する

        Returns:
            (処理結果, [(ファイル名, 生成したファイル内容)])
        """
        subsidy_type = options.subsidy_type.value
        target_files = get_target_files(subsidy_type, options.application_frame)

        processed_files: List[str] = []
        errors: List[str] = []
        download_urls: List[str] = []
        outputs: List[Tuple[str, bytes]] = []

        for file_name in target_files:
            try:
                content = self._process_excel_file(file_name, options.form_data, subsidy_type)
                download_url = self._upload(content, file_name, subsidy_type, XLSX_CONTENT_TYPE)

                processed_files.append(file_name)
                download_urls.append(download_url)
                outputs.append((file_name, content))
                logger.info("処理完了: %s", file_name)
            except Exception as e:
                logger.error("ファイル処理エラー: %s", file_name, exc_info=True)
                errors.append(f"{file_name}: {str(e)}")

        result = ExcelProcessingResult(
            success=len(errors) == 0,
            processed_files=processed_files,
            errors=errors,
            download_urls=download_urls,
        )
        return result, outputs

    def _process_excel_file(self, file_name: str, form_data: Dict[str, Any], subsidy_type: str) -> bytes:
        """
        テンプレートにフォームデータを書き込み、生成したファイルの内容を返す

        一時ファイルは成功・失敗に関わらず削除する。
        """
        wb = self._load_template(file_name)

        for mapping in get_field_mappings(subsidy_type, file_name):
            value = form_data.get(mapping.field_id)
            if value is None:
                continue
            try:
                self._set_cell_value(wb, mapping, value)
            except Exception:
                logger.warning("セル書き込みエラー: %s", mapping.cell_reference, exc_info=True)

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.temp_dir / f"processed_{_timestamp_ms()}_{uuid4().hex[:8]}_{file_name}"
        try:
            wb.save(output_path)
            return output_path.read_bytes()
        finally:
            try:
                output_path.unlink(missing_ok=True)
            except OSError:
                logger.warning("一時ファイルの削除に失敗しました: %s", output_path, exc_info=True)

    def _load_template(self, file_name: str) -> Workbook:
        """テンプレートを読み込む（存在しない場合は空のワークブックを作成）"""
        template_path = self.templates_dir / file_name
        if not template_path.exists():
            logger.warning("テンプレートが見つかりません: %s、新規作成します", template_path)
            wb = Workbook()
            wb.properties.creator = WORKBOOK_CREATOR
            wb.properties.created = datetime.now()
            return wb
        return load_workbook(template_path)

    def _get_worksheet(self, wb: Workbook, sheet_name: Optional[str]) -> Worksheet:
        if not sheet_name:
            return wb.worksheets[0]
        if sheet_name not in wb.sheetnames:
            return wb.create_sheet(sheet_name)
        return wb[sheet_name]

    def _set_cell_value(self, wb: Workbook, mapping: FieldMapping, value: Any) -> None:
        """数式セル以外に値と表示書式を設定する"""
        if mapping.is_formula:
            return

        cell = self._get_worksheet(wb, mapping.sheet_name)[mapping.cell_reference]
        cell.value = format_for_spreadsheet(value, mapping.format)

        number_format = get_number_format(mapping.format)
        if number_format:
            cell.number_format = number_format

    def _upload(self, content: bytes, file_name: str, subsidy_type: str, content_type: str) -> str:
        # 保存先パスはアップロードごとに一意
        upload_path = f"{self.export_prefix}/{subsidy_type}/{_timestamp_ms()}_{uuid4().hex[:8]}_{file_name}"
        return self.storage.upload(upload_path, content, content_type)

    # =========================================================================
    # 一括出力
    # =========================================================================

    def batch_export(self, options: ProcessingOptions) -> ExcelProcessingResult:
        """
        補助金種別の全書類を出力する

        申請枠を "all" として全対象ファイルを処理し、2ファイル以上生成できた場合は
        それらをまとめたZIPのURLをdownloadUrlsの末尾に追加する。

        Raises:
            ExcelProcessingError: ファイル単位の処理以外で失敗した場合
        """
        try:
            subsidy_type = options.subsidy_type.value
            logger.info("一括出力開始: %s", subsidy_type)

            all_options = options.model_copy(update={"application_frame": "all"})
            result, outputs = self._write_all(all_options)

            if len(outputs) > 1:
                bundle_name = f"{subsidy_type}_bundle.zip"
                try:
                    archive = self._create_zip_archive(outputs)
                    result.download_urls.append(
                        self._upload(archive, bundle_name, subsidy_type, ZIP_CONTENT_TYPE)
                    )
                except Exception as e:
                    logger.error("ZIP作成エラー: %s", bundle_name, exc_info=True)
                    result.errors.append(f"{bundle_name}: {str(e)}")
                    result.success = False

            logger.info("一括出力完了: %dファイル処理", len(result.processed_files))
            return result

        except Exception as e:
            logger.error("一括出力エラー", exc_info=True)
            raise ExcelProcessingError(f"一括出力に失敗しました: {str(e)}") from e

    def _create_zip_archive(self, outputs: List[Tuple[str, bytes]]) -> bytes:
        zip_buffer = io.BytesIO()
        with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for file_name, content in outputs:
                zf.writestr(file_name, content)
        return zip_buffer.getvalue()

    # =========================================================================
    # テンプレート取得
    # =========================================================================

    def get_template(self, subsidy_type: str, template_name: Optional[str] = None) -> bytes:
        """
        テンプレートファイルの内容を取得する

        Args:
            subsidy_type: 補助金種別
            template_name: テンプレート名（省略時は補助金種別のデフォルト）

        Raises:
            ExcelProcessingError: テンプレートが存在しない、または読み込めない場合
        """
        try:
            file_name = template_name or get_default_template(subsidy_type)
            template_path = (self.templates_dir / file_name).resolve()
            if template_path.parent != self.templates_dir.resolve():
                raise ValueError(f"不正なテンプレート名です: {file_name}")

            content = template_path.read_bytes()
            logger.info("テンプレート取得: %s", file_name)
            return content
        except Exception as e:
            logger.error("テンプレート取得エラー", exc_info=True)
            raise ExcelProcessingError(f"テンプレート取得に失敗しました: {str(e)}") from e
