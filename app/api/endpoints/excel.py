"""
Excel処理エンドポイントモジュール

補助金申請書類（Excel様式）の読み取り・自動入力・一括出力・検証を行うAPIを提供する。

エンドポイント:
- POST /api/excel/read: アップロードされたExcelからフォームデータを抽出
- POST /api/excel/write: フォームデータを申請枠の書類に書き込み
- GET /api/excel/template/{subsidy_type}: テンプレートのダウンロード
- POST /api/excel/batch-export: 補助金種別の全書類を一括出力
- POST /api/excel/validate: フォームデータの検証
- GET /api/excel/field-mappings/{subsidy_type}: 入力フィールド一覧
- POST /api/excel/complete-flow: 診断回答からExcel出力までを一括実行
"""
import io
import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import StreamingResponse

from app.api.deps import get_current_user, get_excel_processor
from app.core.validators import validator
from app.schemas.common import APIResponse, User
from app.schemas.excel import (
    CompleteFlowRequest,
    ExcelProcessingResult,
    ProcessingOptions,
    SubsidyType,
    ValidationRequest,
)
from app.services.answer_converter import convert_answers_to_form_data
from app.services.audit_log_service import AuditAction, audit_log
from app.services.excel_processor import ExcelProcessingError, ExcelProcessor
from app.services.field_mapping import get_field_mapping_info
from app.services.form_validator import validate_form_data
from app.services.storage_service import XLSX_CONTENT_TYPE


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Excel処理"])


def _raise_processing_error(message: str, e: ExcelProcessingError):
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"success": False, "message": message, "error": e.message},
    )


def _raise_partial_failure(message: str, result: ExcelProcessingResult):
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "success": False,
            "message": message,
            "errors": result.errors,
            "processedFiles": result.processed_files,
        },
    )


# =============================================================================
# 読み取り
# =============================================================================

@router.post(
    "/read",
    response_model=APIResponse,
    summary="Excel読み取り",
    description="""
    アップロードされた申請書類（.xlsx）からフォームデータを抽出する。

    ## 補助金種別の判定
    - document_type を指定した場合はその種別（ファイル名で書類を判別できなければ種別のデフォルト書類として読む）
    - 指定がない場合はファイル名（it2025, CAGR, r3i_y3 等）から判定
    - 判定できない場合は subsidyType = unknown、extractedData は空

    数式セルはExcelで保存された計算結果を読み取る。
    """,
)
async def read_excel(
    request: Request,
    excel_file: UploadFile = File(..., description="読み取るExcelファイル"),
    document_type: Optional[str] = Form(None, description="補助金種別（it-donyu, monozukuri, jizokuka）"),
    current_user: User = Depends(get_current_user),
    processor: ExcelProcessor = Depends(get_excel_processor),
) -> APIResponse:
    """
    Excelファイルを読み取る

    Raises:
        HTTPException(400): ファイル形式・サイズが不正な場合
        HTTPException(500): Excelとして読み込めない場合
    """
    file_name = excel_file.filename or ""
    validator.validate_file_extension(file_name)

    content = await excel_file.read()
    validator.validate_file_size(len(content))

    try:
        result = processor.read_excel_file(content, file_name, document_type)
    except ExcelProcessingError as e:
        audit_log.log_action(
            AuditAction.EXCEL_READ,
            user_id=current_user.user_id,
            user_email=current_user.email,
            resource=file_name,
            request=request,
            success=False,
        )
        _raise_processing_error("Excel読み取りに失敗しました", e)

    audit_log.log_action(
        AuditAction.EXCEL_READ,
        user_id=current_user.user_id,
        user_email=current_user.email,
        resource=file_name,
        details={"subsidy_type": result.subsidy_type, "fields": len(result.extracted_data)},
        request=request,
    )

    return APIResponse(
        success=True,
        message="Excel読み取りが完了しました",
        data=result.model_dump(by_alias=True),
    )


# =============================================================================
# 書き込み
# =============================================================================

@router.post(
    "/write",
    response_model=APIResponse,
    summary="Excel書き込み",
    description="""
    フォームデータを申請枠の対象書類に書き込み、ストレージに保存する。

    1ファイルでも失敗した場合は400を返し、detail.errors にファイルごとのエラーを含める。
    """,
)
async def write_excel(
    options: ProcessingOptions,
    request: Request,
    current_user: User = Depends(get_current_user),
    processor: ExcelProcessor = Depends(get_excel_processor),
) -> APIResponse:
    """フォームデータをExcelに書き込む"""
    logger.info(
        "Excel書き込み要求: %s (申請枠: %s, %d項目)",
        options.subsidy_type.value, options.application_frame, len(options.form_data),
    )

    try:
        result = processor.write_form_data_to_excel(options)
    except ExcelProcessingError as e:
        _raise_processing_error("Excel書き込みに失敗しました", e)

    audit_log.log_action(
        AuditAction.EXCEL_WRITE,
        user_id=current_user.user_id,
        user_email=current_user.email,
        resource=options.subsidy_type.value,
        details={"processed": len(result.processed_files), "errors": len(result.errors)},
        request=request,
        success=result.success,
    )

    if not result.success:
        _raise_partial_failure("Excel書き込みでエラーが発生しました", result)

    return APIResponse(
        success=True,
        message="Excel書き込みが完了しました",
        data={
            "processedFiles": result.processed_files,
            "downloadUrls": result.download_urls,
        },
    )


# =============================================================================
# テンプレート
# =============================================================================

@router.get(
    "/template/{subsidy_type}",
    summary="テンプレートダウンロード",
    description="補助金種別のテンプレートExcelをダウンロードする。template_name 省略時はデフォルトの書類。",
)
async def download_template(
    subsidy_type: SubsidyType,
    request: Request,
    template_name: Optional[str] = Query(None, description="テンプレートファイル名"),
    current_user: User = Depends(get_current_user),
    processor: ExcelProcessor = Depends(get_excel_processor),
) -> StreamingResponse:
    """
    テンプレートをダウンロードする

    Raises:
        HTTPException(400): テンプレート名が不正な場合
        HTTPException(500): テンプレートが存在しない場合
    """
    if template_name is not None:
        validator.validate_template_name(template_name)

    try:
        content = processor.get_template(subsidy_type.value, template_name)
    except ExcelProcessingError as e:
        _raise_processing_error("テンプレート取得に失敗しました", e)

    audit_log.log_action(
        AuditAction.TEMPLATE_DOWNLOAD,
        user_id=current_user.user_id,
        user_email=current_user.email,
        resource=template_name or subsidy_type.value,
        request=request,
    )

    filename = template_name or "template.xlsx"
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_CONTENT_TYPE,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"
        },
    )


# =============================================================================
# 一括出力
# =============================================================================

@router.post(
    "/batch-export",
    response_model=APIResponse,
    summary="一括出力",
    description="""
    補助金種別の全書類（申請枠 all）を生成する。

    2ファイル以上生成できた場合、downloadUrls の末尾に全書類をまとめたZIPのURLが追加される。
    """,
)
async def batch_export(
    options: ProcessingOptions,
    request: Request,
    current_user: User = Depends(get_current_user),
    processor: ExcelProcessor = Depends(get_excel_processor),
) -> APIResponse:
    """全書類を一括出力する"""
    logger.info("一括出力要求: %s (%d項目)", options.subsidy_type.value, len(options.form_data))

    try:
        result = processor.batch_export(options)
    except ExcelProcessingError as e:
        _raise_processing_error("一括出力に失敗しました", e)

    audit_log.log_action(
        AuditAction.EXCEL_EXPORT,
        user_id=current_user.user_id,
        user_email=current_user.email,
        resource=options.subsidy_type.value,
        details={"processed": len(result.processed_files), "errors": len(result.errors)},
        request=request,
        success=result.success,
    )

    if not result.success:
        _raise_partial_failure("一括出力でエラーが発生しました", result)

    return APIResponse(
        success=True,
        message="一括出力が完了しました",
        data={
            "processedFiles": result.processed_files,
            "downloadUrls": result.download_urls,
            "totalFiles": len(result.processed_files),
        },
    )


# =============================================================================
# 検証
# =============================================================================

@router.post(
    "/validate",
    response_model=APIResponse,
    summary="フォームデータ検証",
    description="フォームデータを検証し、エラー（提出不可）と警告（助言）を返す。",
)
async def validate_form(
    body: ValidationRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
) -> APIResponse:
    """フォームデータを検証する"""
    result = validate_form_data(body.subsidy_type, body.form_data)

    audit_log.log_action(
        AuditAction.VALIDATE,
        user_id=current_user.user_id,
        user_email=current_user.email,
        resource=body.subsidy_type.value,
        details={"errors": len(result.errors), "warnings": len(result.warnings)},
        request=request,
    )

    return APIResponse(
        success=result.is_valid,
        message="検証が完了しました" if result.is_valid else "検証エラーがあります",
        data=result.model_dump(by_alias=True),
    )


# =============================================================================
# フィールドマッピング
# =============================================================================

@router.get(
    "/field-mappings/{subsidy_type}",
    response_model=APIResponse,
    summary="フィールドマッピング情報",
    description="補助金種別の書類ごとの入力フィールド（ラベル・セル番地・必須）を返す。",
)
async def get_field_mappings_info(
    subsidy_type: SubsidyType,
    current_user: User = Depends(get_current_user),
) -> APIResponse:
    """入力フィールド一覧を取得する"""
    info = get_field_mapping_info(subsidy_type)
    return APIResponse(
        success=True,
        message="フィールドマッピング情報を取得しました",
        data=info.model_dump(by_alias=True),
    )


# =============================================================================
# 完全フロー
# =============================================================================

@router.post(
    "/complete-flow",
    response_model=APIResponse,
    summary="完全フロー",
    description="""
    補助金診断の回答をフォームデータに変換し、対象書類をすべて生成する。

    レスポンスには生成に使用したフォームデータを含める（画面での確認・修正用）。
    """,
)
async def complete_flow(
    body: CompleteFlowRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    processor: ExcelProcessor = Depends(get_excel_processor),
) -> APIResponse:
    """診断回答からExcel出力までを実行する"""
    logger.info("完全フロー処理開始: %s (回答%d件)", body.selected_subsidy.value, len(body.answers))

    form_data = convert_answers_to_form_data(body.selected_subsidy, body.answers)
    options = ProcessingOptions(subsidy_type=body.selected_subsidy, form_data=form_data)

    try:
        result = processor.write_form_data_to_excel(options)
    except ExcelProcessingError as e:
        _raise_processing_error("完全フロー処理に失敗しました", e)

    audit_log.log_action(
        AuditAction.EXCEL_WRITE,
        user_id=current_user.user_id,
        user_email=current_user.email,
        resource=body.selected_subsidy.value,
        details={"flow": "complete", "processed": len(result.processed_files)},
        request=request,
        success=result.success,
    )

    if not result.success:
        _raise_partial_failure("Excel出力でエラーが発生しました", result)

    return APIResponse(
        success=True,
        message="完全フローが正常に完了しました",
        data={
            "selectedSubsidy": body.selected_subsidy.value,
            "processedFiles": result.processed_files,
            "downloadUrls": result.download_urls,
            "formData": form_data,
        },
    )
