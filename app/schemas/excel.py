"""
Excel処理用スキーマモジュール

補助金申請書類（Excel様式）の読み取り・書き込み・検証で使用する
リクエスト/レスポンスのデータモデルを定義する。

JSON上のキーはフロントエンドに合わせてcamelCase（subsidyType, formData等）とし、
Python側の属性名はsnake_caseとする。
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enum定義
# =============================================================================

class SubsidyType(str, Enum):
    """補助金種別"""
    IT_DONYU = "it-donyu"        # IT導入補助金
    MONOZUKURI = "monozukuri"    # ものづくり補助金
    JIZOKUKA = "jizokuka"        # 小規模事業者持続化補助金


class FieldFormat(str, Enum):
    """セル値の形式"""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"


# 読み取り時にファイル名から種別を判定できなかった場合の値
UNKNOWN_SUBSIDY_TYPE = "unknown"


class CamelModel(BaseModel):
    """camelCaseのJSONキーとsnake_caseの属性名を両方受け付けるベースモデル"""

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# 書き込み・一括出力
# =============================================================================

class ProcessingOptions(CamelModel):
    """
    Excel書き込みリクエスト

    1リクエスト分の生成条件。リクエスト終了後は保持しない。
    """
    subsidy_type: SubsidyType = Field(..., alias="subsidyType", description="補助金種別")
    application_frame: Optional[str] = Field(
        None,
        alias="applicationFrame",
        description="申請枠（normal, digital, security, all 等）。省略時は all",
    )
    form_data: Dict[str, Any] = Field(
        default_factory=dict,
        alias="formData",
        description="フィールドID → 入力値",
    )


class ExcelProcessingResult(CamelModel):
    """
    Excel書き込み結果

    1ファイルの失敗で全体を止めず、成功ファイルとエラーを並べて返す。
    """
    success: bool = Field(..., description="エラーが0件の場合True")
    processed_files: List[str] = Field(
        default_factory=list, alias="processedFiles", description="書き込みに成功したファイル名"
    )
    errors: List[str] = Field(
        default_factory=list, description="'<ファイル名>: <メッセージ>' 形式のエラー"
    )
    download_urls: List[str] = Field(
        default_factory=list,
        alias="downloadUrls",
        description="processedFilesと同順の公開URL（一括出力時は末尾にZIPのURL）",
    )


# =============================================================================
# 読み取り
# =============================================================================

class ExcelReadResult(CamelModel):
    """Excel読み取り結果"""
    subsidy_type: str = Field(..., alias="subsidyType", description="判定された補助金種別（判定不能時は unknown）")
    file_name: str = Field(..., alias="fileName", description="読み取ったファイル名")
    extracted_data: Dict[str, Union[str, float, int]] = Field(
        default_factory=dict,
        alias="extractedData",
        description="抽出できたフィールドのみを含むフィールドID → 値",
    )
    timestamp: str = Field(..., description="読み取り時刻（ISO 8601）")


# =============================================================================
# 検証
# =============================================================================

class ValidationRequest(CamelModel):
    """フォームデータ検証リクエスト"""
    subsidy_type: SubsidyType = Field(..., alias="subsidyType", description="補助金種別")
    form_data: Dict[str, Any] = Field(default_factory=dict, alias="formData", description="フォームデータ")


class ValidationIssue(CamelModel):
    """検証エラー・警告1件"""
    field_id: str = Field(..., alias="fieldId", description="対象フィールドID")
    message: str = Field(..., description="メッセージ")


class ValidationResult(CamelModel):
    """
    フォームデータ検証結果

    errorsは提出不可、warningsは助言（isValidに影響しない）。
    """
    is_valid: bool = Field(..., alias="isValid", description="エラーが0件の場合True")
    errors: List[ValidationIssue] = Field(default_factory=list, description="エラー")
    warnings: List[ValidationIssue] = Field(default_factory=list, description="警告")
    missing_fields: List[str] = Field(
        default_factory=list, alias="missingFields", description="未入力の必須フィールドID"
    )


# =============================================================================
# 完全フロー（診断回答 → Excel出力）
# =============================================================================

class CompleteFlowRequest(CamelModel):
    """診断回答からExcel出力までを一括実行するリクエスト"""
    answers: Dict[str, Any] = Field(..., description="診断の回答データ")
    selected_subsidy: SubsidyType = Field(..., alias="selectedSubsidy", description="選択された補助金種別")


# =============================================================================
# フィールドマッピング情報
# =============================================================================

class FieldInfo(CamelModel):
    """入力フィールドの表示用情報"""
    id: str = Field(..., description="フィールドID")
    label: str = Field(..., description="表示ラベル")
    cell_reference: str = Field(..., alias="cellReference", description="セル番地")
    required: bool = Field(default=False, description="必須かどうか")


class TemplateFileInfo(CamelModel):
    """テンプレートファイルごとのフィールド一覧"""
    file_name: str = Field(..., alias="fileName", description="テンプレートファイル名")
    display_name: str = Field(..., alias="displayName", description="書類名")
    fields: List[FieldInfo] = Field(default_factory=list, description="入力フィールド")


class FieldMappingInfo(CamelModel):
    """補助金種別ごとのフィールドマッピング情報"""
    files: List[TemplateFileInfo] = Field(default_factory=list, description="テンプレートファイル一覧")
