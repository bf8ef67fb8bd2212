"""
共通スキーマモジュール

認証ユーザー、ヘルスチェック、API情報など、機能横断で使用するデータモデルを定義する。
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """
    ユーザー情報スキーマ

    アクセストークンから解決されたユーザー情報を表す。
    """
    user_id: str = Field(..., description="ユーザーUUID")
    email: Optional[str] = Field(None, description="メールアドレス")
    role: str = Field(default="authenticated", description="Supabaseロール")

    model_config = ConfigDict(from_attributes=True)


class HealthResponse(BaseModel):
    """GET /health のレスポンス"""
    status: str = Field(..., description="ステータス（healthy）")
    environment: str = Field(..., description="実行環境")
    version: str = Field(..., description="APIバージョン")
    timestamp: datetime = Field(..., description="レスポンス時刻")


class APIInfo(BaseModel):
    """GET / のレスポンス"""
    title: str = Field(..., description="APIタイトル")
    version: str = Field(..., description="APIバージョン")
    description: str = Field(..., description="API説明")
    docs_url: str = Field(..., description="Swagger UIのURL")


class APIResponse(BaseModel):
    """
    Excel処理APIの共通レスポンス

    success/messageに加え、処理結果をdataに格納する。
    """
    success: bool = Field(..., description="処理成功かどうか")
    message: str = Field(..., description="メッセージ")
    data: Optional[Any] = Field(None, description="処理結果")
