"""
依存注入モジュール

FastAPIの依存注入機能を使用して、認証・ストレージ・Excel処理などの共通処理を提供する。
各エンドポイントで Depends() を使用してこれらの依存を注入できる。
テストでは app.dependency_overrides で差し替える。
"""
from typing import Optional

from fastapi import Depends, HTTPException, Header
from supabase import create_client, Client

from app.core.config import settings
from app.core.security import (
    extract_token_from_header,
    verify_token,
    TokenValidationError,
)
from app.schemas.common import User
from app.services.excel_processor import ExcelProcessor
from app.services.storage_service import StorageClient, SupabaseStorage


def get_supabase_admin() -> Client:
    """
    Supabase管理者クライアントを取得する（サービスロールキー使用）

    生成ファイルのStorageへのアップロードに使用する。

    ⚠️ 注意: このクライアントはRLSをバイパスするため、
    適切な権限チェックを行った上で使用すること。

    Returns:
        Client: Supabase管理者クライアントインスタンス
    """
    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY
    )


async def get_current_user(
    authorization: Optional[str] = Header(None, description="Bearer token")
) -> User:
    """
    現在のログインユーザーを取得する

    Authorizationヘッダーからアクセストークンを抽出し、検証して
    ユーザー情報を返す。認証必須のエンドポイントで使用する。

    Args:
        authorization: Authorizationヘッダーの値（"Bearer <token>"形式）

    Returns:
        User: 認証されたユーザー情報

    Raises:
        HTTPException(401): トークンが無効または期限切れの場合
    """
    try:
        token = extract_token_from_header(authorization)
        user_info = verify_token(token)
        return User(**user_info)

    except TokenValidationError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_storage(client: Client = Depends(get_supabase_admin)) -> StorageClient:
    """生成ファイルのアップロード先を取得する"""
    return SupabaseStorage(client, settings.STORAGE_BUCKET)


def get_excel_processor(storage: StorageClient = Depends(get_storage)) -> ExcelProcessor:
    """
    Excel処理サービスを取得する

    テンプレート・一時ファイルの配置先は設定値に従う。
    """
    return ExcelProcessor(
        storage=storage,
        templates_dir=settings.EXCEL_TEMPLATES_DIR,
        temp_dir=settings.EXCEL_TEMP_DIR,
        export_prefix=settings.STORAGE_EXPORT_PREFIX,
    )
