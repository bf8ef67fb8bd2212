"""
セキュリティモジュール

Supabase Authが発行したアクセストークンを検証する。
認証そのものはSupabase側で行い、ここではトークンからユーザーを解決するのみ。
"""
from typing import Any, Dict, Optional

from supabase import create_client

from app.core.config import settings


class TokenValidationError(Exception):
    """
    トークン検証エラー

    アクセストークンの検証に失敗した場合に発生する例外。
    """

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def extract_token_from_header(authorization: Optional[str]) -> str:
    """
    Authorizationヘッダーからトークンを抽出する

    Args:
        authorization: Authorizationヘッダーの値（"Bearer <token>"形式）

    Returns:
        str: 抽出されたトークン

    Raises:
        TokenValidationError: ヘッダーがない、または不正な形式の場合
    """
    if not authorization:
        raise TokenValidationError(
            "認証が必要です。Authorizationヘッダーにトークンを設定してください。"
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise TokenValidationError(
            "Authorizationヘッダーの形式が不正です。'Bearer <token>'の形式で指定してください。"
        )

    return parts[1]


def verify_token(token: str) -> Dict[str, Any]:
    """
    トークンをSupabase Authで検証してユーザー情報を返す

    Args:
        token: アクセストークン

    Returns:
        Dict[str, Any]: user_id, email, role

    Raises:
        TokenValidationError: トークンが無効、期限切れ、または検証失敗時
    """
    try:
        supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
        user_response = supabase.auth.get_user(token)

        if not user_response or not user_response.user:
            raise TokenValidationError("無効なアクセストークンです")

        user = user_response.user
        return {
            "user_id": user.id,
            "email": user.email,
            "role": user.role or "authenticated",
        }

    except TokenValidationError:
        raise
    except Exception as e:
        raise TokenValidationError(f"無効なアクセストークンです: {str(e)}")
