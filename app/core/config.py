"""
環境変数管理モジュール

pydantic-settingsを使用して環境変数を型安全に管理する。
.envファイルからの自動読み込みに対応。
"""
import tempfile
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    アプリケーション設定クラス

    環境変数または.envファイルから設定を読み込む。
    """

    # Supabase設定
    SUPABASE_URL: str
    # Supabase匿名キー（トークン検証用）
    SUPABASE_ANON_KEY: str
    # Supabaseサービスロールキー（ストレージアップロード用）
    SUPABASE_SERVICE_ROLE_KEY: str

    # アプリケーション設定
    APP_ENV: str = "development"
    DEBUG: bool = True
    # 許可するCORSオリジン（カンマ区切り）
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # APIメタ情報
    API_TITLE: str = "補助金申請書類 Excel処理 API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "補助金申請書類（Excel様式）の読み取り・自動入力・一括出力API"

    # Excel処理設定
    # テンプレートExcelの配置ディレクトリ（ファイル名で参照される）
    EXCEL_TEMPLATES_DIR: str = "data/excel-templates"
    # 書き込み結果の一時保存先
    EXCEL_TEMP_DIR: str = tempfile.gettempdir()
    # アップロード可能なファイルサイズ上限（10MB）
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024

    # ストレージ設定
    STORAGE_BUCKET: str = "documents"
    STORAGE_EXPORT_PREFIX: str = "excel-exports"

    # 監査ログ
    ENABLE_AUDIT_LOG: bool = True

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        許可されたオリジンをリストで取得

        Returns:
            List[str]: 許可されたオリジンのリスト
        """
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        """本番環境かどうかを判定"""
        return self.APP_ENV == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    設定インスタンスを取得（シングルトン）

    lru_cacheを使用して設定の読み込みは一度だけ行う。

    Returns:
        Settings: アプリケーション設定
    """
    return Settings()


# グローバル設定インスタンス（簡易アクセス用）
settings = get_settings()
