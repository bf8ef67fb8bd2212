"""
FastAPIアプリケーション エントリーポイント

補助金申請書類（Excel様式）の読み取り・自動入力・一括出力を行うバックエンドAPIを提供する。
Supabase認証と連携し、生成した書類はSupabase Storageに保存する。
"""
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.api.endpoints import excel
from app.schemas.common import HealthResponse, APIInfo


# =============================================================================
# FastAPIアプリケーション初期化
# =============================================================================

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    docs_url="/docs",      # Swagger UI
    redoc_url="/redoc",    # ReDoc
    openapi_url="/openapi.json",
)


# =============================================================================
# CORSミドルウェア設定
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    # 許可するオリジン（フロントエンドのURL）
    allow_origins=settings.allowed_origins_list,
    # 認証情報（Cookie, Authorizationヘッダー）の送信を許可
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    # テンプレートダウンロード時のファイル名
    expose_headers=["Content-Disposition"],
    max_age=600,
)


# =============================================================================
# ルーター登録
# =============================================================================

# Excel処理エンドポイント
app.include_router(excel.router, prefix="/api/excel")


# =============================================================================
# ルートエンドポイント
# =============================================================================

@app.get(
    "/",
    response_model=APIInfo,
    summary="API情報",
    description="APIの基本情報を返す。",
    tags=["システム"],
)
async def root() -> APIInfo:
    """
    APIのルートエンドポイント

    Returns:
        APIInfo: API情報
    """
    return APIInfo(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=settings.API_DESCRIPTION,
        docs_url="/docs",
    )


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="ヘルスチェック",
    description="""
    アプリケーションの稼働状態を確認する。

    このエンドポイントは認証不要。
    """,
    tags=["システム"],
)
async def health_check() -> HealthResponse:
    """
    ヘルスチェックエンドポイント

    Returns:
        HealthResponse: ヘルスチェック結果
    """
    return HealthResponse(
        status="healthy",
        environment=settings.APP_ENV,
        version=settings.API_VERSION,
        timestamp=datetime.now(),
    )


# =============================================================================
# イベントハンドラ
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """アプリケーション起動時の処理（設定の確認）"""
    print(f"🚀 {settings.API_TITLE} v{settings.API_VERSION} が起動しました")
    print(f"   環境: {settings.APP_ENV}")
    print(f"   デバッグ: {settings.DEBUG}")
    print(f"   許可オリジン: {settings.allowed_origins_list}")
    print(f"   テンプレート: {settings.EXCEL_TEMPLATES_DIR}")
    print(f"   保存先バケット: {settings.STORAGE_BUCKET}")
    print(f"   監査ログ: {'有効' if settings.ENABLE_AUDIT_LOG else '無効'}")


@app.on_event("shutdown")
async def shutdown_event():
    """アプリケーション終了時の処理"""
    print(f"👋 {settings.API_TITLE} を終了します")


# =============================================================================
# 開発用: uvicornで直接実行する場合
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
