"""
監査ログサービス
誰がいつどの申請書類を読み取り・生成したかを記録
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request

from app.core.config import settings

# 監査ログ用のロガー設定
audit_logger = logging.getLogger("audit")
audit_logger.setLevel(logging.INFO)

if not audit_logger.handlers:
    formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    # コンソールハンドラ（Cloud Runではこれがログに出力される）
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    audit_logger.addHandler(console_handler)


class AuditAction:
    """監査ログのアクション種別"""
    EXCEL_READ = "EXCEL_READ"
    EXCEL_WRITE = "EXCEL_WRITE"
    EXCEL_EXPORT = "EXCEL_EXPORT"
    TEMPLATE_DOWNLOAD = "TEMPLATE_DOWNLOAD"
    VALIDATE = "VALIDATE"


class AuditLogService:
    """監査ログを記録するサービス"""

    @staticmethod
    def log_action(
        action: str,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
        success: bool = True
    ) -> Optional[Dict[str, Any]]:
        """
        アクションを監査ログに記録

        Args:
            action: 実行されたアクション（AuditActionの値）
            user_id: ユーザーID
            user_email: ユーザーメールアドレス
            resource: 操作対象（補助金種別やファイル名）
            details: 追加の詳細情報（処理ファイル数など）
            request: FastAPIリクエストオブジェクト
            success: 成功したかどうか

        Returns:
            記録したログエントリ（監査ログ無効時はNone）
        """
        if not settings.ENABLE_AUDIT_LOG:
            return None

        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "success": success,
            "user_id": user_id,
            "user_email": user_email,
            "resource": resource,
        }

        if request:
            log_entry["ip"] = AuditLogService._get_client_ip(request)
            log_entry["method"] = request.method
            log_entry["path"] = str(request.url.path)

        if details:
            log_entry["details"] = details

        status_str = "SUCCESS" if success else "FAILED"
        audit_logger.info(
            f"{status_str} | {action} | user:{user_email or user_id or 'anonymous'} | "
            f"resource:{resource or 'N/A'} | ip:{log_entry.get('ip', 'unknown')}"
            + (f" | {details}" if details else "")
        )
        return log_entry

    @staticmethod
    def _get_client_ip(request: Request) -> str:
        """クライアントIPを取得"""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"


# シングルトンインスタンス
audit_log = AuditLogService()
