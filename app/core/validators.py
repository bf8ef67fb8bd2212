"""
入力バリデーション用ユーティリティ
"""
import os
import re

from fastapi import HTTPException, status

from app.core.config import settings


class InputValidator:
    """アップロードファイル・文字列入力のバリデーション"""

    # 読み取り対象として許可される拡張子（openpyxlで開ける形式のみ）
    ALLOWED_EXTENSIONS = {".xlsx", ".xlsm"}

    # テンプレート名として許可される文字（パス区切りを含まない）
    TEMPLATE_NAME_PATTERN = re.compile(r"^[^/\\]{1,100}$")

    @staticmethod
    def validate_file_extension(filename: str) -> str:
        """ファイル拡張子を検証"""
        ext = os.path.splitext(filename)[1].lower()
        if ext not in InputValidator.ALLOWED_EXTENSIONS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"許可されているファイル形式は {', '.join(sorted(InputValidator.ALLOWED_EXTENSIONS))} です"
            )
        return filename

    @staticmethod
    def validate_file_size(file_size: int) -> int:
        """ファイルサイズを検証"""
        if file_size > settings.MAX_UPLOAD_SIZE:
            max_mb = settings.MAX_UPLOAD_SIZE / (1024 * 1024)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"ファイルサイズは{max_mb:g}MB以下にしてください"
            )
        return file_size

    @staticmethod
    def validate_template_name(template_name: str) -> str:
        """テンプレート名を検証（ディレクトリ外参照を禁止）"""
        if not InputValidator.TEMPLATE_NAME_PATTERN.match(template_name) or template_name in {".", ".."}:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="テンプレート名は1-100文字で指定してください"
            )
        return template_name


validator = InputValidator()
