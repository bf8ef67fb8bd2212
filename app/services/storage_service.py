"""
ストレージサービスモジュール

生成したExcelファイルをSupabase Storageにアップロードし、公開URLを返す。
ExcelProcessorにはStorageClientとして注入する（テストでは差し替え可能）。
"""
import logging
from typing import Protocol

from supabase import Client


logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
ZIP_CONTENT_TYPE = "application/zip"


class StorageError(Exception):
    """アップロード失敗時の例外"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class StorageClient(Protocol):
    """バイト列を受け取り公開URLを返すストレージ"""

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        ...


class SupabaseStorage:
    """
    Supabase Storageへのアップロード

    同じパスへの再アップロードは上書き（upsert）する。リトライは行わない。
    """

    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """
        ファイルをアップロードして公開URLを返す

        Args:
            path: バケット内のパス
            content: ファイル内容
            content_type: MIMEタイプ

        Returns:
            str: 公開URL

        Raises:
            StorageError: アップロードに失敗した場合
        """
        try:
            bucket = self.client.storage.from_(self.bucket)
            bucket.upload(
                path,
                content,
                file_options={"content-type": content_type, "upsert": "true"},
            )
            url = bucket.get_public_url(path)
        except Exception as e:
            logger.error("ストレージアップロードエラー: %s", path, exc_info=True)
            raise StorageError(f"ファイルアップロードに失敗しました: {str(e)}")

        logger.info("アップロード完了: %s", path)
        return url
