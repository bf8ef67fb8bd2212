"""共通フィクスチャ（ダミー設定・インメモリストレージ・テンプレート）"""
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

# app.core.config の読み込み前に必須の環境変数を設定する
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

from app.services.excel_processor import ExcelProcessor  # noqa: E402
from app.services.storage_service import StorageError  # noqa: E402
from app.services.template_builder import create_all_templates  # noqa: E402


class FakeStorage:
    """アップロード内容をメモリに保持するストレージ"""

    def __init__(self, fail_on: Tuple[str, ...] = ()):
        self.files: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail_on = fail_on

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        if any(token in path for token in self.fail_on):
            raise StorageError(f"ファイルアップロードに失敗しました: {path}")
        self.files[path] = content
        self.content_types[path] = content_type
        return f"https://storage.example.com/documents/{path}"

    @property
    def paths(self) -> List[str]:
        return list(self.files)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    path = tmp_path / "templates"
    create_all_templates(path)
    return path


@pytest.fixture
def processor(storage: FakeStorage, templates_dir: Path, tmp_path: Path) -> ExcelProcessor:
    return ExcelProcessor(
        storage=storage,
        templates_dir=templates_dir,
        temp_dir=tmp_path / "work",
    )


@pytest.fixture
def make_processor(templates_dir: Path, tmp_path: Path):
    """失敗させるアップロード先やテンプレートディレクトリを指定してExcelProcessorを作る"""

    def _make(fail_on: Tuple[str, ...] = (), templates: Optional[Path] = None) -> ExcelProcessor:
        return ExcelProcessor(
            storage=FakeStorage(fail_on=fail_on),
            templates_dir=templates or templates_dir,
            temp_dir=tmp_path / "work",
        )

    return _make
