"""
Excelテンプレート生成スクリプト

補助金申請書類（IT導入・ものづくり・持続化）の入力用Excelテンプレートを生成する。

Usage:
    python scripts/create_templates.py --output-dir data/excel-templates
    python scripts/create_templates.py  # 設定のEXCEL_TEMPLATES_DIRに出力
"""
import argparse
import logging
from pathlib import Path

from app.core.config import settings
from app.services.template_builder import create_all_templates


def main():
    """メイン関数"""
    parser = argparse.ArgumentParser(description="補助金申請書類のExcelテンプレートを生成")
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="出力ディレクトリ（デフォルト: 設定のEXCEL_TEMPLATES_DIR）",
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    output_dir = Path(args.output_dir or settings.EXCEL_TEMPLATES_DIR)

    print(f"出力先: {output_dir}")
    print("-" * 40)

    created = create_all_templates(output_dir)

    print("-" * 40)
    print(f"完了: {len(created)}ファイル")


if __name__ == "__main__":
    main()
