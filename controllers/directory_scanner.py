"""
ソースディレクトリのスキャンを行うモジュール

ディレクトリ直下のファイルを列挙し、対応拡張子の画像ファイルのみを抽出します。
拡張子の判定は大文字小文字を区別せず、ファイル内容の判定は行いません。
"""
import os
import time
from typing import List, Optional

from utils import logger, get_config, normalize_extension

class DirectoryScanner:
    """
    ディレクトリ内の画像ファイルをスキャンするクラス

    出力ファイル名はソースのファイル名と一致させるため、サブディレクトリは
    スキャンしません（名前の衝突を避けるため）。
    """
    def __init__(self, directory: str, image_extensions: Optional[List[str]] = None):
        """
        初期化

        Args:
            directory: スキャンするディレクトリのパス
            image_extensions: 対象とする画像ファイルの拡張子リスト（Noneの場合は設定から取得）
        """
        self.directory = directory

        if image_extensions is None:
            image_extensions = get_config().get_supported_extensions()
        self.image_extensions = {normalize_extension(ext) for ext in image_extensions}

        # 統計情報
        self.total_files_scanned = 0
        self.total_images_found = 0
        self.skipped_files: List[str] = []

        logger.debug(
            f"DirectoryScanner initialized: directory={directory}, "
            f"extensions={sorted(self.image_extensions)}"
        )

    def validate(self) -> None:
        """
        ディレクトリが存在し、読み取り可能であることを確認

        Raises:
            FileNotFoundError: ディレクトリが存在しない場合
            NotADirectoryError: 指定されたパスがディレクトリでない場合
            PermissionError: ディレクトリにアクセス権がない場合
        """
        if not os.path.exists(self.directory):
            logger.error(f"Source directory does not exist: {self.directory}")
            raise FileNotFoundError(f"Directory not found: {self.directory}")

        if not os.path.isdir(self.directory):
            logger.error(f"Source path is not a directory: {self.directory}")
            raise NotADirectoryError(f"Not a directory: {self.directory}")

        if not os.access(self.directory, os.R_OK | os.X_OK):
            logger.error(f"Source directory is not readable: {self.directory}")
            raise PermissionError(f"Permission denied: {self.directory}")

    def is_supported(self, file_name: str) -> bool:
        """ファイル名の拡張子が対応リストに含まれるか（大文字小文字を区別しない）"""
        ext = os.path.splitext(file_name)[1].lower()
        return ext in self.image_extensions

    def scan(self) -> List[str]:
        """
        ディレクトリ内の画像ファイルをスキャン

        Returns:
            List[str]: 画像ファイルパスのリスト（ファイル名順）

        Raises:
            FileNotFoundError, NotADirectoryError, PermissionError: validate() を参照
        """
        self.validate()

        start_time = time.time()
        self.total_files_scanned = 0
        self.total_images_found = 0
        self.skipped_files = []
        image_files = []

        with os.scandir(self.directory) as entries:
            for entry in entries:
                if not entry.is_file():
                    continue

                self.total_files_scanned += 1
                if self.is_supported(entry.name):
                    image_files.append(entry.path)
                    self.total_images_found += 1
                else:
                    self.skipped_files.append(entry.name)

        image_files.sort(key=os.path.basename)

        elapsed_time = time.time() - start_time
        logger.info(
            f"Scanned {self.directory}: {len(image_files)} images, "
            f"{len(self.skipped_files)} skipped, {elapsed_time:.2f}s"
        )
        if self.skipped_files:
            logger.debug(f"Skipped non-image files: {self.skipped_files}")

        return image_files

    def get_stats(self) -> dict:
        """
        スキャンの統計情報を取得

        Returns:
            dict: 統計情報を含む辞書
        """
        return {
            "directory": self.directory,
            "total_files_scanned": self.total_files_scanned,
            "total_images_found": self.total_images_found,
            "skipped_files": list(self.skipped_files),
            "image_extensions": sorted(self.image_extensions),
        }

def list_file_names(directory: str) -> List[str]:
    """
    ディレクトリ直下の通常ファイル名を列挙（存在しない場合は空リスト）
    """
    if not os.path.isdir(directory):
        return []
    with os.scandir(directory) as entries:
        return sorted(entry.name for entry in entries if entry.is_file())
