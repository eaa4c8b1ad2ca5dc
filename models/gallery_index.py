"""
ギャラリーインデックスモジュール

フル解像度画像とサムネイルをファイル名で対応付ける読み取り専用のインデックスを提供します。
サムネイルが存在しない画像はフル解像度画像にフォールバックします。
"""
import os
from typing import Dict, Iterator, List, Optional

from controllers.directory_scanner import DirectoryScanner, list_file_names
from utils import logger

class GalleryEntry:
    """ギャラリーの1項目（フル解像度画像とサムネイルの組）"""

    __slots__ = ("name", "full", "thumb", "has_thumbnail")

    def __init__(self, name: str, full: str, thumb: Optional[str] = None):
        self.name = name
        self.full = full
        self.has_thumbnail = thumb is not None
        self.thumb = thumb if thumb is not None else full

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "full": self.full,
            "thumb": self.thumb,
            "has_thumbnail": self.has_thumbnail,
        }

    def __repr__(self):
        return f"GalleryEntry({self.name!r}, has_thumbnail={self.has_thumbnail})"

class GalleryIndex:
    """
    ファイル名をキーにしたギャラリーのインデックス

    2つのディレクトリを一度ずつ列挙して構築し、以後は変更しません。
    """

    def __init__(self, entries: Dict[str, GalleryEntry], orphans: List[str]):
        self._entries = entries
        self._orphans = orphans

    @classmethod
    def build(cls, photos_dir: str, thumbs_dir: str,
              image_extensions: Optional[List[str]] = None) -> "GalleryIndex":
        """
        ディレクトリからインデックスを構築

        Args:
            photos_dir: フル解像度画像のディレクトリ
            thumbs_dir: サムネイルのディレクトリ（存在しなくてもよい）
            image_extensions: 対象拡張子 (Noneの場合は設定から取得)

        Raises:
            FileNotFoundError: photos_dir が存在しない場合
        """
        scanner = DirectoryScanner(photos_dir, image_extensions)
        photo_paths = scanner.scan()
        thumb_names = set(list_file_names(thumbs_dir))

        entries: Dict[str, GalleryEntry] = {}
        for path in photo_paths:
            name = os.path.basename(path)
            thumb = os.path.join(thumbs_dir, name) if name in thumb_names else None
            entries[name] = GalleryEntry(name, path, thumb)

        orphans = sorted(name for name in thumb_names
                         if name not in entries and scanner.is_supported(name))

        index = cls(entries, orphans)
        logger.debug(
            f"Gallery index built: {len(entries)} photos, "
            f"{len(index.missing_thumbnails())} without thumbnail, {len(orphans)} orphans"
        )
        return index

    def get(self, name: str) -> Optional[GalleryEntry]:
        """ファイル名で項目を取得（存在しない場合はNone）"""
        return self._entries.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[GalleryEntry]:
        for name in sorted(self._entries):
            yield self._entries[name]

    def missing_thumbnails(self) -> List[str]:
        """サムネイルがなくフォールバックする画像のファイル名"""
        return [entry.name for entry in self if not entry.has_thumbnail]

    def orphan_thumbnails(self) -> List[str]:
        """対応するフル解像度画像がないサムネイルのファイル名"""
        return list(self._orphans)
