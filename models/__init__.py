"""
モデルモジュールの初期化ファイル

バッチ結果、ギャラリーインデックス、撮影情報のデータ構造を提供します。
"""
from .batch_report import BatchReport, EXIT_OK, EXIT_PARTIAL_FAILURE, EXIT_CANCELLED
from .exif_metadata import read_exif_metadata, read_exif_metadata_from_file
from .gallery_index import GalleryIndex, GalleryEntry

__all__ = [
    'BatchReport',
    'EXIT_OK',
    'EXIT_PARTIAL_FAILURE',
    'EXIT_CANCELLED',
    'read_exif_metadata',
    'read_exif_metadata_from_file',
    'GalleryIndex',
    'GalleryEntry',
]
