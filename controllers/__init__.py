"""
コントローラーモジュールの初期化ファイル

ディレクトリのスキャン、サムネイル生成ワーカー、バッチ処理を担当するクラスを提供します。
"""
from .workers import BaseWorker, CancellationError
from .directory_scanner import DirectoryScanner
from .thumbnail_worker import ThumbnailWorker, compute_target_size
from .batch_processor import BatchProcessor

__all__ = [
    'BaseWorker',
    'CancellationError',
    'DirectoryScanner',
    'ThumbnailWorker',
    'compute_target_size',
    'BatchProcessor',
]
