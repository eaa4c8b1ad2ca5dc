"""
メモリモニターモジュール

大量の画像を処理するバッチ中のメモリ使用状況を監視および最適化するためのユーティリティを提供します。
"""
import os
import gc
import psutil
from .logger import logger

class MemoryMonitor:
    """
    メモリ使用状況を監視し、最適化するためのクラス

    デコード済みの画像バッファは大きいため、一定枚数ごとに使用率を確認し、
    閾値を超えていればガベージコレクションを実行します。
    """

    def __init__(self, memory_threshold=80):
        """
        初期化

        Args:
            memory_threshold (int): プロセスのメモリ使用率の閾値（%）
        """
        self.memory_threshold = memory_threshold
        self.process = psutil.Process(os.getpid())
        self.peak_rss = 0
        logger.debug("MemoryMonitor initialized with threshold: %d%%", memory_threshold)

    def get_memory_usage(self):
        """
        現在のメモリ使用状況を取得

        Returns:
            dict: メモリ使用状況の情報
        """
        try:
            memory_info = self.process.memory_info()
            system_memory = psutil.virtual_memory()
        except psutil.Error as e:
            logger.error("Error getting memory usage: %s", e)
            return {
                'process_rss': 0,
                'process_percent': 0.0,
                'system_percent': 0.0,
            }

        self.peak_rss = max(self.peak_rss, memory_info.rss)
        result = {
            'process_rss': memory_info.rss,  # プロセスの物理メモリ使用量（バイト）
            'process_percent': self.process.memory_percent(),  # プロセスのメモリ使用率（%）
            'system_percent': system_memory.percent,  # システムのメモリ使用率（%）
        }

        logger.debug(
            "Memory usage - Process: %.1f%%, System: %.1f%%",
            result['process_percent'],
            result['system_percent']
        )
        return result

    def optimize_if_needed(self):
        """
        必要に応じてメモリ最適化を実行

        Returns:
            bool: 最適化が実行された場合True
        """
        memory_usage = self.get_memory_usage()

        if memory_usage['process_percent'] > self.memory_threshold:
            logger.info(
                "Memory usage exceeds threshold (%.1f%% > %d%%). Optimizing memory...",
                memory_usage['process_percent'],
                self.memory_threshold
            )
            self.optimize_memory()
            return True

        return False

    def optimize_memory(self):
        """未使用オブジェクトを回収する"""
        before = self.get_memory_usage()['process_rss']
        collected = gc.collect()
        after = self.get_memory_usage()['process_rss']
        saved = before - after if before > after else 0

        logger.info(
            "Memory optimization completed: %d objects collected, saved %s",
            collected, format_memory_size(saved)
        )

def format_memory_size(size_bytes):
    """
    メモリサイズを読みやすい形式に変換

    Args:
        size_bytes (int): バイト単位のサイズ

    Returns:
        str: 例 "12.50 MB"
    """
    size = float(size_bytes)
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0 or unit == 'TB':
            break
        size /= 1024.0

    return f"{size:.2f} {unit}"
