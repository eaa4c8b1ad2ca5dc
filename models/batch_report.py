"""
バッチ結果モジュール

1回のバッチ実行における各ファイルの結果（成功・失敗・キャンセル）を集計します。
"""
import threading
from typing import Dict, List, Optional, Any

# 終了ステータス
EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_CANCELLED = 130

class BatchReport:
    """
    バッチ処理結果の集計クラス

    ワーカースレッドから同時に記録されるため、更新はロックで保護します。
    1つのファイル名に対して記録される結果は最初の1件のみです。
    """

    def __init__(self, names: Optional[List[str]] = None):
        """
        初期化

        Args:
            names: 処理対象のファイル名のリスト
        """
        self._lock = threading.Lock()
        self.names: List[str] = list(names or [])
        self.succeeded: Dict[str, Dict[str, Any]] = {}  # ファイル名 → 画像情報
        self.failed: Dict[str, str] = {}  # ファイル名 → エラーメッセージ
        self.cancelled: List[str] = []
        self.was_cancelled = False
        self.elapsed = 0.0

    @property
    def total(self) -> int:
        return len(self.names)

    def _is_resolved(self, name: str) -> bool:
        return name in self.succeeded or name in self.failed or name in self.cancelled

    def record_success(self, name: str, info: Optional[Dict[str, Any]] = None) -> bool:
        """成功を記録（既に結果がある場合はFalse）"""
        with self._lock:
            if self._is_resolved(name):
                return False
            self.succeeded[name] = info or {}
            return True

    def record_failure(self, name: str, error: str) -> bool:
        """失敗を記録（既に結果がある場合はFalse）"""
        with self._lock:
            if self._is_resolved(name):
                return False
            self.failed[name] = error
            return True

    def record_cancelled(self, name: str) -> bool:
        """キャンセルを記録（既に結果がある場合はFalse）"""
        with self._lock:
            if self._is_resolved(name):
                return False
            self.cancelled.append(name)
            return True

    def unresolved(self) -> List[str]:
        """まだ結果が記録されていないファイル名"""
        with self._lock:
            return [name for name in self.names if not self._is_resolved(name)]

    @property
    def resolved_count(self) -> int:
        with self._lock:
            return len(self.succeeded) + len(self.failed) + len(self.cancelled)

    @property
    def exit_code(self) -> int:
        """
        呼び出し元向けの終了ステータス

        Returns:
            int: 全て成功なら0、失敗があれば1、キャンセルされた場合は130
        """
        if self.was_cancelled:
            return EXIT_CANCELLED
        if self.failed:
            return EXIT_PARTIAL_FAILURE
        return EXIT_OK

    def summary(self) -> str:
        """最終ステータス行"""
        parts = [f"{len(self.succeeded)}/{self.total} thumbnails created"]
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        if self.cancelled:
            parts.append(f"{len(self.cancelled)} cancelled")
        return ", ".join(parts) + f" in {self.elapsed:.2f}s"

    def to_dict(self) -> Dict[str, Any]:
        """集計結果を辞書で取得"""
        with self._lock:
            return {
                "total": self.total,
                "succeeded": sorted(self.succeeded),
                "failed": dict(self.failed),
                "cancelled": sorted(self.cancelled),
                "elapsed": self.elapsed,
                "exit_code": self.exit_code,
            }
