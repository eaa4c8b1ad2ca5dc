"""
ワーカーモジュール

スレッドプール上で1単位の処理を行うワーカークラスの基盤を提供します。
"""
import time
from typing import Optional, Any

from PySide6.QtCore import QObject, Signal, Slot, QRunnable

from utils import logger

class WorkerSignals(QObject):
    """
    ワーカーが発行するシグナルを定義するクラス

    QRunnableはQObjectを継承していないため、このクラスを通じてシグナルを発行します。
    シグナルはワーカースレッドから発行されるため、イベントループのない
    CLIから受け取る場合は Qt.DirectConnection で接続してください。
    """
    finished = Signal()  # ワーカーが終了した（成功・エラー・キャンセルのいずれでも）
    error = Signal(str)  # エラーメッセージ
    result = Signal(object)  # 処理結果

class CancellationError(Exception):
    """ワーカーのキャンセルを示す例外"""
    pass

class BaseWorker(QRunnable):
    """
    基本ワーカークラス

    処理のキャンセルとエラー処理の共通機能を提供します。
    work() 内で発生した例外は run() が捕捉してerrorシグナルに変換するため、
    スレッドプールへは伝播しません。
    """

    def __init__(self, worker_id: Optional[str] = None):
        """
        初期化

        Args:
            worker_id: ワーカーの識別子（省略時は自動生成）
        """
        super().__init__()
        # インスタンスの寿命はBatchProcessorが管理する（clear()後も参照できるように）
        self.setAutoDelete(False)
        self.signals = WorkerSignals()
        self._is_cancelled = False
        self._start_time = 0.0
        self.worker_id = worker_id or f"worker_{id(self)}"

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    def cancel(self) -> bool:
        """
        処理をキャンセル

        Returns:
            bool: キャンセルフラグが設定された場合はTrue, 既にキャンセル済みの場合はFalse
        """
        if self._is_cancelled:
            return False

        logger.debug(f"Cancellation requested for worker: {self.worker_id}")
        self._is_cancelled = True
        return True

    def check_cancelled(self):
        """
        キャンセル状態をチェックし、キャンセルされていた場合は例外を発生させる

        Raises:
            CancellationError: キャンセルされた場合
        """
        if self._is_cancelled:
            raise CancellationError(f"Worker {self.worker_id} was cancelled.")

    @Slot()
    def run(self) -> None:
        """ワーカーの実行スレッドエントリポイント"""
        self._start_time = time.time()
        logger.debug(f"Worker '{self.worker_id}' started.")

        try:
            # 開始前にキャンセルされていないか確認
            self.check_cancelled()

            # work() が戻った時点で副作用は完了しているため、結果は必ず通知する
            result = self.work()
            self.signals.result.emit(result)

        except CancellationError:
            logger.debug(f"Worker '{self.worker_id}' cancelled.")

        except Exception as e:
            error_msg = f"{type(e).__name__}: {e}"
            logger.debug(f"Error details for {self.worker_id}:", exc_info=True)
            self.signals.error.emit(error_msg)

        finally:
            elapsed = time.time() - self._start_time
            logger.debug(f"Worker '{self.worker_id}' finished. Elapsed: {elapsed:.3f}s")

            # 成功・エラー・キャンセルに関わらず発行
            self.signals.finished.emit()

    def work(self) -> Any:
        """
        実際の処理を行うメソッド（サブクラスでオーバーライド）

        処理中は定期的に check_cancelled() を呼び出して、キャンセル要求をチェックしてください。
        """
        raise NotImplementedError("Subclasses must implement the 'work' method.")
