"""
バッチ処理モジュール

ソースディレクトリ内の全画像からサムネイルを一括生成するクラスを提供します。
"""
import os
import time
import threading
from typing import List, Optional, Any, Dict

from PySide6.QtCore import QObject, Signal, Qt, QThreadPool

from .directory_scanner import DirectoryScanner
from .thumbnail_worker import ThumbnailWorker
from models.batch_report import BatchReport
from utils import logger, get_config, MemoryMonitor, format_memory_size

class BatchProcessor(QObject):
    """
    サムネイルの一括生成を行うクラス

    各ファイルを独立したワーカーとして専用のQThreadPoolに投入し、
    同時実行数をmax_concurrentで制限します。1ファイルの失敗は他のファイルに影響せず、
    最終結果は全ワーカーの完了を待ってから報告されます。

    シグナルはワーカースレッドから発行されます。イベントループを持たない呼び出し元は
    Qt.DirectConnection で接続してください。
    """
    # シグナル定義
    thumbnail_created = Signal(str, object)  # (file_name, image_info)
    error_occurred = Signal(str, str)  # (file_name, error_message)
    batch_progress = Signal(int, int)  # (resolved_count, total_count)
    batch_completed = Signal(object)  # BatchReport

    def __init__(self, source_dir: str = None, dest_dir: str = None,
                 target_width: int = None, quality: int = None,
                 max_concurrent: int = None, output_format: str = None,
                 engine: str = None, image_extensions: Optional[List[str]] = None):
        """
        初期化

        Args:
            source_dir: ソース画像のディレクトリ (Noneの場合は設定から取得)
            dest_dir: サムネイルの出力ディレクトリ (Noneの場合は設定から取得)
            target_width: 出力幅 (Noneの場合は設定から取得)
            quality: 圧縮品質 1-100 (Noneの場合は設定から取得)
            max_concurrent: 同時に処理するワーカーの最大数 (Noneの場合は設定から取得)
            output_format: "jpeg" または "source" (Noneの場合は設定から取得)
            engine: "auto", "vips", "pil" (Noneの場合は設定から取得)
            image_extensions: 対象拡張子 (Noneの場合は設定から取得)

        Raises:
            ValueError: パラメータが不正な場合
        """
        super().__init__()

        config = get_config()
        if source_dir is None:
            source_dir = config.get("paths.source_dir")
        if dest_dir is None:
            dest_dir = config.get("paths.dest_dir")
        if target_width is None:
            target_width = config.get("thumbnails.target_width", 800)
        if quality is None:
            quality = config.get("thumbnails.quality", 80)
        if max_concurrent is None:
            max_concurrent = config.get("workers.max_concurrent", 4)
        if output_format is None:
            output_format = config.get("thumbnails.output_format", "jpeg")
        if engine is None:
            engine = config.get("thumbnails.engine", "auto")
        if image_extensions is None:
            image_extensions = config.get_supported_extensions()

        if not isinstance(target_width, int) or target_width <= 0:
            raise ValueError(f"target_width must be a positive integer: {target_width!r}")
        if not isinstance(quality, int) or not 1 <= quality <= 100:
            raise ValueError(f"quality must be between 1 and 100: {quality!r}")
        if not isinstance(max_concurrent, int) or max_concurrent <= 0:
            raise ValueError(f"max_concurrent must be a positive integer: {max_concurrent!r}")
        if output_format not in ("jpeg", "source"):
            raise ValueError(f"output_format must be 'jpeg' or 'source': {output_format!r}")
        if engine not in ("auto", "vips", "pil"):
            raise ValueError(f"engine must be 'auto', 'vips' or 'pil': {engine!r}")

        self.source_dir = source_dir
        self.dest_dir = dest_dir
        self.target_width = target_width
        self.quality = quality
        self.max_concurrent = max_concurrent
        self.output_format = output_format
        self.engine = engine
        self.image_extensions = image_extensions
        self.poll_interval_ms = config.get("workers.poll_interval_ms", 200)

        # 同時実行数を制限するための専用スレッドプール
        self.threadpool = QThreadPool()
        self.threadpool.setMaxThreadCount(max_concurrent)

        # 処理状態
        self.workers: Dict[str, ThumbnailWorker] = {}  # file_name → worker
        self.report: Optional[BatchReport] = None
        self.is_processing = False
        self._cancel_requested = False
        self.mutex = threading.RLock()

        # メモリ監視
        self.memory_monitor = None
        if config.get("memory.auto_optimize", True):
            self.memory_monitor = MemoryMonitor(config.get("memory.threshold_percent", 80))
        self.memory_check_every = max(1, config.get("memory.check_every", 20))

        logger.debug(
            f"BatchProcessor initialized: source={source_dir}, dest={dest_dir}, "
            f"width={target_width}, quality={quality}, max_concurrent={max_concurrent}"
        )

    def run(self) -> BatchReport:
        """
        ソースディレクトリをスキャンし、全画像のサムネイルを生成

        Returns:
            BatchReport: 全ワーカーの完了後の集計結果

        Raises:
            FileNotFoundError: ソースディレクトリが存在しない場合
            NotADirectoryError: ソースパスがディレクトリでない場合
            PermissionError: ソースディレクトリを読み取れない場合
            ValueError: ソースと出力が同じディレクトリの場合
        """
        scanner = DirectoryScanner(self.source_dir, self.image_extensions)
        image_paths = scanner.scan()
        return self.process_files(image_paths)

    def process_files(self, image_paths: List[str]) -> BatchReport:
        """
        指定された画像のサムネイルを生成し、全ての完了を待つ

        Args:
            image_paths: 処理する画像パスのリスト

        Returns:
            BatchReport: 集計結果
        """
        if os.path.exists(self.dest_dir) and os.path.exists(self.source_dir) \
                and os.path.samefile(self.source_dir, self.dest_dir):
            raise ValueError(f"Destination must differ from source directory: {self.dest_dir}")

        with self.mutex:
            if self.is_processing:
                raise RuntimeError("Batch processing is already running")
            self.is_processing = True
            self._cancel_requested = False
            self.workers.clear()
            self.report = BatchReport([os.path.basename(path) for path in image_paths])

        start_time = time.time()
        try:
            # 出力ディレクトリを作成（既に存在する場合は何もしない）
            os.makedirs(self.dest_dir, exist_ok=True)

            logger.info(
                f"Generating {self.report.total} thumbnails: {self.source_dir} -> {self.dest_dir} "
                f"(width={self.target_width}, quality={self.quality}, jobs={self.max_concurrent})"
            )
            self.batch_progress.emit(0, self.report.total)

            try:
                self._submit_all(image_paths)
                self._wait_for_all()
            except KeyboardInterrupt:
                logger.warning("Interrupted, cancelling remaining thumbnails...")
                self.cancel()
                self.threadpool.waitForDone()
        finally:
            with self.mutex:
                self.is_processing = False

        return self._finish(time.time() - start_time)

    def _submit_all(self, image_paths: List[str]) -> None:
        """全ファイルのワーカーをスレッドプールに投入"""
        for image_path in image_paths:
            name = os.path.basename(image_path)
            with self.mutex:
                if self._cancel_requested:
                    logger.debug("Cancellation requested, stop submitting workers.")
                    return

                worker = ThumbnailWorker(
                    image_path, self.dest_dir,
                    target_width=self.target_width,
                    quality=self.quality,
                    output_format=self.output_format,
                    engine=self.engine,
                    worker_id=f"batch_{name}",
                )
                # ワーカースレッド上で直接呼び出す（イベントループ不要）
                worker.signals.result.connect(
                    lambda info, name=name: self._on_thumbnail_created(name, info), Qt.DirectConnection)
                worker.signals.error.connect(
                    lambda error, name=name: self._on_worker_error(name, error), Qt.DirectConnection)

                self.workers[name] = worker
                self.threadpool.start(worker)

    def _wait_for_all(self) -> None:
        """
        全ワーカーの完了を待機

        waitForDone() はPythonのシグナルハンドラを止めてしまうため、
        短い間隔で繰り返し待機してCtrl-Cを受け付けます。
        """
        while not self.threadpool.waitForDone(self.poll_interval_ms):
            pass

    def _on_thumbnail_created(self, name: str, info: Dict[str, Any]) -> None:
        """サムネイル作成完了時の処理（ワーカースレッドから呼ばれる）"""
        if not self.report.record_success(name, info):
            return
        self.thumbnail_created.emit(name, info)
        self._on_unit_resolved()

    def _on_worker_error(self, name: str, error: str) -> None:
        """ワーカーエラー時の処理（ワーカースレッドから呼ばれる）"""
        if not self.report.record_failure(name, error):
            return
        logger.error(f"Failed to create thumbnail for {name}: {error}")
        self.error_occurred.emit(name, error)
        self._on_unit_resolved()

    def _on_unit_resolved(self) -> None:
        resolved = self.report.resolved_count
        self.batch_progress.emit(resolved, self.report.total)

        if self.memory_monitor and resolved % self.memory_check_every == 0:
            self.memory_monitor.optimize_if_needed()

    def _finish(self, elapsed: float) -> BatchReport:
        """結果が届かなかったワーカーをキャンセル扱いにして集計を確定"""
        report = self.report
        for name in report.unresolved():
            report.record_cancelled(name)
        report.was_cancelled = self._cancel_requested
        report.elapsed = elapsed

        with self.mutex:
            self.workers.clear()

        log = logger.warning if report.failed or report.cancelled else logger.info
        log(f"Batch finished: {report.summary()}")
        if self.memory_monitor:
            logger.debug(f"Peak memory: {format_memory_size(self.memory_monitor.peak_rss)}")

        self.batch_completed.emit(report)
        return report

    def cancel(self) -> bool:
        """
        処理を中止

        未開始のワーカーはスレッドプールから取り除き、実行中のワーカーには
        次のチェックポイントで停止するよう要求します。任意のスレッドから呼び出せます。

        Returns:
            bool: キャンセルを要求した場合はTrue
        """
        with self.mutex:
            if not self.is_processing or self._cancel_requested:
                return False
            self._cancel_requested = True
            workers = list(self.workers.values())

        # 未開始のワーカーを取り除く
        self.threadpool.clear()
        for worker in workers:
            worker.cancel()

        logger.info(f"Batch cancellation requested: {len(workers)} workers signalled")
        return True

