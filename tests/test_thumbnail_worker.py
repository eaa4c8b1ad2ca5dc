"""
ThumbnailWorkerとDirectoryScannerのテストスクリプト

1ファイル分のサムネイル生成とソースディレクトリのスキャンをテストします。
"""
import os
import unittest
import tempfile
import shutil

from PIL import Image
from PySide6.QtCore import QCoreApplication, Qt

import sys
# プロジェクトルートディレクトリをパスに追加
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from utils import load_config
from controllers.directory_scanner import DirectoryScanner, list_file_names
from controllers.thumbnail_worker import ThumbnailWorker, compute_target_size
from controllers.workers import CancellationError

# アプリケーションインスタンスを作成（Qtの要件）
app = QCoreApplication.instance() or QCoreApplication([])

class TestComputeTargetSize(unittest.TestCase):
    """出力サイズ計算のテストクラス"""

    def test_wider_than_target(self):
        self.assertEqual(compute_target_size(1600, 1200, 800), (800, 600))
        self.assertEqual(compute_target_size(1000, 333, 800), (800, 266))

    def test_not_wider_than_target(self):
        self.assertEqual(compute_target_size(800, 1200, 800), (800, 1200))
        self.assertEqual(compute_target_size(10, 10, 800), (10, 10))

    def test_height_never_zero(self):
        self.assertEqual(compute_target_size(10000, 2, 800), (800, 1))

class TestThumbnailWorker(unittest.TestCase):
    """ThumbnailWorkerのテストクラス"""

    def setUp(self):
        """テスト前の準備"""
        self.temp_dir = tempfile.mkdtemp(prefix="test_thumbnail_worker_")
        load_config(os.path.join(self.temp_dir, "config.json"))
        self.dest_dir = os.path.join(self.temp_dir, "thumbs")
        os.makedirs(self.dest_dir)

        self.image_path = os.path.join(self.temp_dir, "photo.jpg")
        Image.new("RGB", (1200, 800), (90, 140, 200)).save(self.image_path, "JPEG", quality=95)

    def tearDown(self):
        """テスト後のクリーンアップ"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_work_writes_thumbnail(self):
        """サムネイルが同じファイル名で書き出されることを確認"""
        worker = ThumbnailWorker(self.image_path, self.dest_dir, target_width=600,
                                 quality=80, engine="pil")
        info = worker.work()

        output_path = os.path.join(self.dest_dir, "photo.jpg")
        self.assertEqual(info["output_path"], output_path)
        self.assertEqual(info["source_size"], (1200, 800))
        self.assertEqual(info["output_size"], (600, 400))
        self.assertEqual(info["engine"], ThumbnailWorker.ENGINE_PIL)
        self.assertEqual(info["bytes"], os.path.getsize(output_path))
        with Image.open(output_path) as thumb:
            self.assertEqual(thumb.size, (600, 400))
            self.assertEqual(thumb.format, "JPEG")

    def test_default_engine_produces_same_geometry(self):
        """既定のエンジン（libvipsまたはPIL）でも同じサイズになることを確認"""
        worker = ThumbnailWorker(self.image_path, self.dest_dir, target_width=600)
        info = worker.work()

        self.assertIn(info["engine"], (ThumbnailWorker.ENGINE_VIPS, ThumbnailWorker.ENGINE_PIL))
        with Image.open(info["output_path"]) as thumb:
            self.assertEqual(thumb.width, 600)
            self.assertLessEqual(abs(thumb.height - 400), 1)

    def test_cancelled_worker_writes_nothing(self):
        """キャンセルされたワーカーは何も書き出さないことを確認"""
        worker = ThumbnailWorker(self.image_path, self.dest_dir, engine="pil")
        self.assertTrue(worker.cancel())
        self.assertFalse(worker.cancel(), "二重キャンセルはFalseを返すべきです")

        with self.assertRaises(CancellationError):
            worker.work()
        self.assertEqual(os.listdir(self.dest_dir), [])

    def test_run_reports_decode_error(self):
        """デコードできないファイルはerrorシグナルで通知されることを確認"""
        broken_path = os.path.join(self.temp_dir, "broken.png")
        with open(broken_path, "wb") as f:
            f.write(b"\x89PNG garbage")

        results, errors, finished = [], [], []
        worker = ThumbnailWorker(broken_path, self.dest_dir)
        worker.signals.result.connect(lambda info: results.append(info), Qt.DirectConnection)
        worker.signals.error.connect(lambda error: errors.append(error), Qt.DirectConnection)
        worker.signals.finished.connect(lambda: finished.append(True), Qt.DirectConnection)
        worker.run()

        self.assertEqual(results, [])
        self.assertEqual(len(errors), 1)
        self.assertEqual(finished, [True])
        self.assertEqual(os.listdir(self.dest_dir), [], "失敗時にファイルが残っています")

    def test_existing_output_is_overwritten(self):
        """既存の出力ファイルが上書きされることを確認"""
        output_path = os.path.join(self.dest_dir, "photo.jpg")
        with open(output_path, "wb") as f:
            f.write(b"stale")

        ThumbnailWorker(self.image_path, self.dest_dir, engine="pil").work()

        with Image.open(output_path) as thumb:
            self.assertEqual(thumb.size, (800, 533))

class TestDirectoryScanner(unittest.TestCase):
    """DirectoryScannerのテストクラス"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="test_directory_scanner_")
        load_config(os.path.join(self.temp_dir, "config.json"))
        for name in ("b.png", "a.JPG", "c.jpeg", "d.webp", "notes.txt", "raw.cr2", "noext"):
            with open(os.path.join(self.temp_dir, name), "wb") as f:
                f.write(b"x")
        # サブディレクトリは対象外
        os.makedirs(os.path.join(self.temp_dir, "nested.jpg"))
        with open(os.path.join(self.temp_dir, "nested.jpg", "inner.jpg"), "wb") as f:
            f.write(b"x")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_scan_filters_by_extension(self):
        """対応拡張子のファイルのみがファイル名順に返されることを確認"""
        scanner = DirectoryScanner(self.temp_dir)
        paths = scanner.scan()

        self.assertEqual([os.path.basename(p) for p in paths],
                         ["a.JPG", "b.png", "c.jpeg", "d.webp"])
        stats = scanner.get_stats()
        self.assertEqual(stats["total_images_found"], 4)
        self.assertEqual(sorted(stats["skipped_files"]), ["noext", "notes.txt", "raw.cr2"])

    def test_custom_extensions_are_normalized(self):
        """拡張子の指定はドットの有無や大文字小文字を問わないことを確認"""
        for extensions in ([".CR2"], ["cr2"], [" Cr2 "]):
            scanner = DirectoryScanner(self.temp_dir, extensions)
            self.assertEqual([os.path.basename(p) for p in scanner.scan()], ["raw.cr2"])
            self.assertTrue(scanner.is_supported("IMG_0001.CR2"))

    def test_missing_directory(self):
        scanner = DirectoryScanner(os.path.join(self.temp_dir, "missing"))
        with self.assertRaises(FileNotFoundError):
            scanner.scan()

    def test_list_file_names(self):
        names = list_file_names(self.temp_dir)
        self.assertIn("notes.txt", names)
        self.assertNotIn("nested.jpg", names)
        self.assertEqual(list_file_names(os.path.join(self.temp_dir, "missing")), [])

if __name__ == '__main__':
    unittest.main()
