"""
ギャラリーインデックスと撮影情報のテストスクリプト
"""
import os
import unittest
import tempfile
import shutil
from io import BytesIO

from PIL import Image, TiffImagePlugin

import sys
# プロジェクトルートディレクトリをパスに追加
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from utils import load_config
from models.gallery_index import GalleryIndex, GalleryEntry
from models.exif_metadata import (
    read_exif_metadata, read_exif_metadata_from_file,
    format_fnumber, format_exposure_time, format_iso, format_capture_date
)

class TestGalleryIndex(unittest.TestCase):
    """GalleryIndexのテストクラス"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="test_gallery_index_")
        load_config(os.path.join(self.temp_dir, "config.json"))
        self.photos_dir = os.path.join(self.temp_dir, "photos")
        self.thumbs_dir = os.path.join(self.temp_dir, "thumbnails")
        os.makedirs(self.photos_dir)
        os.makedirs(self.thumbs_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _touch(self, directory, *names):
        for name in names:
            with open(os.path.join(directory, name), "wb") as f:
                f.write(b"x")

    def test_thumbnail_falls_back_to_full(self):
        """サムネイルがない画像はフル解像度画像にフォールバックすることを確認"""
        self._touch(self.photos_dir, "b.jpg", "a.png", "readme.md")
        self._touch(self.thumbs_dir, "a.png")

        index = GalleryIndex.build(self.photos_dir, self.thumbs_dir)

        self.assertEqual(len(index), 2)
        self.assertNotIn("readme.md", index)
        a = index.get("a.png")
        self.assertTrue(a.has_thumbnail)
        self.assertEqual(a.thumb, os.path.join(self.thumbs_dir, "a.png"))
        b = index.get("b.jpg")
        self.assertFalse(b.has_thumbnail)
        self.assertEqual(b.thumb, b.full)
        self.assertEqual(index.missing_thumbnails(), ["b.jpg"])
        self.assertIsNone(index.get("c.jpg"))

    def test_iteration_is_sorted(self):
        self._touch(self.photos_dir, "c.jpg", "a.jpg", "b.webp")

        index = GalleryIndex.build(self.photos_dir, self.thumbs_dir)

        self.assertEqual([entry.name for entry in index], ["a.jpg", "b.webp", "c.jpg"])

    def test_orphan_thumbnails(self):
        """対応する画像がないサムネイルが検出されることを確認"""
        self._touch(self.photos_dir, "a.jpg")
        self._touch(self.thumbs_dir, "a.jpg", "deleted.jpg", ".DS_Store")

        index = GalleryIndex.build(self.photos_dir, self.thumbs_dir)

        self.assertEqual(index.orphan_thumbnails(), ["deleted.jpg"])
        self.assertEqual(index.missing_thumbnails(), [])

    def test_missing_thumbnail_directory(self):
        self._touch(self.photos_dir, "a.jpg")

        index = GalleryIndex.build(self.photos_dir, os.path.join(self.temp_dir, "none"))

        self.assertEqual(index.missing_thumbnails(), ["a.jpg"])

    def test_entry_to_dict(self):
        entry = GalleryEntry("a.jpg", "/photos/a.jpg")
        self.assertEqual(entry.to_dict(), {
            "name": "a.jpg",
            "full": "/photos/a.jpg",
            "thumb": "/photos/a.jpg",
            "has_thumbnail": False,
        })

class TestExifMetadata(unittest.TestCase):
    """撮影情報の取得と整形のテストクラス"""

    def test_format_fnumber(self):
        self.assertEqual(format_fnumber(2.8), "f/2.8")
        self.assertEqual(format_fnumber((16, 10)), "f/1.6")
        self.assertEqual(format_fnumber(8), "f/8")
        self.assertIsNone(format_fnumber(None))
        self.assertIsNone(format_fnumber((1, 0)))

    def test_format_exposure_time(self):
        self.assertEqual(format_exposure_time(0.004), "1/250s")
        self.assertEqual(format_exposure_time((1, 60)), "1/60s")
        self.assertEqual(format_exposure_time(2), "2s")
        self.assertEqual(format_exposure_time(1.5), "1.5s")
        self.assertIsNone(format_exposure_time(0))

    def test_format_iso(self):
        self.assertEqual(format_iso(400), "400")
        self.assertEqual(format_iso((800, 0)), "800")
        self.assertIsNone(format_iso(None))
        self.assertIsNone(format_iso("abc"))

    def test_format_capture_date(self):
        self.assertEqual(format_capture_date("2024:03:05 10:00:00"), "Mar 5, 2024")
        self.assertEqual(format_capture_date(b"2023:12:31 23:59:59"), "Dec 31, 2023")
        self.assertIsNone(format_capture_date("    "))
        self.assertIsNone(format_capture_date("0000:00:00 00:00:00"))

    def _jpeg_with_exif(self):
        exif = Image.Exif()
        exif[0x8827] = 400
        exif[0x829D] = TiffImagePlugin.IFDRational(28, 10)
        exif[0x829A] = TiffImagePlugin.IFDRational(1, 250)
        exif[0x9003] = "2024:03:05 10:00:00"
        buffer = BytesIO()
        Image.new("RGB", (64, 48), (1, 2, 3)).save(buffer, "JPEG", exif=exif.tobytes())
        return buffer.getvalue()

    def test_read_exif_metadata(self):
        """画像のバイト列から撮影情報が取得できることを確認"""
        metadata = read_exif_metadata(self._jpeg_with_exif())

        self.assertEqual(metadata, {
            "iso": "400",
            "fstop": "f/2.8",
            "shutter": "1/250s",
            "date": "Mar 5, 2024",
        })

    def test_missing_metadata_is_none(self):
        """撮影情報がない場合は全ての項目がNoneになることを確認"""
        buffer = BytesIO()
        Image.new("RGB", (10, 10)).save(buffer, "PNG")

        for data in (buffer.getvalue(), b"not an image", b""):
            metadata = read_exif_metadata(data)
            self.assertEqual(set(metadata), {"iso", "fstop", "shutter", "date"})
            self.assertTrue(all(value is None for value in metadata.values()))

    def test_read_from_file(self):
        temp_dir = tempfile.mkdtemp(prefix="test_exif_")
        try:
            path = os.path.join(temp_dir, "photo.jpg")
            with open(path, "wb") as f:
                f.write(self._jpeg_with_exif())

            self.assertEqual(read_exif_metadata_from_file(path)["fstop"], "f/2.8")
            missing = read_exif_metadata_from_file(os.path.join(temp_dir, "none.jpg"))
            self.assertIsNone(missing["iso"])
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

if __name__ == '__main__':
    unittest.main()
