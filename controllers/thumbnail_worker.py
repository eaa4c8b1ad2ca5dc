"""
サムネイル生成ワーカーモジュール

1枚のソース画像をデコードし、指定幅に縮小して非可逆形式で再圧縮し、
出力ディレクトリに同じファイル名で書き出すワーカークラスを提供します。
libvipsが利用可能な場合はlibvipsを使い、利用できない・失敗した場合はPILで処理します。
"""
import os
import time
import tempfile
from io import BytesIO
from typing import Tuple, Optional, Dict, Any

from PIL import Image, ImageOps

from .workers import BaseWorker, CancellationError
from utils import logger, get_config

# libvipsの環境変数はインポート前に設定する必要がある
get_config().configure_vips()

# libvipsをインポート（オプション）
try:
    import pyvips
    HAS_VIPS = True
except (ImportError, OSError) as e:
    HAS_VIPS = False
    logger.warning(f"libvips is not available ({e}); thumbnails will be generated with PIL.")

# pyvips.Image.thumbnail に渡す高さ（幅だけで縮小率を決めるための上限値）
VIPS_MAX_COORD = 10000000

# 出力コンテナ
FORMAT_JPEG = "jpeg"
FORMAT_WEBP = "webp"
FORMAT_PNG = "png"

# output_format="source" の場合の拡張子とコンテナの対応
SOURCE_FORMATS = {
    ".jpg": FORMAT_JPEG,
    ".jpeg": FORMAT_JPEG,
    ".webp": FORMAT_WEBP,
    ".png": FORMAT_PNG,
}

def compute_target_size(width: int, height: int, target_width: int) -> Tuple[int, int]:
    """
    出力サイズを計算（拡大はしない）

    Args:
        width: ソース画像の幅
        height: ソース画像の高さ
        target_width: 目標の幅

    Returns:
        Tuple[int, int]: (幅, 高さ)。幅が目標以下の場合は元のサイズ
    """
    if width <= target_width:
        return (width, height)
    return (target_width, max(1, round(height * target_width / width)))

class ThumbnailWorker(BaseWorker):
    """
    サムネイル生成ワーカークラス

    ソース1ファイル分の処理（デコード → 向き補正 → 縮小 → 再圧縮 → 書き出し）を行います。
    書き出しは一時ファイル経由で行い、失敗やキャンセル時に不完全なファイルを残しません。
    """
    # 生成エンジンタイプ
    ENGINE_VIPS = "vips"
    ENGINE_PIL = "pil"

    DEFAULT_TARGET_WIDTH = 800
    DEFAULT_QUALITY = 80

    def __init__(self, source_path: str, dest_dir: str, target_width: int = None,
                 quality: int = None, output_format: str = None, engine: str = None,
                 worker_id: str = None):
        """
        初期化

        Args:
            source_path: ソース画像のパス
            dest_dir: 出力ディレクトリ
            target_width: 出力幅 (Noneの場合は設定から取得)
            quality: 圧縮品質 1-100 (Noneの場合は設定から取得)
            output_format: "jpeg" または "source" (Noneの場合は設定から取得)
            engine: "auto", "vips", "pil" (Noneの場合は設定から取得)
            worker_id: ワーカーの識別子（オプション）
        """
        self.file_name = os.path.basename(source_path)
        super().__init__(worker_id or f"thumb_{self.file_name}")

        self.source_path = source_path
        self.dest_dir = dest_dir
        self.output_path = os.path.join(dest_dir, self.file_name)

        config = get_config()
        gen_config = config.get("thumbnails", {})
        self.target_width = target_width or gen_config.get("target_width", self.DEFAULT_TARGET_WIDTH)
        self.quality = quality or gen_config.get("quality", self.DEFAULT_QUALITY)
        self.output_format = output_format or gen_config.get("output_format", FORMAT_JPEG)
        self.engine = engine or gen_config.get("engine", "auto")
        self.auto_orient = gen_config.get("auto_orient", True)
        self.progressive = gen_config.get("progressive", True)
        self.strip_metadata = gen_config.get("strip_metadata", True)
        self.fallback_to_pil = gen_config.get("fallback_to_pil", True)

        # 画像情報
        self.source_size: Tuple[int, int] = (0, 0)
        self.output_size: Tuple[int, int] = (0, 0)
        self.engine_used = ""

    def _determine_engine(self) -> str:
        """使用するエンジンを決定"""
        if self.engine == self.ENGINE_PIL:
            return self.ENGINE_PIL
        if self.engine == self.ENGINE_VIPS and not HAS_VIPS:
            logger.warning(f"libvips requested but unavailable, using PIL for {self.file_name}")
        return self.ENGINE_VIPS if HAS_VIPS else self.ENGINE_PIL

    def _output_container(self) -> str:
        """出力コンテナを決定（ファイル名は常にソースと同じ）"""
        if self.output_format == "source":
            ext = os.path.splitext(self.file_name)[1].lower()
            return SOURCE_FORMATS.get(ext, FORMAT_JPEG)
        return FORMAT_JPEG

    def work(self) -> Dict[str, Any]:
        """
        サムネイルを生成して書き出す

        Returns:
            Dict[str, Any]: 処理した画像の情報（get_image_info() と同じ）

        Raises:
            CancellationError: 書き出し前にキャンセルされた場合
            Exception: デコード・エンコード・書き出しに失敗した場合
        """
        start_time = time.time()
        self.check_cancelled()

        container = self._output_container()
        engine = self._determine_engine()

        try:
            if engine == self.ENGINE_VIPS:
                data = self._generate_with_vips(container)
            else:
                data = self._generate_with_pil(container)
        except CancellationError:
            raise
        except Exception as e:
            if engine != self.ENGINE_VIPS or not self.fallback_to_pil:
                raise
            logger.warning(f"libvips failed for {self.file_name} ({e}), retrying with PIL")
            self.check_cancelled()
            data = self._generate_with_pil(container)

        # 書き出し前の最後のキャンセルチェック
        self.check_cancelled()

        self._write_output(data)

        elapsed_time = time.time() - start_time
        logger.debug(
            f"Thumbnail written: {self.output_path}, "
            f"{self.source_size[0]}x{self.source_size[1]} -> {self.output_size[0]}x{self.output_size[1]}, "
            f"engine={self.engine_used}, format={container}, {len(data)} bytes, {elapsed_time:.3f}s"
        )

        info = self.get_image_info()
        info["format"] = container
        info["bytes"] = len(data)
        return info

    def _generate_with_vips(self, container: str) -> bytes:
        """libvipsでサムネイルを生成し、エンコード済みのバイト列を返す"""
        self.engine_used = self.ENGINE_VIPS

        # ヘッダーのみ読み込み（ピクセルは遅延評価）
        header = pyvips.Image.new_from_file(self.source_path)
        self.source_size = (header.width, header.height)

        self.check_cancelled()

        # size=DOWN で拡大を防ぎ、幅のみで縮小率を決める
        image = pyvips.Image.thumbnail(
            self.source_path,
            self.target_width,
            height=VIPS_MAX_COORD,
            size=pyvips.enums.Size.DOWN,
            no_rotate=not self.auto_orient,
        )

        if image.interpretation not in ("srgb", "b-w"):
            image = image.colourspace("srgb")

        self.check_cancelled()

        if container == FORMAT_JPEG:
            if image.hasalpha():
                image = image.flatten(background=[255] * (image.bands - 1))
            options = {"Q": self.quality, "optimize_coding": True}
            if self.progressive:
                options["interlace"] = True
            if self.strip_metadata:
                options["strip"] = True
            data = image.jpegsave_buffer(**options)
        elif container == FORMAT_WEBP:
            data = image.webpsave_buffer(Q=self.quality, strip=self.strip_metadata)
        else:
            data = image.pngsave_buffer(compression=9, strip=self.strip_metadata)

        self.output_size = (image.width, image.height)
        return data

    def _generate_with_pil(self, container: str) -> bytes:
        """PILでサムネイルを生成し、エンコード済みのバイト列を返す"""
        self.engine_used = self.ENGINE_PIL

        with Image.open(self.source_path) as source:
            self.source_size = source.size
            icc_profile = source.info.get("icc_profile")

            image = ImageOps.exif_transpose(source) if self.auto_orient else source
            exif = image.getexif()

            self.check_cancelled()

            new_size = compute_target_size(image.width, image.height, self.target_width)
            if new_size != image.size:
                image = image.resize(new_size, Image.Resampling.LANCZOS)
            else:
                image.load()

            self.check_cancelled()

            save_options: Dict[str, Any] = {}
            if not self.strip_metadata:
                if icc_profile:
                    save_options["icc_profile"] = icc_profile
                if exif and container != FORMAT_PNG:
                    save_options["exif"] = exif.tobytes()

            buffer = BytesIO()
            if container == FORMAT_JPEG:
                image = self._flatten_for_jpeg(image)
                image.save(buffer, "JPEG", quality=self.quality, optimize=True,
                           progressive=self.progressive, **save_options)
            elif container == FORMAT_WEBP:
                image.save(buffer, "WEBP", quality=self.quality, method=6, **save_options)
            else:
                image.save(buffer, "PNG", optimize=True, **save_options)

            self.output_size = image.size
            return buffer.getvalue()

    @staticmethod
    def _flatten_for_jpeg(image: Image.Image) -> Image.Image:
        """JPEGで保存できるモード（RGB/L）に変換し、透過部分は白で塗りつぶす"""
        if image.mode == "P":
            image = image.convert("RGBA" if "transparency" in image.info else "RGB")

        if image.mode in ("RGBA", "LA"):
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image.convert("RGBA"), mask=image.getchannel("A"))
            return background

        if image.mode not in ("RGB", "L"):
            return image.convert("RGB")
        return image

    def _write_output(self, data: bytes) -> None:
        """一時ファイルに書き出してから出力パスに置き換える（既存ファイルは上書き）"""
        fd, temp_path = tempfile.mkstemp(
            prefix=f".{self.file_name}.", suffix=".tmp", dir=self.dest_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(temp_path, self.output_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def get_image_info(self) -> Dict[str, Any]:
        """
        処理した画像の情報を取得

        Returns:
            Dict[str, Any]: 画像情報を含む辞書
        """
        return {
            "name": self.file_name,
            "source_path": self.source_path,
            "output_path": self.output_path,
            "source_size": self.source_size,
            "output_size": self.output_size,
            "engine": self.engine_used,
        }
