"""
設定管理モジュール

サムネイル生成ツール全体の設定を一元管理するためのクラスとユーティリティを提供します。
"""
import os
import copy
import json
from typing import Any, Dict, Optional, List

from .logger import logger

class Config:
    """アプリケーション設定を管理するクラス"""

    # デフォルト設定値
    DEFAULT_CONFIG = {
        # アプリケーション全般
        "app": {
            "name": "portfolio-thumbnails",
            "version": "0.1.0",
            "data_dir": "",  # 初期化時に設定される
            "debug_mode": False,
            "file_logging": False,  # data_dir/logs にログを書き出すか
        },

        # 入出力ディレクトリ
        "paths": {
            "source_dir": "./src/photos",
            "dest_dir": "./src/thumbnails",
        },

        # サムネイル関連
        "thumbnails": {
            "target_width": 800,   # 出力幅（これより小さい画像は拡大しない）
            "quality": 80,         # 非可逆圧縮の品質（1-100）
            # 対応している画像ファイル拡張子
            "image_extensions": [".jpg", ".jpeg", ".png", ".webp"],
            # "jpeg": 常にJPEGで再圧縮 / "source": 拡張子に合わせた形式で保存
            "output_format": "jpeg",
            "auto_orient": True,      # EXIFの向き情報を適用する
            "progressive": True,      # プログレッシブJPEG
            "strip_metadata": True,   # メタデータを除去するか（サイズ削減）
            "engine": "auto",         # 'auto', 'vips', 'pil'
            "fallback_to_pil": True,  # libvipsが失敗した場合にPILにフォールバック
        },

        # ワーカー関連
        "workers": {
            "max_concurrent": 4,   # 同時に処理する画像の最大数
            "poll_interval_ms": 200,  # 完了待機時のポーリング間隔（ミリ秒）
        },

        # メモリ管理
        "memory": {
            "threshold_percent": 80,  # 最適化を開始するメモリ使用率閾値
            "auto_optimize": True,    # 自動メモリ最適化
            "check_every": 20,        # 何枚ごとにメモリをチェックするか
        },

        # パフォーマンス設定
        "performance": {
            "vips": {
                "enable": True,           # libvipsを有効化
                "concurrency": 0,         # 0=自動、N=スレッド数
                "cache_max_mb": 256,      # キャッシュサイズ（MB）
                "cache_max_files": 100,   # キャッシュするファイル数
            },
        },
    }

    def __init__(self, config_file: Optional[str] = None):
        """
        設定を初期化

        Args:
            config_file: 設定ファイルのパス（省略時はデフォルト位置）
        """
        # デフォルト設定をコピー
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)

        # アプリケーションデータディレクトリ（必要になるまで作成しない）
        self._app_data_dir = os.path.join(os.path.expanduser("~"), ".portfolio_thumbnails")

        # デフォルト設定ファイルのパス
        self._config_file = config_file or os.path.join(self._app_data_dir, "config.json")

        # 動的パスを設定
        self._config["app"]["data_dir"] = self._app_data_dir

        # 設定ファイルから読み込み
        self.load()

        logger.debug(f"Config initialized: {self._config_file}")

    @property
    def config_file(self) -> str:
        return self._config_file

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        設定値を取得

        Args:
            key_path: ドット区切りのキーパス (例: "thumbnails.quality")
            default: キーが存在しない場合のデフォルト値

        Returns:
            設定値、またはデフォルト値
        """
        current = self._config
        for part in key_path.split('.'):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def set(self, key_path: str, value: Any) -> bool:
        """
        設定値を変更

        Args:
            key_path: ドット区切りのキーパス (例: "workers.max_concurrent")
            value: 新しい設定値

        Returns:
            bool: 成功した場合はTrue
        """
        parts = key_path.split('.')
        current = self._config

        # 最後のキー以外をたどる
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        # 最後のキーに値を設定
        current[parts[-1]] = value
        logger.debug(f"Config updated: {key_path} = {value}")
        return True

    def load(self) -> bool:
        """
        設定ファイルから設定を読み込む

        ファイルが存在しない場合はデフォルト設定のまま使用します。
        壊れたファイルは警告を出して無視します。

        Returns:
            bool: 読み込んだ場合はTrue
        """
        if not os.path.exists(self._config_file):
            logger.debug(f"Config file not found, using defaults: {self._config_file}")
            return False

        try:
            with open(self._config_file, 'r', encoding='utf-8') as f:
                loaded_config = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read config file {self._config_file}: {e}")
            return False

        if not isinstance(loaded_config, dict):
            logger.warning(f"Ignoring config file without a JSON object: {self._config_file}")
            return False

        # 読み込んだ設定を現在の設定にマージ
        self._merge_config(self._config, loaded_config)
        logger.info(f"Loaded config: {self._config_file}")
        return True

    def save(self) -> bool:
        """
        現在の設定をファイルに保存

        Returns:
            bool: 成功した場合はTrue
        """
        try:
            # 設定ファイルのディレクトリが存在するか確認
            config_dir = os.path.dirname(self._config_file)
            if config_dir:
                os.makedirs(config_dir, exist_ok=True)

            # タプルをリストに変換（JSONシリアライズのため）
            config_copy = self._convert_tuples_to_lists(self._config)

            with open(self._config_file, 'w', encoding='utf-8') as f:
                json.dump(config_copy, f, ensure_ascii=False, indent=2)

            logger.info(f"Saved config: {self._config_file}")
            return True
        except OSError as e:
            logger.error(f"Failed to save config file {self._config_file}: {e}")
            return False

    def _convert_tuples_to_lists(self, obj: Any) -> Any:
        """
        オブジェクト内のタプルをリストに変換（JSONシリアライズのため）
        """
        if isinstance(obj, tuple):
            return list(obj)
        elif isinstance(obj, list):
            return [self._convert_tuples_to_lists(item) for item in obj]
        elif isinstance(obj, dict):
            return {key: self._convert_tuples_to_lists(value) for key, value in obj.items()}
        else:
            return obj

    def reset(self) -> None:
        """設定をデフォルト値にリセット（ファイルには書き込まない）"""
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self._config["app"]["data_dir"] = self._app_data_dir
        logger.info("Config reset to defaults")

    def _merge_config(self, target: Dict, source: Dict) -> None:
        """
        設定を再帰的にマージ

        Args:
            target: マージ先の辞書
            source: マージ元の辞書
        """
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                # 両方が辞書の場合は再帰的にマージ
                self._merge_config(target[key], value)
            else:
                # それ以外の場合は値を上書き
                target[key] = value

    def get_supported_extensions(self) -> List[str]:
        """
        サポートされている画像ファイル拡張子のリストを取得

        Returns:
            List[str]: 小文字に正規化された拡張子のリスト（先頭のドット付き）
        """
        extensions = self.get("thumbnails.image_extensions", [])
        return [normalize_extension(ext) for ext in extensions]

    def configure_vips(self) -> None:
        """
        libvipsの設定を適用

        環境変数を通じてlibvipsの動作を設定します。pyvipsのインポート前に呼び出してください。
        """
        vips_config = self.get("performance.vips", {})
        if not vips_config.get("enable", True):
            return

        # スレッドプールサイズを設定
        concurrency = vips_config.get("concurrency", 0)
        os.environ["VIPS_CONCURRENCY"] = str(concurrency)

        # キャッシュサイズを設定
        cache_max_mb = vips_config.get("cache_max_mb", 256)
        os.environ["VIPS_CACHE_MAX"] = str(cache_max_mb)

        # キャッシュするファイル数を設定
        cache_max_files = vips_config.get("cache_max_files", 100)
        os.environ["VIPS_CACHE_MAX_FILES"] = str(cache_max_files)

        # 警告出力の抑制
        os.environ.setdefault("VIPS_WARNING", "0")

        logger.debug(
            f"libvips settings: concurrency={concurrency}, "
            f"cache_max_mb={cache_max_mb}, cache_max_files={cache_max_files}"
        )

def normalize_extension(extension: str) -> str:
    """拡張子を '.jpg' 形式（小文字、先頭ドット付き）に正規化"""
    extension = extension.strip().lower()
    if not extension.startswith('.'):
        extension = '.' + extension
    return extension

# 設定インスタンスのシングルトン
_instance = None

def get_config() -> Config:
    """
    設定インスタンスを取得

    Returns:
        Config: 設定インスタンス
    """
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance

def load_config(config_file: Optional[str] = None) -> Config:
    """指定されたファイルから設定を読み込み直し、シングルトンを置き換える"""
    global _instance
    _instance = Config(config_file)
    return _instance

def reset_config() -> None:
    """設定をデフォルト値にリセット"""
    get_config().reset()

def configure_vips() -> None:
    """libvipsの設定を適用"""
    get_config().configure_vips()

# エクスポートする関数とクラス
__all__ = ['Config', 'get_config', 'load_config', 'reset_config', 'configure_vips',
           'normalize_extension']
