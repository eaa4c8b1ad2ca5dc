"""
ユーティリティモジュールの初期化ファイル

共通のユーティリティ機能をエクスポートします。
"""
# ロガーをエクスポート
from .logger import logger, initialize_file_logging, enable_debug_logging

# 設定をエクスポート
from .config import (
    get_config, load_config, reset_config, Config, configure_vips, normalize_extension
)

# メモリ監視をエクスポート
from .memory_monitor import MemoryMonitor, format_memory_size
