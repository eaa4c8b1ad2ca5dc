"""
ロギングユーティリティモジュール

サムネイル生成ツール全体で使用される一貫したロギング機能を提供します。
標準出力は進捗表示に使うため、コンソールログは標準エラーに出力します。
"""
import os
import logging
import sys
from logging.handlers import RotatingFileHandler

# ロガーの設定
logger = logging.getLogger('portfolio_thumbnails')

# ログレベルの初期化（デフォルトはINFO）
logger.setLevel(logging.INFO)

# ログフォーマット
formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S')

# コンソールハンドラー
console_handler = logging.StreamHandler(sys.stderr)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(formatter)
logger.addHandler(console_handler)

# ログファイルパスの設定
def initialize_file_logging(log_dir=None):
    """ファイルベースのロギングを初期化する

    Args:
        log_dir (str, optional): ログディレクトリのパス。指定がない場合は、ユーザーのホームディレクトリに作成されます。
    """
    global logger

    # デフォルトのログディレクトリはユーザーのホームディレクトリ
    if log_dir is None:
        log_dir = os.path.join(os.path.expanduser("~"), ".portfolio_thumbnails", "logs")

    # ログディレクトリが存在しない場合は作成
    os.makedirs(log_dir, exist_ok=True)

    log_file = os.path.join(log_dir, "portfolio_thumbnails.log")

    # ローテーティングファイルハンドラー（1MBごとにローテーション、最大5ファイル）
    file_handler = RotatingFileHandler(
        log_file, maxBytes=1024*1024, backupCount=5, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if logger.level <= logging.DEBUG else logging.INFO)
    file_handler.setFormatter(formatter)

    # 既存のファイルハンドラーを削除（再初期化のため）
    for handler in logger.handlers[:]:
        if isinstance(handler, RotatingFileHandler):
            logger.removeHandler(handler)
            handler.close()

    logger.addHandler(file_handler)
    logger.info("File logging initialized: %s", log_file)
    return log_file

def enable_debug_logging():
    """デバッグログを有効化する（ロガーと全てのハンドラーのレベルをDEBUGにする）"""
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.setLevel(logging.DEBUG)

    logger.debug("Debug logging enabled")

# エクスポートする関数とオブジェクト
__all__ = ['logger', 'initialize_file_logging', 'enable_debug_logging']
