"""
アプリケーションのエントリーポイント

ソースディレクトリの写真からギャラリー用のサムネイルを一括生成します。
"""
import sys
import os
import argparse
import threading

from PySide6.QtCore import QCoreApplication, Qt

from utils import (
    logger, initialize_file_logging, enable_debug_logging, load_config
)

# 終了ステータス（セットアップ時の致命的エラー）
EXIT_SETUP_ERROR = 2

_output_lock = threading.Lock()

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portfolio-thumbnails",
        description="Generate resized, recompressed gallery thumbnails from a folder of photos.")
    parser.add_argument("source_dir", nargs="?", help="directory of full-resolution photos")
    parser.add_argument("dest_dir", nargs="?", help="directory to write thumbnails to")
    parser.add_argument("-w", "--width", type=int, dest="target_width",
                        help="thumbnail width in pixels (never upscaled)")
    parser.add_argument("-q", "--quality", type=int, help="lossy compression quality 1-100")
    parser.add_argument("-j", "--jobs", type=int, dest="max_concurrent",
                        help="maximum number of images processed at once")
    parser.add_argument("--format", choices=("jpeg", "source"), dest="output_format",
                        help="'jpeg' recompresses everything as JPEG, 'source' keeps the source container")
    parser.add_argument("--engine", choices=("auto", "vips", "pil"), help="image processing engine")
    parser.add_argument("-c", "--config", help="JSON config file")
    parser.add_argument("--log-dir", help="also write a rotating log file to this directory")
    parser.add_argument("--verify", action="store_true",
                        help="after the run, report photos without thumbnails and orphaned thumbnails")
    parser.add_argument("--metadata", action="store_true",
                        help="after the run, print the EXIF summary shown in the lightbox for each photo")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser

def _write(stream, text: str) -> None:
    # ワーカースレッドから呼ばれる
    with _output_lock:
        stream.write(text)
        stream.flush()

def report_gallery(source_dir: str, dest_dir: str, with_metadata: bool) -> None:
    """生成後のギャラリーの対応関係（と撮影情報）を表示"""
    from models import GalleryIndex, read_exif_metadata_from_file

    index = GalleryIndex.build(source_dir, dest_dir)
    missing = index.missing_thumbnails()
    orphans = index.orphan_thumbnails()
    if missing:
        logger.warning(f"Photos falling back to full resolution: {', '.join(missing)}")
    if orphans:
        logger.warning(f"Thumbnails without a matching photo: {', '.join(orphans)}")
    if not missing and not orphans:
        logger.info(f"All {len(index)} photos have a matching thumbnail")

    if with_metadata:
        for entry in index:
            metadata = read_exif_metadata_from_file(entry.full)
            fields = [metadata["fstop"], metadata["shutter"],
                      f"ISO {metadata['iso']}" if metadata["iso"] else None, metadata["date"]]
            print(f"{entry.name}: {' | '.join(f for f in fields if f) or '-'}")

def main(argv=None) -> int:
    """アプリケーションのメイン関数"""
    args = build_parser().parse_args(argv)

    # 設定の初期化（libvipsの環境変数はコントローラーのインポート前に確定させる）
    config = load_config(args.config)

    if args.debug or config.get("app.debug_mode"):
        enable_debug_logging()

    if args.log_dir:
        initialize_file_logging(args.log_dir)
    elif config.get("app.file_logging"):
        initialize_file_logging(os.path.join(config.get("app.data_dir"), "logs"))

    # コマンドラインの値は今回の実行でのみ設定を上書きする
    overrides = {
        "paths.source_dir": args.source_dir,
        "paths.dest_dir": args.dest_dir,
        "thumbnails.target_width": args.target_width,
        "thumbnails.quality": args.quality,
        "thumbnails.output_format": args.output_format,
        "thumbnails.engine": args.engine,
        "workers.max_concurrent": args.max_concurrent,
    }
    for key_path, value in overrides.items():
        if value is not None:
            config.set(key_path, value)

    from controllers import BatchProcessor

    app = QCoreApplication.instance() or QCoreApplication([sys.argv[0]])
    app.setApplicationName(config.get("app.name"))

    try:
        processor = BatchProcessor()
    except ValueError as e:
        logger.error(f"Invalid option: {e}")
        return EXIT_SETUP_ERROR

    processor.thumbnail_created.connect(
        lambda name, info: _write(sys.stdout, "."), Qt.DirectConnection)
    processor.error_occurred.connect(
        lambda name, error: _write(sys.stderr, f"\nError with {name}: {error}\n"), Qt.DirectConnection)

    print("Generating thumbnails...")
    try:
        report = processor.run()
    except (OSError, ValueError) as e:
        logger.error(f"Cannot generate thumbnails: {e}")
        return EXIT_SETUP_ERROR

    # 全ワーカーの完了後にのみ最終ステータスを表示する
    print()
    if report.exit_code == 0:
        print(f"Done! {report.summary()}. Thumbnails written to {processor.dest_dir}")
    else:
        print(f"Finished with problems: {report.summary()}")

    if args.verify or args.metadata:
        report_gallery(processor.source_dir, processor.dest_dir, args.metadata)

    return report.exit_code

if __name__ == "__main__":
    sys.exit(main())
