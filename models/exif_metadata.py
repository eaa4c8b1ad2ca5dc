"""
EXIFメタデータモジュール

フル解像度画像のバイト列から、ライトボックスに表示する撮影情報
（ISO感度、F値、露出時間、撮影日）を取り出します。
どの項目も存在しない場合はNoneとなり、その項目は表示されません。
"""
from datetime import datetime
from io import BytesIO
from typing import Dict, Optional, Any

from PIL import Image

from utils import logger

# EXIF IFDのタグID
EXIF_IFD = 0x8769
TAG_EXPOSURE_TIME = 0x829A
TAG_FNUMBER = 0x829D
TAG_ISO = 0x8827
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME = 0x0132

METADATA_KEYS = ("iso", "fstop", "shutter", "date")

def empty_metadata() -> Dict[str, Optional[str]]:
    return {key: None for key in METADATA_KEYS}

def _to_float(value: Any) -> Optional[float]:
    """IFDRational、タプル(分子, 分母)、数値をfloatに変換"""
    try:
        if isinstance(value, tuple) and len(value) == 2:
            num, den = value
            return float(num) / float(den) if den else None
        return float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None

def format_fnumber(value: Any) -> Optional[str]:
    """F値を 'f/2.8' 形式に整形"""
    f = _to_float(value)
    if f is None or f <= 0:
        return None
    return "f/" + f"{f:.1f}".rstrip("0").rstrip(".")

def format_exposure_time(value: Any) -> Optional[str]:
    """露出時間を '1/250s' または '2s' 形式に整形"""
    f = _to_float(value)
    if f is None or f <= 0:
        return None
    if f >= 1:
        return f"{f:g}s"
    return f"1/{round(1 / f)}s"

def format_iso(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    try:
        iso = int(value)
    except (TypeError, ValueError):
        return None
    return str(iso) if iso > 0 else None

def format_capture_date(value: Any) -> Optional[str]:
    """EXIFの 'YYYY:MM:DD HH:MM:SS' を 'Mar 5, 2024' 形式に整形"""
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str) or not value.strip():
        return None

    date_part = value.strip().split(" ")[0]
    try:
        captured = datetime.strptime(date_part, "%Y:%m:%d")
    except ValueError:
        return None
    return f"{captured.strftime('%b')} {captured.day}, {captured.year}"

def read_exif_metadata(data: bytes) -> Dict[str, Optional[str]]:
    """
    画像のバイト列から撮影情報を取得

    Args:
        data: フル解像度画像のバイト列

    Returns:
        Dict[str, Optional[str]]: iso, fstop, shutter, date のキーを持つ辞書。
        取得できなかった項目はNone。読み込みに失敗した場合は全てNone。
    """
    metadata = empty_metadata()
    try:
        with Image.open(BytesIO(data)) as image:
            exif = image.getexif()
            tags = dict(exif)
            tags.update(exif.get_ifd(EXIF_IFD))
    except Exception as e:
        logger.debug(f"No metadata found: {e}")
        return metadata

    metadata["iso"] = format_iso(tags.get(TAG_ISO))
    metadata["fstop"] = format_fnumber(tags.get(TAG_FNUMBER))
    metadata["shutter"] = format_exposure_time(tags.get(TAG_EXPOSURE_TIME))
    metadata["date"] = format_capture_date(
        tags.get(TAG_DATETIME_ORIGINAL) or tags.get(TAG_DATETIME))
    return metadata

def read_exif_metadata_from_file(path: str) -> Dict[str, Optional[str]]:
    """ファイルパスから撮影情報を取得（読み込めない場合は全てNone）"""
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.debug(f"Cannot read {path} for metadata: {e}")
        return empty_metadata()
    return read_exif_metadata(data)
