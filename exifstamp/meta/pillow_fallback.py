from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any

from PIL import ExifTags, Image

LOGGER = logging.getLogger(__name__)

# Exif 子 IFD 中保存拍摄时间等字段
_EXIF_IFD = 0x8769
_GPS_IFD = 0x8825


def _read_exif(image: Image.Image, metadata: dict[str, Any]) -> None:
    exif = image.getexif()
    if not exif:
        return

    for tag_id, value in exif.items():
        tag = ExifTags.TAGS.get(tag_id, str(tag_id))
        if tag in {"ExifOffset", "GPSInfo"}:
            continue
        metadata[tag] = value

    for tag_id, value in exif.get_ifd(_EXIF_IFD).items():
        tag = ExifTags.TAGS.get(tag_id, str(tag_id))
        metadata.setdefault(tag, value)

    gps_ifd = exif.get_ifd(_GPS_IFD)
    if gps_ifd:
        gps_info = {ExifTags.GPSTAGS.get(k, str(k)): v for k, v in gps_ifd.items()}
        metadata["GPSInfo"] = gps_info


def extract_pillow_metadata(source: Path | bytes) -> dict[str, Any]:
    """Read EXIF tags with Pillow. Unreadable sources yield an almost empty dict."""
    if isinstance(source, (bytes, bytearray)):
        metadata: dict[str, Any] = {}
        opener = io.BytesIO(bytes(source))
    else:
        metadata = {"SourceFile": str(source)}
        opener = source
    try:
        with Image.open(opener) as image:
            _read_exif(image, metadata)
    except Exception as exc:
        LOGGER.debug("Pillow metadata extraction failed for %s: %s", metadata.get("SourceFile", "<bytes>"), exc)
    return metadata
