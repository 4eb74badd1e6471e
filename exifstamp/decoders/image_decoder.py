from __future__ import annotations

import io
import mimetypes
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from exifstamp.constants import STANDARD_EXTENSIONS, SUPPORTED_MIME_TYPES
from exifstamp.errors import DecodeError
from exifstamp.meta.pillow_fallback import extract_pillow_metadata
from exifstamp.meta.project import project
from exifstamp.models import ImageAsset

_MIME_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".gif": "image/gif",
}


def _normalize_mime(mime_type: str | None) -> str | None:
    if not mime_type:
        return None
    mime = mime_type.split(";", 1)[0].strip().lower()
    if mime == "image/jpg":
        return "image/jpeg"
    return mime


def guess_mime_type(path: Path) -> str:
    mime = _MIME_BY_EXTENSION.get(path.suffix.lower())
    if mime:
        return mime
    guessed, _ = mimetypes.guess_type(path.name)
    return _normalize_mime(guessed) or "application/octet-stream"


def decode_image_bytes(data: bytes, mime_type: str | None = None) -> Image.Image:
    """Decode ``data`` into an RGBA image with EXIF orientation applied.

    Multi-frame sources are reduced to their first frame.
    """
    mime = _normalize_mime(mime_type)
    if mime is not None and mime not in SUPPORTED_MIME_TYPES:
        raise DecodeError(f"unsupported image type: {mime}")
    if not data:
        raise DecodeError("image data is empty")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.seek(0)
            image.load()
            return ImageOps.exif_transpose(image).convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as exc:
        raise DecodeError(f"cannot decode image: {exc}") from exc


def load_asset(path: Path) -> ImageAsset:
    ext = path.suffix.lower()
    if ext not in STANDARD_EXTENSIONS:
        raise DecodeError(f"unsupported image format: {path.suffix}")
    data = path.read_bytes()
    metadata = project(extract_pillow_metadata(data))
    return ImageAsset(
        file_name=path.name,
        mime_type=guess_mime_type(path),
        data=data,
        metadata=metadata,
    )
