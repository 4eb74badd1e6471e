from __future__ import annotations

STANDARD_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp", ".bmp", ".gif"}
SUPPORTED_EXTENSIONS = STANDARD_EXTENSIONS

SUPPORTED_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/tiff",
    "image/webp",
    "image/bmp",
    "image/gif",
}

FIELD_NAMES = ("make", "model", "captured_at", "gps_coordinates")

VALID_OUTPUT_FORMATS = {"png", "jpeg"}

# 小图按比例放大到该宽度后再排版，保证文字可读
MIN_WIDTH = 500
SEPARATOR_MIN_WIDTH = 400

MIN_FONT_SIZE_PX = 16
FONT_SCALE = 0.032
FONT_SIZE_MULTIPLIER = 5
MIN_BASE_FONT_SIZE = 4
LINE_HEIGHT_RATIO = 1.4
VERTICAL_PADDING_RATIO = 0.6
HORIZONTAL_PADDING_RATIO = 0.03
MIN_HORIZONTAL_PADDING = 12
SEPARATOR_HEIGHT_RATIO = 0.8
SEPARATOR_RGBA = (255, 255, 255, 64)
OUTSIDE_BAND_ALPHA = 255

DEFAULT_LOCALE = "en"
DEFAULT_NAME_TEMPLATE = "edited_{stem}.{ext}"
DEFAULT_CACHE_MAX_MB = 256
