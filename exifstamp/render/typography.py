from __future__ import annotations

import platform
import re
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from PIL import ImageColor, ImageFont

from exifstamp.models import TextStyle

_RGBA_PATTERN = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9]*\.?[0-9]+)\s*)?\)$",
    re.IGNORECASE,
)


def _system_font_candidates(bold: bool) -> list[Path]:
    system = platform.system().lower()
    if "windows" in system:
        if bold:
            return [Path(r"C:\Windows\Fonts\arialbd.ttf"), Path(r"C:\Windows\Fonts\seguisb.ttf")]
        return [Path(r"C:\Windows\Fonts\arial.ttf"), Path(r"C:\Windows\Fonts\segoeui.ttf")]
    if "darwin" in system:
        if bold:
            return [Path("/System/Library/Fonts/Supplemental/Arial Bold.ttf"), Path("/Library/Fonts/Arial Bold.ttf")]
        return [Path("/System/Library/Fonts/Supplemental/Arial.ttf"), Path("/Library/Fonts/Arial.ttf")]
    if bold:
        return [
            Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
            Path("/usr/share/fonts/TTF/DejaVuSans-Bold.ttf"),
            Path("/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf"),
        ]
    return [
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
        Path("/usr/share/fonts/TTF/DejaVuSans.ttf"),
        Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
    ]


@lru_cache(maxsize=8)
def _resolve_font_file(font_path: str | None, bold: bool) -> str | None:
    candidates: list[Path] = []
    if font_path:
        candidates.append(Path(font_path))
    candidates.extend(_system_font_candidates(bold))
    for candidate in candidates:
        if not candidate.exists():
            continue
        try:
            ImageFont.truetype(str(candidate), size=12)
        except OSError:
            continue
        return str(candidate)
    return None


def load_font(font_path: str | None, size: int, style: TextStyle = TextStyle.NORMAL):
    """Load a font for ``style``; falls back to Pillow's built-in font.

    Font objects are created per call so worker threads never share one.
    """
    resolved = _resolve_font_file(font_path, style == TextStyle.BOLD)
    if resolved is not None:
        return ImageFont.truetype(resolved, size=max(1, int(size)))
    return ImageFont.load_default(size=max(1, int(size)))


class TextMeasurer(Protocol):
    def measure_text_width(self, text: str, font_size: int, style: TextStyle) -> float: ...


class PillowTextMeasurer:
    def __init__(self, font_path: str | None = None) -> None:
        self.font_path = font_path

    def measure_text_width(self, text: str, font_size: int, style: TextStyle) -> float:
        font = load_font(self.font_path, font_size, style)
        return float(font.getlength(text))


def parse_color(value: str | None, fallback: str = "#000000") -> tuple[int, int, int, int]:
    """Parse hex/named colours and CSS ``rgb()``/``rgba()`` with a 0..1 alpha."""
    for text in ((value or "").strip(), fallback):
        if not text:
            continue
        match = _RGBA_PATTERN.match(text)
        if match:
            red, green, blue = (min(255, int(part)) for part in match.group(1, 2, 3))
            alpha_text = match.group(4)
            alpha = 1.0 if alpha_text is None else min(1.0, max(0.0, float(alpha_text)))
            return red, green, blue, int(round(alpha * 255))
        try:
            return ImageColor.getcolor(text, "RGBA")  # type: ignore[return-value]
        except ValueError:
            continue
    return 0, 0, 0, 255


def is_valid_color(value: str | None) -> bool:
    text = (value or "").strip()
    if not text:
        return False
    if _RGBA_PATTERN.match(text):
        return True
    try:
        ImageColor.getrgb(text)
    except ValueError:
        return False
    return True
