from __future__ import annotations

import io
import logging
from typing import Callable

from PIL import Image, ImageDraw

from exifstamp.errors import CompositionFailure
from exifstamp.models import CompositionResult, StampLayout
from exifstamp.render.typography import load_font

LOGGER = logging.getLogger(__name__)

_BACKEND_ERRORS = (OSError, MemoryError, ValueError)


def _composite_layer(
    stage: Image.Image,
    paint: Callable[[ImageDraw.ImageDraw], None],
) -> Image.Image:
    layer = Image.new("RGBA", stage.size, (0, 0, 0, 0))
    paint(ImageDraw.Draw(layer))
    return Image.alpha_composite(stage, layer)


def _draw_band(layout: StampLayout) -> Callable[[ImageDraw.ImageDraw], None]:
    def paint(draw: ImageDraw.ImageDraw) -> None:
        top = layout.stamp_offset_y
        draw.rectangle(
            [(0, top), (layout.stage_width_px - 1, top + layout.band_height_px - 1)],
            fill=layout.background_rgba,
        )

    return paint


def _draw_separators(layout: StampLayout) -> Callable[[ImageDraw.ImageDraw], None]:
    def paint(draw: ImageDraw.ImageDraw) -> None:
        for segment in layout.separators:
            draw.line(
                [
                    (round(segment.x0), int(segment.y0)),
                    (round(segment.x1), int(segment.y1)),
                ],
                fill=segment.rgba,
                width=segment.width,
            )

    return paint


def _draw_text(layout: StampLayout) -> Callable[[ImageDraw.ImageDraw], None]:
    def paint(draw: ImageDraw.ImageDraw) -> None:
        fonts: dict[object, object] = {}
        for run in (*layout.left_column_lines, *layout.right_column_lines):
            key = (run.style, run.font_size_px)
            font = fonts.get(key)
            if font is None:
                font = load_font(layout.font_path, run.font_size_px, run.style)
                fonts[key] = font
            # x 已是行首位置，右列的对齐在排版阶段完成
            draw.text((run.x, run.y), run.text, font=font, fill=layout.text_rgba, anchor="lm")  # type: ignore[arg-type]

    return paint


def render(image: Image.Image, layout: StampLayout) -> Image.Image:
    """Draw ``image`` and the stamp described by ``layout`` onto a new stage."""
    try:
        stage = Image.new("RGBA", (layout.stage_width_px, layout.stage_height_px), (0, 0, 0, 0))
        source = image if image.mode == "RGBA" else image.convert("RGBA")
        target_size = (layout.image_width_px, layout.image_height_px)
        if source.size != target_size:
            source = source.resize(target_size, Image.Resampling.LANCZOS)
        stage.paste(source, (0, layout.image_offset_y))
        if not layout.has_stamp:
            return stage

        stage = _composite_layer(stage, _draw_band(layout))
        stage = _composite_layer(stage, _draw_separators(layout))
        return _composite_layer(stage, _draw_text(layout))
    except _BACKEND_ERRORS as exc:
        raise CompositionFailure(f"stamp rendering failed: {exc}") from exc


def encode(image: Image.Image, fmt: str = "png", quality: int = 92) -> CompositionResult:
    fmt = fmt.lower()
    buffer = io.BytesIO()
    try:
        if fmt in {"jpeg", "jpg"}:
            fmt = "jpeg"
            image.convert("RGB").save(
                buffer,
                format="JPEG",
                quality=max(1, min(100, int(quality))),
                optimize=True,
                progressive=True,
            )
        elif fmt == "png":
            image.save(buffer, format="PNG", optimize=True)
        else:
            raise ValueError(f"output format must be png or jpeg, got: {fmt!r}")
    except (OSError, MemoryError) as exc:
        raise CompositionFailure(f"encoding {fmt} failed: {exc}") from exc
    width, height = image.size
    LOGGER.debug("encoded %sx%s %s (%d bytes)", width, height, fmt, buffer.tell())
    return CompositionResult(data=buffer.getvalue(), width=width, height=height, format=fmt)
