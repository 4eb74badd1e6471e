"""Stamp layout planning.

``plan`` turns image dimensions, projected metadata and stamp settings into a
``StampLayout``: which lines go in which column, how large the text is, where
the band sits and how big the output stage must be. It draws nothing; text
widths come from a ``TextMeasurer`` so tests can plug in a deterministic one.
"""
from __future__ import annotations

import math

from exifstamp.constants import (
    FONT_SCALE,
    FONT_SIZE_MULTIPLIER,
    HORIZONTAL_PADDING_RATIO,
    LINE_HEIGHT_RATIO,
    MIN_FONT_SIZE_PX,
    MIN_HORIZONTAL_PADDING,
    MIN_WIDTH,
    OUTSIDE_BAND_ALPHA,
    SEPARATOR_HEIGHT_RATIO,
    SEPARATOR_MIN_WIDTH,
    SEPARATOR_RGBA,
    VERTICAL_PADDING_RATIO,
)
from exifstamp.meta.project import format_capture_date, format_gps_pair
from exifstamp.models import (
    LineSegment,
    ProjectedMetadata,
    StampLayout,
    StampSettings,
    TextRun,
    TextStyle,
)
from exifstamp.render.typography import PillowTextMeasurer, TextMeasurer, parse_color


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def effective_size(image_width: int, image_height: int) -> tuple[int, int]:
    """Scale small images up to ``MIN_WIDTH`` keeping the aspect ratio."""
    width = max(1, int(image_width))
    height = max(1, int(image_height))
    if width >= MIN_WIDTH:
        return width, height
    scale = MIN_WIDTH / float(width)
    return MIN_WIDTH, max(1, round_half_up(height * scale))


def font_size_for_width(width: float, base_font_size: float) -> int:
    upper = base_font_size * FONT_SIZE_MULTIPLIER
    return round_half_up(max(MIN_FONT_SIZE_PX, min(width * FONT_SCALE, upper)))


def collect_columns(
    metadata: ProjectedMetadata | None,
    settings: StampSettings,
    locale: str = "en",
) -> tuple[list[tuple[str, TextStyle]], list[tuple[str, TextStyle]]]:
    left: list[tuple[str, TextStyle]] = []
    right: list[tuple[str, TextStyle]] = []
    if metadata is None:
        return left, right

    fields = settings.fields
    if fields.make and metadata.make:
        left.append((metadata.make, TextStyle.BOLD))
    if fields.model and metadata.model:
        left.append((metadata.model, TextStyle.BOLD))

    if fields.captured_at and metadata.captured_at is not None:
        right.append((format_capture_date(metadata.captured_at, locale), TextStyle.NORMAL))
    if fields.gps_coordinates:
        gps_text = format_gps_pair(metadata.gps_latitude, metadata.gps_longitude)
        if gps_text:
            right.append((gps_text, TextStyle.NORMAL))
    return left, right


def _band_rgba(settings: StampSettings) -> tuple[int, int, int, int]:
    red, green, blue, alpha = parse_color(settings.background_color, fallback="rgba(0, 0, 0, 0.7)")
    if settings.position.is_outside:
        return red, green, blue, OUTSIDE_BAND_ALPHA
    opacity = min(1.0, max(0.0, float(settings.opacity)))
    return red, green, blue, round_half_up(alpha * opacity)


def _bandless(width: int, height: int, font_path: str | None) -> StampLayout:
    return StampLayout(
        band_height_px=0,
        stage_width_px=width,
        stage_height_px=height,
        image_width_px=width,
        image_height_px=height,
        font_path=font_path,
    )


def plan(
    image_width: int,
    image_height: int,
    metadata: ProjectedMetadata | None,
    settings: StampSettings,
    *,
    measurer: TextMeasurer | None = None,
    locale: str = "en",
    font_path: str | None = None,
) -> StampLayout:
    w, h = effective_size(image_width, image_height)

    if not settings.enabled:
        return _bandless(w, h, font_path)
    left, right = collect_columns(metadata, settings, locale)
    if not left and not right:
        return _bandless(w, h, font_path)

    measurer = measurer or PillowTextMeasurer(font_path)

    font_size = font_size_for_width(w, settings.base_font_size)
    line_height = font_size * LINE_HEIGHT_RATIO
    horizontal_padding = max(MIN_HORIZONTAL_PADDING, w * HORIZONTAL_PADDING_RATIO)
    vertical_padding = round_half_up(font_size * VERTICAL_PADDING_RATIO)
    max_lines = max(len(left), len(right))
    band_height = round_half_up(vertical_padding * 2 + max_lines * line_height)

    position = settings.position
    stage_height = h
    image_offset = 0
    if position.is_outside:
        stage_height = h + band_height
        if position.is_top:
            stamp_offset = 0
            image_offset = band_height
        else:
            stamp_offset = h
    else:
        stamp_offset = 0 if position.is_top else h - band_height

    def line_center(index: int) -> float:
        return stamp_offset + vertical_padding + index * line_height + line_height / 2

    left_runs = tuple(
        TextRun(
            text=text,
            font_size_px=font_size,
            style=style,
            x=horizontal_padding,
            y=line_center(index),
            horizontal_align="left",
        )
        for index, (text, style) in enumerate(left)
    )
    right_runs = tuple(
        TextRun(
            text=text,
            font_size_px=font_size,
            style=style,
            x=w - measurer.measure_text_width(text, font_size, style) - horizontal_padding,
            y=line_center(index),
            horizontal_align="right",
        )
        for index, (text, style) in enumerate(right)
    )

    separators: list[LineSegment] = []
    text_block_height = max_lines * line_height
    if w > SEPARATOR_MIN_WIDTH and left and right:
        separator_height = text_block_height * SEPARATOR_HEIGHT_RATIO
        separator_top = stamp_offset + vertical_padding + (text_block_height - separator_height) / 2
        separators.append(
            LineSegment(
                x0=w / 2,
                y0=separator_top,
                x1=w / 2,
                y1=separator_top + separator_height,
                rgba=SEPARATOR_RGBA,
            )
        )

    # 分隔线始终落在色带与图像相接的一侧
    boundary_y = stamp_offset + band_height - 0.5 if position.is_top else stamp_offset + 0.5
    red, green, blue, alpha = SEPARATOR_RGBA
    separators.append(
        LineSegment(
            x0=0,
            y0=boundary_y,
            x1=w,
            y1=boundary_y,
            rgba=(red, green, blue, alpha // 2),
        )
    )

    return StampLayout(
        band_height_px=band_height,
        stage_width_px=w,
        stage_height_px=stage_height,
        image_width_px=w,
        image_height_px=h,
        image_offset_y=image_offset,
        stamp_offset_y=stamp_offset,
        font_size_px=font_size,
        line_height_px=line_height,
        left_column_lines=left_runs,
        right_column_lines=right_runs,
        separators=tuple(separators),
        background_rgba=_band_rgba(settings),
        text_rgba=parse_color(settings.text_color, fallback="#FFFFFF"),
        font_path=font_path,
    )
