from __future__ import annotations

import logging

from exifstamp.cache import ResultCache, build_cache_key
from exifstamp.decoders.image_decoder import decode_image_bytes
from exifstamp.models import CompositionResult, ImageAsset, StampSettings
from exifstamp.render.compositor import encode, render
from exifstamp.render.layout import plan
from exifstamp.render.typography import TextMeasurer

LOGGER = logging.getLogger(__name__)


def compose(
    asset: ImageAsset,
    settings: StampSettings,
    *,
    measurer: TextMeasurer | None = None,
    locale: str = "en",
    font_path: str | None = None,
    output_format: str = "png",
    quality: int = 92,
) -> CompositionResult:
    """Decode, lay out, stamp and encode a single image.

    Raises ``DecodeError`` for unreadable sources and ``CompositionFailure``
    when drawing or encoding fails.
    """
    image = decode_image_bytes(asset.data, asset.mime_type)
    width, height = image.size
    layout = plan(
        width,
        height,
        asset.metadata,
        settings,
        measurer=measurer,
        locale=locale,
        font_path=font_path,
    )
    LOGGER.debug(
        "%s: stage %sx%s band=%s position=%s",
        asset.file_name,
        layout.stage_width_px,
        layout.stage_height_px,
        layout.band_height_px,
        settings.position.value,
    )
    stamped = render(image, layout)
    return encode(stamped, output_format, quality)


def compose_cached(
    asset: ImageAsset,
    settings: StampSettings,
    cache: ResultCache,
    *,
    measurer: TextMeasurer | None = None,
    locale: str = "en",
    font_path: str | None = None,
    output_format: str = "png",
    quality: int = 92,
) -> CompositionResult:
    key = build_cache_key(
        asset,
        settings,
        locale=locale,
        font_path=font_path,
        output_format=output_format,
        quality=quality,
        measurer=measurer,
    )
    return cache.get_or_compute(
        key,
        lambda: compose(
            asset,
            settings,
            measurer=measurer,
            locale=locale,
            font_path=font_path,
            output_format=output_format,
            quality=quality,
        ),
    )
