from datetime import datetime

import pytest

from exifstamp.models import (
    GpsCoordinate,
    ProjectedMetadata,
    StampFields,
    StampPosition,
    StampSettings,
    TextStyle,
)
from exifstamp.render.layout import font_size_for_width, plan


class _FixedWidthMeasurer:
    def measure_text_width(self, text: str, font_size: int, style: TextStyle) -> float:
        return len(text) * font_size * 0.5


MEASURER = _FixedWidthMeasurer()

METADATA = ProjectedMetadata(make="Acme", model="X1", captured_at=datetime(2024, 5, 1, 10, 0, 0))


def _plan(width: int, height: int, metadata: ProjectedMetadata | None, settings: StampSettings):
    return plan(width, height, metadata, settings, measurer=MEASURER)


def test_inside_bottom_example_layout() -> None:
    settings = StampSettings(position=StampPosition.INSIDE_BOTTOM)
    layout = _plan(4000, 3000, METADATA, settings)

    assert [run.text for run in layout.left_column_lines] == ["Acme", "X1"]
    assert all(run.style == TextStyle.BOLD for run in layout.left_column_lines)
    assert [run.text for run in layout.right_column_lines] == ["May 1, 2024 • 10:00 AM"]
    assert layout.right_column_lines[0].style == TextStyle.NORMAL

    assert layout.font_size_px == 60
    assert layout.line_height_px == pytest.approx(84.0)
    assert layout.band_height_px == 240
    assert (layout.stage_width_px, layout.stage_height_px) == (4000, 3000)
    assert layout.stamp_offset_y == 3000 - 240
    assert layout.image_offset_y == 0


def test_line_positions_and_alignment() -> None:
    layout = _plan(4000, 3000, METADATA, StampSettings())
    padding = 4000 * 0.03
    band_top = layout.stamp_offset_y

    first, second = layout.left_column_lines
    assert first.x == pytest.approx(padding)
    assert first.y == pytest.approx(band_top + 36 + 42)
    assert second.y == pytest.approx(band_top + 36 + 84 + 42)

    date_run = layout.right_column_lines[0]
    expected_width = len(date_run.text) * 60 * 0.5
    assert date_run.horizontal_align == "right"
    assert date_run.x == pytest.approx(4000 - expected_width - padding)
    assert date_run.y == pytest.approx(first.y)


def test_outside_top_expands_stage_above_image() -> None:
    settings = StampSettings(position=StampPosition.OUTSIDE_TOP)
    layout = _plan(4000, 3000, METADATA, settings)

    assert layout.stage_height_px == 3000 + layout.band_height_px
    assert layout.stamp_offset_y == 0
    assert layout.image_offset_y == layout.band_height_px


def test_outside_bottom_appends_band_below_image() -> None:
    settings = StampSettings(position=StampPosition.OUTSIDE_BOTTOM)
    layout = _plan(4000, 3000, METADATA, settings)

    assert layout.stage_height_px == 3000 + layout.band_height_px
    assert layout.stamp_offset_y == 3000
    assert layout.image_offset_y == 0


def test_inside_top_overlays_band_at_origin() -> None:
    layout = _plan(4000, 3000, METADATA, StampSettings(position=StampPosition.INSIDE_TOP))

    assert layout.stage_height_px == 3000
    assert layout.stamp_offset_y == 0


@pytest.mark.parametrize("position", list(StampPosition))
def test_no_selected_fields_yields_bandless_layout(position: StampPosition) -> None:
    settings = StampSettings(
        position=position,
        fields=StampFields(make=False, model=False, captured_at=False, gps_coordinates=False),
    )
    layout = _plan(1200, 800, METADATA, settings)

    assert layout.band_height_px == 0
    assert not layout.has_stamp
    assert (layout.stage_width_px, layout.stage_height_px) == (1200, 800)
    assert layout.left_column_lines == ()
    assert layout.separators == ()


def test_disabled_or_missing_metadata_yields_bandless_layout() -> None:
    disabled = _plan(1200, 800, METADATA, StampSettings(enabled=False))
    missing = _plan(1200, 800, None, StampSettings())
    empty = _plan(1200, 800, ProjectedMetadata(make=""), StampSettings())

    for layout in (disabled, missing, empty):
        assert layout.band_height_px == 0
        assert layout.stage_height_px == 800


def test_gps_line_added_only_when_coordinates_present() -> None:
    with_gps = ProjectedMetadata(
        captured_at=datetime(2024, 5, 1, 10, 0),
        gps_latitude=GpsCoordinate(37, 33, 59.4, "N"),
    )
    layout = _plan(2000, 1000, with_gps, StampSettings())

    assert [run.text for run in layout.right_column_lines] == [
        "May 1, 2024 • 10:00 AM",
        "37° 33' 59\" N",
    ]
    assert layout.left_column_lines == ()


@pytest.mark.parametrize("width", [1, 120, 499, 500, 800, 1000, 2000, 4000, 12000])
@pytest.mark.parametrize("base_font_size", [4, 12, 30])
def test_font_size_stays_within_bounds(width: int, base_font_size: int) -> None:
    settings = StampSettings(base_font_size=base_font_size)
    layout = _plan(width, 600, METADATA, settings)

    assert 16 <= layout.font_size_px <= base_font_size * 5
    assert layout.font_size_px == font_size_for_width(layout.stage_width_px, base_font_size)


def test_small_images_are_scaled_to_minimum_width() -> None:
    layout = _plan(250, 100, METADATA, StampSettings(position=StampPosition.OUTSIDE_BOTTOM))

    assert (layout.image_width_px, layout.image_height_px) == (500, 200)
    assert layout.stage_width_px == 500
    assert layout.stage_height_px == 200 + layout.band_height_px


def test_vertical_separator_requires_both_columns() -> None:
    both = _plan(1000, 800, METADATA, StampSettings())
    left_only = _plan(1000, 800, ProjectedMetadata(make="Acme"), StampSettings())

    assert len(both.separators) == 2
    vertical = both.separators[0]
    assert vertical.x0 == vertical.x1 == pytest.approx(500)
    text_block = 2 * both.line_height_px
    assert vertical.y1 - vertical.y0 == pytest.approx(text_block * 0.8)
    block_top = both.stamp_offset_y + round(both.font_size_px * 0.6)
    assert vertical.y0 - block_top == pytest.approx((text_block - text_block * 0.8) / 2)

    assert len(left_only.separators) == 1
    boundary = left_only.separators[0]
    assert boundary.y0 == boundary.y1 == pytest.approx(left_only.stamp_offset_y + 0.5)
    assert (boundary.x0, boundary.x1) == (0, 1000)


def test_plan_is_deterministic() -> None:
    settings = StampSettings(position=StampPosition.OUTSIDE_TOP)

    assert _plan(3024, 4032, METADATA, settings) == _plan(3024, 4032, METADATA, settings)


def test_band_colours_follow_settings() -> None:
    inside = _plan(1000, 800, METADATA, StampSettings(background_color="#102030", opacity=0.5))
    outside = _plan(
        1000,
        800,
        METADATA,
        StampSettings(background_color="#102030", opacity=0.5, position=StampPosition.OUTSIDE_BOTTOM),
    )

    assert inside.background_rgba == (16, 32, 48, 128)
    assert outside.background_rgba == (16, 32, 48, 255)
    assert inside.text_rgba == (255, 255, 255, 255)
