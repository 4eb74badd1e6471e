from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from exifstamp.constants import MIN_BASE_FONT_SIZE


class StampPosition(str, Enum):
    INSIDE_TOP = "inside-top"
    INSIDE_BOTTOM = "inside-bottom"
    OUTSIDE_TOP = "outside-top"
    OUTSIDE_BOTTOM = "outside-bottom"

    @property
    def is_outside(self) -> bool:
        return self in (StampPosition.OUTSIDE_TOP, StampPosition.OUTSIDE_BOTTOM)

    @property
    def is_top(self) -> bool:
        return self in (StampPosition.INSIDE_TOP, StampPosition.OUTSIDE_TOP)

    @classmethod
    def parse(cls, value: str | StampPosition) -> StampPosition:
        if isinstance(value, StampPosition):
            return value
        token = str(value or "").strip().lower().replace("_", "-")
        for item in cls:
            if item.value == token:
                return item
        raise ValueError(f"unknown stamp position: {value!r}")


class TextStyle(str, Enum):
    BOLD = "bold"
    NORMAL = "normal"


@dataclass(frozen=True, slots=True)
class GpsCoordinate:
    degrees: float
    minutes: float
    seconds: float
    hemisphere: str = ""


@dataclass(frozen=True, slots=True)
class ProjectedMetadata:
    make: str | None = None
    model: str | None = None
    captured_at: datetime | None = None
    gps_latitude: GpsCoordinate | None = None
    gps_longitude: GpsCoordinate | None = None

    def to_dict(self) -> dict[str, Any]:
        def _coord(value: GpsCoordinate | None) -> dict[str, Any] | None:
            if value is None:
                return None
            return {
                "degrees": value.degrees,
                "minutes": value.minutes,
                "seconds": value.seconds,
                "hemisphere": value.hemisphere,
            }

        return {
            "make": self.make,
            "model": self.model,
            "captured_at": self.captured_at.isoformat() if self.captured_at else None,
            "gps_latitude": _coord(self.gps_latitude),
            "gps_longitude": _coord(self.gps_longitude),
        }


@dataclass(frozen=True, slots=True)
class StampFields:
    make: bool = True
    model: bool = True
    captured_at: bool = True
    gps_coordinates: bool = True

    def as_tuple(self) -> tuple[bool, bool, bool, bool]:
        return (self.make, self.model, self.captured_at, self.gps_coordinates)


@dataclass(frozen=True, slots=True)
class StampSettings:
    enabled: bool = True
    position: StampPosition = StampPosition.INSIDE_BOTTOM
    base_font_size: float = 12
    background_color: str = "rgba(0, 0, 0, 0.7)"
    text_color: str = "rgba(255, 255, 255, 1)"
    opacity: float = 0.9
    padding: float = 8
    fields: StampFields = field(default_factory=StampFields)

    def __post_init__(self) -> None:
        # 字号下限保证 16 <= font <= base_font_size * 5 的区间不会倒置
        object.__setattr__(self, "base_font_size", max(MIN_BASE_FONT_SIZE, self.base_font_size))
        object.__setattr__(self, "opacity", min(1.0, max(0.0, self.opacity)))
        object.__setattr__(self, "padding", max(0, self.padding))

    def with_changes(self, **changes: Any) -> StampSettings:
        """Return a new settings value with ``changes`` merged in.

        ``fields`` may be given as a partial mapping, which is merged into the
        current field selection instead of replacing it.
        """
        fields_change = changes.pop("fields", None)
        if isinstance(fields_change, dict):
            changes["fields"] = replace(self.fields, **fields_change)
        elif fields_change is not None:
            changes["fields"] = fields_change
        if "position" in changes:
            changes["position"] = StampPosition.parse(changes["position"])
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "position": self.position.value,
            "base_font_size": float(self.base_font_size),
            "background_color": self.background_color,
            "text_color": self.text_color,
            "opacity": float(self.opacity),
            "padding": float(self.padding),
            "fields": {
                "make": self.fields.make,
                "model": self.fields.model,
                "captured_at": self.fields.captured_at,
                "gps_coordinates": self.fields.gps_coordinates,
            },
        }


@dataclass(frozen=True, slots=True)
class ImageAsset:
    file_name: str
    mime_type: str
    data: bytes = field(repr=False)
    metadata: ProjectedMetadata | None = None
    content_digest: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "content_digest", hashlib.sha1(self.data).hexdigest())

    @property
    def stem(self) -> str:
        return Path(self.file_name).stem or self.file_name


@dataclass(frozen=True, slots=True)
class TextRun:
    text: str
    font_size_px: int
    style: TextStyle
    x: float
    y: float
    horizontal_align: str = "left"


@dataclass(frozen=True, slots=True)
class LineSegment:
    x0: float
    y0: float
    x1: float
    y1: float
    width: int = 1
    rgba: tuple[int, int, int, int] = (255, 255, 255, 64)


@dataclass(frozen=True, slots=True)
class StampLayout:
    band_height_px: int
    stage_width_px: int
    stage_height_px: int
    image_width_px: int
    image_height_px: int
    image_offset_y: int = 0
    stamp_offset_y: int = 0
    font_size_px: int = 0
    line_height_px: float = 0.0
    left_column_lines: tuple[TextRun, ...] = ()
    right_column_lines: tuple[TextRun, ...] = ()
    separators: tuple[LineSegment, ...] = ()
    background_rgba: tuple[int, int, int, int] = (0, 0, 0, 0)
    text_rgba: tuple[int, int, int, int] = (255, 255, 255, 255)
    font_path: str | None = None

    @property
    def has_stamp(self) -> bool:
        return self.band_height_px > 0


@dataclass(frozen=True, slots=True)
class CompositionResult:
    data: bytes = field(repr=False)
    width: int
    height: int
    format: str = "png"

    @property
    def extension(self) -> str:
        return "jpg" if self.format == "jpeg" else self.format


@dataclass(frozen=True, slots=True)
class ExportedFile:
    file_name: str
    data: bytes = field(repr=False)
    width: int
    height: int
    source_name: str = ""


@dataclass(frozen=True, slots=True)
class ExportFailure:
    source_name: str
    error_type: str
    message: str


@dataclass(slots=True)
class ExportReport:
    files: list[ExportedFile] = field(default_factory=list)
    failures: list[ExportFailure] = field(default_factory=list)
    total: int = 0
    cancelled: bool = False

    @property
    def ok_count(self) -> int:
        return len(self.files)
