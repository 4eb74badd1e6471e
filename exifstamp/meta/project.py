from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any, Mapping

from exifstamp.models import GpsCoordinate, ProjectedMetadata

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_DATETIME_KEYS = ["DateTimeOriginal", "CreateDate", "DateTimeDigitized", "DateTime"]


def _normalize_lookup(raw: Mapping[str, Any]) -> dict[str, Any]:
    lookup: dict[str, Any] = {}
    for key, value in raw.items():
        k = str(key).strip().lower()
        if not k:
            continue
        lookup.setdefault(k, value)
        if ":" in k:
            lookup.setdefault(k.split(":")[-1], value)
    gps_info = lookup.get("gpsinfo")
    if isinstance(gps_info, Mapping):
        for key, value in gps_info.items():
            lookup.setdefault(str(key).strip().lower(), value)
    return lookup


def _clean_text(value: Any) -> str | None:
    """Collapse whitespace and NULs; ``None`` only when the tag is missing."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, (list, tuple)):
        value = " ".join(str(v).strip() for v in value if str(v).strip())
    text = str(value).replace("\x00", " ").strip()
    return re.sub(r"\s+", " ", text)


def _pick(lookup: dict[str, Any], candidates: list[str]) -> Any | None:
    for key in candidates:
        value = lookup.get(key.lower())
        if value in (None, "", " "):
            continue
        return value
    return None


def _ratio_to_float(value: Any) -> float | None:
    if isinstance(value, tuple) and len(value) == 2:
        numerator, denominator = value
        try:
            if float(denominator) == 0:
                return None
            return float(numerator) / float(denominator)
        except (TypeError, ValueError):
            return None
    numerator = getattr(value, "numerator", None)
    denominator = getattr(value, "denominator", None)
    if numerator is not None and denominator is not None:
        if denominator == 0:
            return None
        return float(numerator) / float(denominator)
    if isinstance(value, (int, float)):
        return float(value)
    text = _clean_text(value)
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    text = _clean_text(value)
    if not text:
        return None
    normalized = text.replace("T", " ").strip()
    if "." in normalized:
        normalized = normalized.split(".", 1)[0]
    patterns = [
        "%Y:%m:%d %H:%M:%S%z",
        "%Y:%m:%d %H:%M:%S",
        "%Y-%m-%d %H:%M:%S%z",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d %H:%M",
    ]
    for pattern in patterns:
        try:
            return datetime.strptime(normalized, pattern)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _hemisphere(ref: Any, negative: bool, *, latitude: bool) -> str:
    text = (_clean_text(ref) or "").upper()[:1]
    if text in {"N", "S", "E", "W"}:
        return text
    if latitude:
        return "S" if negative else "N"
    return "W" if negative else "E"


def _to_coordinate(value: Any, ref: Any, *, latitude: bool) -> GpsCoordinate | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)) and len(value) == 3:
        parts = [_ratio_to_float(item) for item in value]
        if any(part is None or not math.isfinite(part) for part in parts):
            return None
        degrees, minutes, seconds = parts
        return GpsCoordinate(
            degrees=degrees,
            minutes=minutes,
            seconds=seconds,
            hemisphere=_hemisphere(ref, degrees < 0, latitude=latitude),
        )

    decimal = _ratio_to_float(value)
    if decimal is None or not math.isfinite(decimal):
        return None
    limit = 90.0 if latitude else 180.0
    if abs(decimal) > limit:
        return None
    magnitude = abs(decimal)
    degrees = math.floor(magnitude)
    minutes_full = (magnitude - degrees) * 60.0
    minutes = math.floor(minutes_full)
    seconds = (minutes_full - minutes) * 60.0
    return GpsCoordinate(
        degrees=float(degrees),
        minutes=float(minutes),
        seconds=seconds,
        hemisphere=_hemisphere(ref, decimal < 0, latitude=latitude),
    )


def project(raw_metadata: Mapping[str, Any] | None) -> ProjectedMetadata:
    """Reduce an arbitrary metadata record to the fields a stamp can show.

    Never raises: tags that are missing or cannot be parsed are left absent.
    """
    if not isinstance(raw_metadata, Mapping):
        return ProjectedMetadata()
    lookup = _normalize_lookup(raw_metadata)

    make = _clean_text(lookup.get("make"))
    model_value = lookup.get("model")
    if model_value is None:
        model_value = lookup.get("cameramodelname")
    model = _clean_text(model_value)
    captured_at = _parse_datetime(_pick(lookup, _DATETIME_KEYS))
    latitude = _to_coordinate(
        lookup.get("gpslatitude"),
        lookup.get("gpslatituderef"),
        latitude=True,
    )
    longitude = _to_coordinate(
        lookup.get("gpslongitude"),
        lookup.get("gpslongituderef"),
        latitude=False,
    )
    return ProjectedMetadata(
        make=make,
        model=model,
        captured_at=captured_at,
        gps_latitude=latitude,
        gps_longitude=longitude,
    )


def format_gps(coord: GpsCoordinate | None) -> str:
    if coord is None:
        return ""
    seconds = int(math.floor(coord.seconds + 0.5))
    text = f"{coord.degrees:g}° {coord.minutes:g}' {seconds}\" {coord.hemisphere}"
    return text.rstrip()


def format_gps_pair(latitude: GpsCoordinate | None, longitude: GpsCoordinate | None) -> str:
    parts = [format_gps(latitude), format_gps(longitude)]
    return " / ".join(part for part in parts if part)


def format_capture_date(value: datetime, locale: str = "en") -> str:
    lang = (locale or "en").strip().lower()
    if lang.startswith("ko"):
        return value.strftime("%Y.%m.%d • %H:%M")
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{_MONTH_ABBR[value.month - 1]} {value.day}, {value.year} • {hour}:{value.minute:02d} {meridiem}"
