from __future__ import annotations

import copy
import os
import platform
from pathlib import Path
from typing import Any

import yaml

from exifstamp.constants import (
    DEFAULT_CACHE_MAX_MB,
    DEFAULT_LOCALE,
    DEFAULT_NAME_TEMPLATE,
    FIELD_NAMES,
    MIN_BASE_FONT_SIZE,
    VALID_OUTPUT_FORMATS,
)
from exifstamp.models import StampFields, StampPosition, StampSettings
from exifstamp.render.typography import is_valid_color

CONFIG_ENV_VAR = "EXIFSTAMP_CONFIG"


def default_jobs() -> int:
    cpu_count = os.cpu_count() or 2
    return max(1, cpu_count - 1)


DEFAULT_STAMP: dict[str, Any] = {
    "enabled": True,
    "position": StampPosition.INSIDE_BOTTOM.value,
    "font_size": 12,
    "background_color": "rgba(0, 0, 0, 0.7)",
    "text_color": "rgba(255, 255, 255, 1)",
    "opacity": 0.9,
    "padding": 8,
    "fields": {name: True for name in FIELD_NAMES},
}

DEFAULT_CONFIG: dict[str, Any] = {
    "stamp": DEFAULT_STAMP,
    "locale": DEFAULT_LOCALE,
    "font_path": None,
    "output_format": "png",
    "quality": 92,
    "name_template": DEFAULT_NAME_TEMPLATE,
    "jobs": default_jobs(),
    "cache_max_mb": DEFAULT_CACHE_MAX_MB,
}


def get_user_data_dir() -> Path:
    """返回用户可写的配置目录。"""
    system_name = platform.system().lower()
    if system_name == "windows":
        base = (
            os.environ.get("APPDATA")
            or os.environ.get("LOCALAPPDATA")
            or str(Path.home() / "AppData" / "Roaming")
        )
        return Path(base) / "ExifStamp"
    if system_name == "darwin":
        return Path.home() / "Library" / "Application Support" / "ExifStamp"

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "ExifStamp"
    return Path.home() / ".config" / "ExifStamp"


def get_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return get_user_data_dir() / "Config" / "config.yaml"


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    if not cfg_path.exists():
        cfg = copy.deepcopy(DEFAULT_CONFIG)
        cfg["jobs"] = default_jobs()
        return cfg

    text = cfg_path.read_text(encoding="utf-8")
    loaded = yaml.safe_load(text) or {}
    if not isinstance(loaded, dict):
        loaded = {}
    cfg = _deep_merge(DEFAULT_CONFIG, loaded)
    if not cfg.get("jobs"):
        cfg["jobs"] = default_jobs()
    return cfg


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = path or get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["jobs"] = default_jobs()
    cfg_path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return cfg_path


def _as_float(value: Any, fallback: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def settings_from_dict(data: dict[str, Any] | None) -> StampSettings:
    """Build clamped ``StampSettings`` from a ``stamp:`` config section."""
    stamp = _deep_merge(DEFAULT_STAMP, data or {})

    raw_fields = stamp.get("fields") or {}
    fields = StampFields(**{name: bool(raw_fields.get(name, True)) for name in FIELD_NAMES})

    background = str(stamp.get("background_color") or "")
    text_color = str(stamp.get("text_color") or "")

    return StampSettings(
        enabled=bool(stamp.get("enabled", True)),
        position=StampPosition.parse(stamp.get("position") or DEFAULT_STAMP["position"]),
        base_font_size=max(MIN_BASE_FONT_SIZE, _as_float(stamp.get("font_size"), DEFAULT_STAMP["font_size"])),
        background_color=background if is_valid_color(background) else DEFAULT_STAMP["background_color"],
        text_color=text_color if is_valid_color(text_color) else DEFAULT_STAMP["text_color"],
        opacity=min(1.0, max(0.0, _as_float(stamp.get("opacity"), DEFAULT_STAMP["opacity"]))),
        padding=max(0.0, _as_float(stamp.get("padding"), DEFAULT_STAMP["padding"])),
        fields=fields,
    )


def settings_from_config(cfg: dict[str, Any]) -> StampSettings:
    return settings_from_dict(cfg.get("stamp"))


def resolve_output_format(fmt: str) -> str:
    f = str(fmt or "").lower()
    if f == "jpg":
        f = "jpeg"
    if f not in VALID_OUTPUT_FORMATS:
        raise ValueError(f"output format must be png or jpeg/jpg, got: {fmt!r}")
    return f
