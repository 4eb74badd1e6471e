from __future__ import annotations

import re
from pathlib import Path

from exifstamp.models import ProjectedMetadata

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')


def sanitize_token(value: str | None, fallback: str = "NA") -> str:
    text = (value or "").strip()
    if not text:
        text = fallback
    text = INVALID_FILENAME_CHARS.sub("_", text)
    text = re.sub(r"\s+", "_", text)
    text = text.strip(" ._")
    return text or fallback


def sanitize_filename(value: str, fallback: str = "output") -> str:
    text = INVALID_FILENAME_CHARS.sub("_", value).strip()
    text = text.strip(" .")
    return text or fallback


def build_output_name(
    name_template: str,
    file_name: str,
    meta: ProjectedMetadata | None,
    extension: str,
) -> str:
    ext = extension.lower().lstrip(".")
    stem = Path(file_name).stem or file_name
    captured_at = meta.captured_at if meta is not None else None
    capture = captured_at.strftime("%Y%m%d_%H%M") if captured_at else "unknown_date"
    values = {
        "stem": sanitize_token(stem, fallback="image"),
        "date": sanitize_token(capture),
        "make": sanitize_token(meta.make if meta is not None else None),
        "model": sanitize_token(meta.model if meta is not None else None),
        "ext": ext,
    }
    try:
        rendered = name_template.format(**values)
    except KeyError as exc:
        missing = str(exc).strip("'")
        raise ValueError(f"name template contains unknown key: {missing}") from exc

    rendered = sanitize_filename(rendered, fallback=f"edited_{values['stem']}.{ext}")
    if not Path(rendered).suffix:
        rendered = f"{rendered}.{ext}"
    return rendered


def dedupe_name(name: str, issued: set[str]) -> str:
    """Return ``name``, or ``name_2``, ``name_3`` ... if it is already in ``issued``.

    Comparison is case-insensitive and every returned name is recorded, so a
    generated suffix never collides with a name handed out earlier.
    """
    path = Path(name)
    candidate = name
    index = 2
    while candidate.casefold() in issued:
        candidate = f"{path.stem}_{index}{path.suffix}"
        index += 1
    issued.add(candidate.casefold())
    return candidate
