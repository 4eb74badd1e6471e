from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from exifstamp.cache import ResultCache
from exifstamp.config import (
    load_config,
    resolve_output_format,
    settings_from_config,
    write_default_config,
)
from exifstamp.constants import FIELD_NAMES, MIN_BASE_FONT_SIZE
from exifstamp.decoders.image_decoder import load_asset
from exifstamp.discover import discover_inputs
from exifstamp.errors import StampError
from exifstamp.export import BatchExporter
from exifstamp.meta.pillow_fallback import extract_pillow_metadata
from exifstamp.meta.project import format_capture_date, format_gps_pair, project
from exifstamp.models import ImageAsset, StampPosition

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Stamp EXIF camera, date and GPS info onto photos.")
LOGGER = logging.getLogger("exifstamp")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_multi_values(values: list[str]) -> list[str]:
    items: list[str] = []
    for value in values:
        for item in str(value).split(","):
            token = item.strip().lower().replace("-", "_")
            if token:
                items.append(token)
    return items


def _jsonable(value):
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, bytes):
        return f"<binary data: {len(value)} bytes>"
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return str(value)


@app.command()
def render(
    input_path: Path = typer.Argument(..., exists=True, resolve_path=True),
    out: Path | None = typer.Option(None, "--out", help="Output directory."),
    recursive: bool = typer.Option(False, "--recursive", help="Recursively scan input directories."),
    position: str | None = typer.Option(None, "--position", help="inside-top|inside-bottom|outside-top|outside-bottom"),
    font_size: float | None = typer.Option(None, "--font-size", min=MIN_BASE_FONT_SIZE, clamp=True, help="Base font size."),
    fields: str | None = typer.Option(None, "--fields", help="Comma separated: " + ",".join(FIELD_NAMES)),
    stamp: bool | None = typer.Option(None, "--stamp/--no-stamp", help="Enable or disable the stamp band."),
    output_format: str | None = typer.Option(None, "--format", help="Output format: png|jpeg"),
    quality: int | None = typer.Option(None, "--quality", min=1, max=100),
    jobs: int | None = typer.Option(None, "--jobs", min=1, help="Parallel compositions."),
    locale: str | None = typer.Option(None, "--locale", help="Date format locale, e.g. en or ko."),
    name_template: str | None = typer.Option(None, "--name", help='Output filename template, e.g. "edited_{stem}.{ext}"'),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Stamp metadata onto every supported image under INPUT_PATH."""
    _setup_logging(log_level)
    cfg = load_config()

    try:
        fmt = resolve_output_format(output_format or str(cfg.get("output_format", "png")))
        settings = settings_from_config(cfg)
        changes: dict = {}
        if position is not None:
            changes["position"] = StampPosition.parse(position)
        if font_size is not None:
            changes["base_font_size"] = font_size
        if stamp is not None:
            changes["enabled"] = stamp
        if fields is not None:
            selected = set(_parse_multi_values([fields]))
            unknown = selected - set(FIELD_NAMES)
            if unknown:
                raise ValueError(f"unknown fields: {', '.join(sorted(unknown))}")
            changes["fields"] = {name: name in selected for name in FIELD_NAMES}
        if changes:
            settings = settings.with_changes(**changes)
    except ValueError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    files = discover_inputs(input_path, recursive=recursive)
    if not files:
        typer.echo("No supported image files found.")
        raise typer.Exit(0)

    out_dir = out
    if out_dir is None:
        out_dir = (input_path / "output") if input_path.is_dir() else (input_path.parent / "output")
    out_dir.mkdir(parents=True, exist_ok=True)

    assets: list[ImageAsset] = []
    load_failures: list[str] = []
    for path in files:
        try:
            assets.append(load_asset(path))
        except (OSError, StampError) as exc:
            LOGGER.error("FAIL %s  %s", path.name, exc)
            load_failures.append(f"{path}: {exc}")

    exporter = BatchExporter(
        settings,
        cache=ResultCache(max_bytes=int(cfg.get("cache_max_mb") or 256) * 1024 * 1024),
        jobs=jobs or int(cfg.get("jobs") or 1),
        locale=locale or str(cfg.get("locale") or "en"),
        font_path=cfg.get("font_path") or None,
        output_format=fmt,
        quality=int(quality if quality is not None else cfg.get("quality", 92)),
        name_template=name_template or str(cfg.get("name_template")),
    )

    with typer.progressbar(length=100, label="Stamping") as progress:
        reported = 0

        def on_progress(percent: int) -> None:
            nonlocal reported
            progress.update(percent - reported)
            reported = percent

        try:
            report = exporter.export_all(assets, on_progress=on_progress)
        except KeyboardInterrupt:
            exporter.cancel()
            raise

    for exported in report.files:
        (out_dir / exported.file_name).write_bytes(exported.data)

    failures = load_failures + [f"{f.source_name}: {f.error_type}: {f.message}" for f in report.failures]
    typer.echo(f"Done. success={report.ok_count} failed={len(failures)} output={out_dir}")
    if failures:
        typer.secho("Failures:", fg=typer.colors.RED)
        for line in failures:
            typer.secho(f"  {line}", fg=typer.colors.RED)
        raise typer.Exit(1)


@app.command("inspect")
def inspect_file(
    file: Path = typer.Argument(..., exists=True, resolve_path=True, dir_okay=False),
    locale: str = typer.Option("en", "--locale"),
    raw: bool = typer.Option(False, "--raw", help="Include raw metadata payload."),
) -> None:
    """Print the metadata a stamp would use for FILE as JSON."""
    raw_metadata = extract_pillow_metadata(file)
    metadata = project(raw_metadata)
    payload = metadata.to_dict()
    payload["source"] = str(file)
    payload["captured_at_text"] = format_capture_date(metadata.captured_at, locale) if metadata.captured_at else None
    payload["gps_text"] = format_gps_pair(metadata.gps_latitude, metadata.gps_longitude) or None
    if raw:
        payload["raw_metadata"] = _jsonable(raw_metadata)
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    path = write_default_config(force=force)
    typer.echo(f"Config initialized: {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
