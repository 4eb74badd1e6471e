"""Batch export of stamped images.

``BatchExporter`` runs the cache-checked composition for every asset on a
bounded thread pool, keeps going when single images fail, and reports
progress as whole percentages from the calling thread.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Sequence

from exifstamp.cache import ResultCache
from exifstamp.compose import compose_cached
from exifstamp.config import default_jobs
from exifstamp.constants import DEFAULT_NAME_TEMPLATE
from exifstamp.models import (
    CompositionResult,
    ExportedFile,
    ExportFailure,
    ExportReport,
    ImageAsset,
    StampSettings,
)
from exifstamp.naming import build_output_name, dedupe_name
from exifstamp.render.layout import round_half_up
from exifstamp.render.typography import TextMeasurer

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class BatchExporter:
    def __init__(
        self,
        settings: StampSettings,
        *,
        cache: ResultCache | None = None,
        jobs: int | None = None,
        locale: str = "en",
        font_path: str | None = None,
        output_format: str = "png",
        quality: int = 92,
        name_template: str = DEFAULT_NAME_TEMPLATE,
        measurer: TextMeasurer | None = None,
    ) -> None:
        self.settings = settings
        self.cache = cache if cache is not None else ResultCache()
        self.jobs = max(1, int(jobs or default_jobs()))
        self.locale = locale
        self.font_path = font_path
        self.output_format = output_format
        self.quality = quality
        self.name_template = name_template
        self.measurer = measurer
        self._cancel_event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop starting new compositions.

        Results that finish after this call are discarded; results that had
        already finished are kept.
        """
        if not self._cancel_event.is_set():
            LOGGER.info("export cancelled")
        self._cancel_event.set()

    def _compose_one(self, asset: ImageAsset) -> CompositionResult:
        return compose_cached(
            asset,
            self.settings,
            self.cache,
            measurer=self.measurer,
            locale=self.locale,
            font_path=self.font_path,
            output_format=self.output_format,
            quality=self.quality,
        )

    def _compose_tracked(
        self,
        index: int,
        asset: ImageAsset,
        finished_before_cancel: dict[int, bool],
    ) -> CompositionResult:
        try:
            return self._compose_one(asset)
        finally:
            finished_before_cancel[index] = not self.cancelled

    def export_all(
        self,
        images: Sequence[ImageAsset],
        on_progress: ProgressCallback | None = None,
    ) -> ExportReport:
        total = len(images)
        report = ExportReport(total=total)
        if total == 0:
            if on_progress:
                on_progress(100)
            return report

        results: dict[int, CompositionResult] = {}
        failures: dict[int, ExportFailure] = {}
        pending: dict[Future, tuple[int, ImageAsset]] = {}
        finished_before_cancel: dict[int, bool] = {}
        queue = iter(enumerate(images))
        completed = 0
        last_percent = -1

        with ThreadPoolExecutor(max_workers=self.jobs, thread_name_prefix="exifstamp-export") as executor:

            def fill() -> None:
                while len(pending) < self.jobs and not self.cancelled:
                    item = next(queue, None)
                    if item is None:
                        return
                    index, asset = item
                    future = executor.submit(self._compose_tracked, index, asset, finished_before_cancel)
                    pending[future] = (index, asset)

            fill()
            while pending:
                done, _ = wait(list(pending), return_when=FIRST_COMPLETED)
                for future in done:
                    index, asset = pending.pop(future)
                    completed += 1
                    # 取消前已完成的结果保留，之后完成的丢弃
                    if not finished_before_cancel.get(index, False):
                        continue
                    try:
                        results[index] = future.result()
                    except Exception as exc:
                        LOGGER.error("FAIL %s  %s", asset.file_name, exc)
                        failures[index] = ExportFailure(
                            source_name=asset.file_name,
                            error_type=type(exc).__name__,
                            message=str(exc),
                        )
                    else:
                        LOGGER.info("OK   %s", asset.file_name)
                    if self.cancelled:
                        continue
                    percent = round_half_up(completed / total * 100)
                    if on_progress and percent != last_percent:
                        last_percent = percent
                        on_progress(percent)
                fill()

        report.cancelled = self.cancelled
        report.failures = [failures[index] for index in sorted(failures)]

        issued_names: set[str] = set()
        for index in sorted(results):
            asset = images[index]
            result = results[index]
            name = build_output_name(self.name_template, asset.file_name, asset.metadata, result.extension)
            report.files.append(
                ExportedFile(
                    file_name=dedupe_name(name, issued_names),
                    data=result.data,
                    width=result.width,
                    height=result.height,
                    source_name=asset.file_name,
                )
            )
        LOGGER.info("export finished: success=%d failed=%d", report.ok_count, len(report.failures))
        return report


def export_all(
    images: Sequence[ImageAsset],
    settings: StampSettings,
    on_progress: ProgressCallback | None = None,
    **options,
) -> ExportReport:
    return BatchExporter(settings, **options).export_all(images, on_progress)
