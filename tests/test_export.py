import io
import threading
import time

from PIL import Image

from exifstamp.cache import ResultCache
from exifstamp.export import BatchExporter, export_all
from exifstamp.models import CompositionResult, ImageAsset, ProjectedMetadata, StampSettings


def _png_asset(name: str, size=(320, 240)) -> ImageAsset:
    buffer = io.BytesIO()
    Image.new("RGB", size, "#808080").save(buffer, "PNG")
    return ImageAsset(
        file_name=name,
        mime_type="image/png",
        data=buffer.getvalue(),
        metadata=ProjectedMetadata(make="Acme"),
    )


def _broken_asset(name: str) -> ImageAsset:
    return ImageAsset(file_name=name, mime_type="image/png", data=b"not really a png")


def test_single_failure_does_not_abort_batch() -> None:
    images = [_png_asset("a.png"), _broken_asset("b.png"), _png_asset("c.jpg")]
    progress: list[int] = []

    report = export_all(images, StampSettings(), on_progress=progress.append, jobs=2)

    assert [f.file_name for f in report.files] == ["edited_a.png", "edited_c.png"]
    assert [f.source_name for f in report.files] == ["a.png", "c.jpg"]
    assert len(report.failures) == 1
    assert report.failures[0].source_name == "b.png"
    assert report.failures[0].error_type == "DecodeError"
    assert report.ok_count == 2
    assert report.total == 3
    assert not report.cancelled
    assert progress == sorted(progress)
    assert progress[-1] == 100


def test_progress_steps_are_whole_percentages() -> None:
    images = [_png_asset(f"{i}.png", size=(40, 30)) for i in range(3)]
    progress: list[int] = []

    export_all(images, StampSettings(enabled=False), on_progress=progress.append, jobs=1)

    assert progress == [33, 67, 100]


def test_empty_input_reports_completion() -> None:
    progress: list[int] = []

    report = export_all([], StampSettings(), on_progress=progress.append)

    assert report.files == []
    assert progress == [100]


def test_duplicate_output_names_are_deduplicated() -> None:
    images = [_png_asset("shot.png"), _png_asset("shot.jpg")]

    report = export_all(images, StampSettings(), jobs=2)

    assert [f.file_name for f in report.files] == ["edited_shot.png", "edited_shot_2.png"]


def test_jpeg_output_uses_jpg_extension() -> None:
    report = export_all([_png_asset("a.png")], StampSettings(), output_format="jpeg", quality=80)

    assert report.files[0].file_name == "edited_a.jpg"
    assert report.files[0].data[:2] == b"\xff\xd8"


def test_cancel_discards_remaining_work() -> None:
    images = [_png_asset(f"{i}.png", size=(40, 30)) for i in range(5)]
    exporter = BatchExporter(StampSettings(), jobs=1)

    def on_progress(percent: int) -> None:
        exporter.cancel()

    report = exporter.export_all(images, on_progress=on_progress)

    assert report.cancelled
    assert exporter.cancelled
    assert [f.file_name for f in report.files] == ["edited_0.png"]


def test_shared_cache_skips_repeat_compositions() -> None:
    cache = ResultCache()
    images = [_png_asset("a.png"), _png_asset("b.png", size=(300, 200))]
    exporter = BatchExporter(StampSettings(), cache=cache, jobs=2)

    first = exporter.export_all(images)
    second = exporter.export_all(images)

    assert cache.misses == 2
    assert cache.hits == 2
    assert [f.data for f in first.files] == [f.data for f in second.files]


def test_generated_suffix_never_overwrites_another_input() -> None:
    images = [_png_asset("a.png"), _png_asset("a.jpg"), _png_asset("a_2.png")]

    report = export_all(images, StampSettings(), jobs=1)

    names = [f.file_name for f in report.files]
    assert names == ["edited_a.png", "edited_a_2.png", "edited_a_2_2.png"]
    assert len(set(names)) == 3


def _plain_assets(count: int) -> list[ImageAsset]:
    return [ImageAsset(f"{i}.png", "image/png", b"pixels-%d" % i) for i in range(count)]


def test_cancel_keeps_results_finished_before_cancel(monkeypatch) -> None:
    release = threading.Event()
    finished = threading.Event()

    def fake_compose(asset, settings, cache, **kwargs) -> CompositionResult:
        if asset.file_name == "1.png":
            release.wait(timeout=5)
            finished.set()
        return CompositionResult(data=asset.data, width=1, height=1)

    monkeypatch.setattr("exifstamp.export.compose_cached", fake_compose)
    exporter = BatchExporter(StampSettings(), jobs=2)

    def on_progress(percent: int) -> None:
        release.set()
        assert finished.wait(timeout=5)
        # 等待工作线程把结果交回 future
        time.sleep(0.2)
        exporter.cancel()

    report = exporter.export_all(_plain_assets(4), on_progress=on_progress)

    assert report.cancelled
    assert [f.file_name for f in report.files] == ["edited_0.png", "edited_1.png"]


def test_cancel_discards_results_finished_after_cancel(monkeypatch) -> None:
    release = threading.Event()
    exporter = BatchExporter(StampSettings(), jobs=2)

    def fake_compose(asset, settings, cache, **kwargs) -> CompositionResult:
        if asset.file_name == "1.png":
            release.wait(timeout=5)
            exporter.cancel()
        return CompositionResult(data=asset.data, width=1, height=1)

    monkeypatch.setattr("exifstamp.export.compose_cached", fake_compose)

    report = exporter.export_all(_plain_assets(2), on_progress=lambda percent: release.set())

    assert report.cancelled
    assert [f.file_name for f in report.files] == ["edited_0.png"]
    assert report.failures == []
