"""Content-addressed cache of encoded stamp results.

Entries are keyed by a fingerprint of the source bytes and every setting
that changes output pixels. Concurrent requests for the same key share one
computation; entries are evicted least-recently-used by encoded byte size.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
from concurrent.futures import Future
from typing import Callable

from cachetools import LRUCache

from exifstamp.models import CompositionResult, ImageAsset, StampSettings
from exifstamp.render.typography import PillowTextMeasurer, TextMeasurer

LOGGER = logging.getLogger(__name__)


def _result_size(result: CompositionResult) -> int:
    return max(1, len(result.data))


class ByteLRUCache(LRUCache):
    """An LRU cache bounded by the encoded size of its results."""

    def __init__(self, max_bytes: int):
        super().__init__(maxsize=max_bytes, getsizeof=_result_size)

    def popitem(self):
        key, value = super().popitem()
        LOGGER.debug(
            "Evicted %s to free space. Cache size: %.2f MB",
            key[:12],
            self.currsize / 1024**2,
        )
        return key, value


def _measurer_id(measurer: TextMeasurer | None, font_path: str | None) -> str | None:
    # None 表示按 font_path 使用默认的 Pillow 测量
    if measurer is None:
        return None
    if type(measurer) is PillowTextMeasurer and measurer.font_path == font_path:
        return None
    kind = type(measurer)
    return f"{kind.__module__}.{kind.__qualname__}:{id(measurer)}"


def build_cache_key(
    asset: ImageAsset,
    settings: StampSettings,
    *,
    locale: str = "en",
    font_path: str | None = None,
    output_format: str = "png",
    quality: int = 92,
    measurer: TextMeasurer | None = None,
) -> str:
    payload = {
        "image": asset.content_digest,
        "mime": asset.mime_type,
        "metadata": asset.metadata.to_dict() if asset.metadata is not None else None,
        "settings": settings.to_dict(),
        "fields": list(settings.fields.as_tuple()),
        "locale": locale,
        "font_path": font_path,
        "format": output_format,
        "quality": quality if output_format == "jpeg" else None,
        "measurer": _measurer_id(measurer, font_path),
    }
    text = json.dumps(payload, sort_keys=True, ensure_ascii=False)
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class ResultCache:
    def __init__(self, max_bytes: int = 256 * 1024 * 1024) -> None:
        self._entries = ByteLRUCache(max_bytes)
        self._pending: dict[str, Future] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        LOGGER.info("Initialized result cache with %.2f MB capacity.", max_bytes / 1024**2)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    @property
    def currsize(self) -> int:
        with self._lock:
            return self._entries.currsize

    def get(self, key: str) -> CompositionResult | None:
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _store(self, key: str, result: CompositionResult) -> None:
        try:
            self._entries[key] = result
        except ValueError:
            # cachetools 拒绝超过总容量的单项
            LOGGER.debug("Result %s (%d bytes) exceeds cache capacity, not cached", key[:12], len(result.data))

    def get_or_compute(
        self,
        key: str,
        compute: Callable[[], CompositionResult],
    ) -> CompositionResult:
        """Return the cached result for ``key`` or run ``compute`` once.

        Callers arriving while ``key`` is being computed wait for that
        computation and share its result or its exception. Failures are
        never cached.
        """
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self.hits += 1
                return cached
            pending = self._pending.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._pending[key] = pending
                self.misses += 1

        if not owner:
            return pending.result()

        try:
            result = compute()
        except BaseException as exc:
            with self._lock:
                self._pending.pop(key, None)
            pending.set_exception(exc)
            raise

        with self._lock:
            self._store(key, result)
            self._pending.pop(key, None)
        pending.set_result(result)
        return result
