"""Worker pool turning candidate paths into metadata records."""

from __future__ import annotations

import queue
import threading
from collections.abc import Set
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from photo_indexer import channels
from photo_indexer.config import Settings
from photo_indexer.errors import ProcessingError
from photo_indexer.metadata import ImageMetadata
from photo_indexer.preprocessing import process_image
from photo_indexer.stats import IndexingStats
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "processor"})


class Processor:
    """Consume paths with ``indexing.num_workers`` threads and emit one record per good image.

    A failing item is logged, counted and skipped; it never stops the pool.
    When all workers have drained the input the output queue is closed.
    """

    def __init__(
        self,
        settings: Settings,
        known_hashes: Set[str] | None = None,
        stats: IndexingStats | None = None,
    ) -> None:
        self._settings = settings
        self._known_hashes = known_hashes
        self._stats = stats or IndexingStats()
        self._num_workers = max(1, settings.indexing.num_workers)

    @property
    def stats(self) -> IndexingStats:
        return self._stats

    def run(
        self,
        paths: "queue.Queue[Any]",
        records: "queue.Queue[Any]",
        stop_event: threading.Event,
    ) -> None:
        LOGGER.info(
            "processor_start",
            extra={
                "workers": self._num_workers,
                "known_hashes": len(self._known_hashes) if self._known_hashes is not None else None,
            },
        )
        try:
            with ThreadPoolExecutor(max_workers=self._num_workers, thread_name_prefix="processor") as executor:
                futures = [
                    executor.submit(self._work, paths, records, stop_event) for _ in range(self._num_workers)
                ]
            for future in futures:
                future.result()
        finally:
            channels.close(records, stop_event)

        LOGGER.info("processor_complete", extra=self._stats.snapshot())

    def _work(
        self,
        paths: "queue.Queue[Any]",
        records: "queue.Queue[Any]",
        stop_event: threading.Event,
    ) -> None:
        try:
            while True:
                item = channels.get(paths, stop_event)
                if item is channels.CLOSED:
                    # Hand the sentinel on so sibling workers see it too.
                    channels.put(paths, channels.CLOSED, stop_event)
                    return

                record = self._process_one(Path(item))
                if record is not None:
                    channels.put(records, record, stop_event)
        except channels.StageStopped:
            LOGGER.debug("processor_worker_stopped")

    def _process_one(self, path: Path) -> ImageMetadata | None:
        try:
            record, reused = process_image(path, self._settings, self._known_hashes)
        except ProcessingError as exc:
            self._stats.increment("failed")
            LOGGER.warning(
                "processor_item_error",
                extra={"path": str(path), "step": exc.step, "error": str(exc.cause)},
            )
            return None
        except Exception:  # noqa: BLE001 - one bad file must not stop the pool
            self._stats.increment("failed")
            LOGGER.exception("processor_item_unexpected_error", extra={"path": str(path)})
            return None

        self._stats.increment("processed")
        if reused:
            self._stats.increment("reused")
        LOGGER.debug("processor_item_done", extra={"path": str(path), "file_hash": record.file_hash, "reused": reused})
        return record


__all__ = ["Processor"]
