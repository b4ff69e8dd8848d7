"""Sequential consumer that merges processed records into the search store."""

from __future__ import annotations

import queue
import threading
from typing import Any

from photo_indexer import channels
from photo_indexer.errors import StoreError
from photo_indexer.search.base import Searcher
from photo_indexer.stats import IndexingStats
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "indexer"})


class Indexer:
    """Single writer of the pipeline: applies merges strictly in receipt order."""

    def __init__(self, searcher: Searcher, stats: IndexingStats | None = None) -> None:
        self._searcher = searcher
        self._stats = stats or IndexingStats()

    def run(self, records: "queue.Queue[Any]", stop_event: threading.Event) -> None:
        """Drain ``records`` until the close sentinel.

        Raises:
            StoreError: When the store rejects a write. ``stop_event`` is set
                first so upstream stages stop producing; documents merged so
                far stay committed.
        """

        try:
            self._searcher.ensure_index_exists()
        except Exception as exc:
            stop_event.set()
            LOGGER.error("indexer_ensure_index_error", extra={"error": str(exc)})
            raise StoreError(f"could not prepare index: {exc}") from exc

        while True:
            try:
                record = channels.get(records, stop_event)
            except channels.StageStopped:
                LOGGER.warning("indexer_stopped", extra=self._stats.snapshot())
                return
            if record is channels.CLOSED:
                break

            try:
                created = self._searcher.index_metadata(record)
            except Exception as exc:
                stop_event.set()
                LOGGER.error(
                    "indexer_store_error",
                    extra={"file_hash": record.file_hash, "path": record.file_path, "error": str(exc)},
                )
                raise StoreError(f"could not index {record.file_path}: {exc}") from exc

            self._stats.increment("indexed" if created else "merged")

        LOGGER.info("indexer_complete", extra=self._stats.snapshot())


__all__ = ["Indexer"]
