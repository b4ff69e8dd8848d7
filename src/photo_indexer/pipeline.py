"""Indexing job: Walker, Processor and Indexer wired over bounded queues."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from photo_indexer import channels
from photo_indexer.config import Settings, load_settings
from photo_indexer.errors import JobRunningError
from photo_indexer.indexer import Indexer
from photo_indexer.processor import Processor
from photo_indexer.scanner import Walker
from photo_indexer.search.base import Searcher
from photo_indexer.stats import IndexingStats
from utils.logging import get_logger

STATE_IDLE = "idle"
STATE_RUNNING = "running"
STATE_COMPLETED = "completed"
STATE_FAILED = "failed"


class IndexingJob:
    """Runs one full scan of the configured root into a shared :class:`Searcher`.

    The walker and the processor run on their own threads; the indexer drains
    records on the thread that calls :meth:`run`. A store fault or any
    unexpected stage failure stops the other stages and marks the job
    ``failed``; documents merged before the fault stay committed.
    """

    def __init__(
        self,
        settings: Settings | None,
        searcher: Searcher,
        *,
        root: Path | None = None,
        incremental: bool | None = None,
    ) -> None:
        """Initialize the job.

        Args:
            settings: Pre-loaded Settings instance. When ``None``,
                configuration is loaded from ``config/settings.yaml``.
            searcher: Store shared with the web layer.
            root: Directory to scan instead of ``scan.directory``.
            incremental: Overrides ``indexing.incremental`` when given.
        """

        self._settings = settings or load_settings()
        self._searcher = searcher
        self._root = root if root is not None else self._settings.scan.directory
        self._incremental = self._settings.indexing.incremental if incremental is None else incremental
        self._logger = get_logger(__name__, extra={"component": "pipeline"})

        self._lock = threading.Lock()
        self._state = STATE_IDLE
        self._error: str | None = None
        self._started_at: float | None = None
        self._finished_at: float | None = None
        self._stats = IndexingStats()
        self._thread: threading.Thread | None = None

    @property
    def root(self) -> Path:
        return self._root

    def status(self) -> dict[str, Any]:
        """Return a JSON-ready snapshot of the job state and counters."""

        with self._lock:
            return {
                "state": self._state,
                "error": self._error,
                "root": str(self._root),
                "incremental": self._incremental,
                "started_at": self._started_at,
                "finished_at": self._finished_at,
                "stats": self._stats.snapshot(),
            }

    def start(self) -> threading.Thread:
        """Run the job on a daemon thread and return the thread."""

        self._claim()
        thread = threading.Thread(target=self._execute, name="indexing-job", daemon=True)
        self._thread = thread
        thread.start()
        return thread

    def run(self) -> dict[str, Any]:
        """Run the job to completion on the calling thread and return the final status."""

        self._claim()
        self._execute()
        return self.status()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a job started with :meth:`start` finishes; ``False`` on timeout."""

        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _claim(self) -> None:
        with self._lock:
            if self._state == STATE_RUNNING:
                raise JobRunningError(f"an indexing job is already running for {self._root}")
            self._state = STATE_RUNNING
            self._error = None
            self._started_at = time.time()
            self._finished_at = None
            self._stats = IndexingStats()

    def _finish(self, state: str, error: str | None = None) -> None:
        with self._lock:
            self._state = state
            self._error = error
            self._finished_at = time.time()

    def _execute(self) -> None:
        stats = self._stats
        stop_event = threading.Event()
        stage_errors: list[str] = []
        threads: list[threading.Thread] = []

        def guarded(stage: str, target: Callable[..., None], *args: Any) -> Callable[[], None]:
            def _run() -> None:
                try:
                    target(*args)
                except Exception as exc:  # noqa: BLE001 - reported through the job state
                    stage_errors.append(f"{stage}: {exc}")
                    stop_event.set()
                    self._logger.exception("pipeline_stage_error", extra={"stage": stage})

            return _run

        self._logger.info(
            "pipeline_start",
            extra={
                "root": str(self._root),
                "incremental": self._incremental,
                "workers": self._settings.indexing.num_workers,
                "queue_size": self._settings.indexing.queue_size,
            },
        )

        walker = Walker(self._root, self._settings.scan.allowed_extensions)
        try:
            known_hashes: set[str] | None = None
            if self._incremental:
                known_hashes = self._searcher.existing_hashes()
                self._logger.info("pipeline_known_hashes", extra={"count": len(known_hashes)})

            paths = channels.make_queue(self._settings.indexing.queue_size)
            records = channels.make_queue(self._settings.indexing.queue_size)
            processor = Processor(self._settings, known_hashes=known_hashes, stats=stats)

            threads = [
                threading.Thread(
                    target=guarded("walker", walker.run, paths, stop_event), name="walker", daemon=True
                ),
                threading.Thread(
                    target=guarded("processor", processor.run, paths, records, stop_event),
                    name="processor",
                    daemon=True,
                ),
            ]
            for thread in threads:
                thread.start()

            Indexer(self._searcher, stats).run(records, stop_event)
        except Exception as exc:  # noqa: BLE001 - a failed job must not take the server down
            stop_event.set()
            for thread in threads:
                thread.join()
            stats.increment("discovered", walker.discovered)
            self._logger.exception("pipeline_failed", extra={"root": str(self._root)})
            self._finish(STATE_FAILED, str(exc))
            return

        for thread in threads:
            thread.join()
        stats.increment("discovered", walker.discovered)

        if stage_errors:
            self._logger.error("pipeline_failed", extra={"root": str(self._root), "errors": stage_errors})
            self._finish(STATE_FAILED, "; ".join(stage_errors))
            return

        self._logger.info("pipeline_complete", extra={"root": str(self._root), **stats.snapshot()})
        self._finish(STATE_COMPLETED)


__all__ = ["IndexingJob", "STATE_IDLE", "STATE_RUNNING", "STATE_COMPLETED", "STATE_FAILED"]
