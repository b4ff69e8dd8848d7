"""Filesystem walker that discovers candidate image files under a scan root."""

from __future__ import annotations

import os
import queue
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from photo_indexer import channels
from photo_indexer.config import normalize_extension
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "walker"})


def _log_walk_error(exc: OSError) -> None:
    LOGGER.warning("walker_entry_error", extra={"path": str(exc.filename), "error": str(exc)})


def iter_image_files(root: Path, extensions: Iterable[str]) -> Iterator[Path]:
    """Recursively yield files under ``root`` whose extension is allowed.

    Args:
        root: Directory to scan. A missing root yields nothing.
        extensions: Allowed extensions, matched case-insensitively with or
            without the leading dot.

    Yields:
        Paths of regular files strictly under ``root``. Directories are never
        yielded and symlinked directories are not followed. Unreadable
        directories and entries are logged and skipped.
    """

    allowed = frozenset(normalize_extension(ext) for ext in extensions)

    if not root.is_dir():
        LOGGER.warning("scan_root_missing", extra={"root": str(root)})
        return

    for dirpath, _dirnames, filenames in os.walk(root, onerror=_log_walk_error, followlinks=False):
        for filename in filenames:
            path = Path(dirpath) / filename
            if path.suffix.lower() not in allowed:
                continue
            try:
                if not path.is_file():
                    # Broken symlinks and special files.
                    LOGGER.debug("walker_skip_non_file", extra={"path": str(path)})
                    continue
            except OSError as exc:
                _log_walk_error(exc)
                continue
            yield path


class Walker:
    """Feeds discovered image paths into the processing queue."""

    def __init__(self, root: Path, extensions: Iterable[str]) -> None:
        self._root = root
        self._extensions = frozenset(extensions)
        self.discovered = 0

    def run(self, output: "queue.Queue[Any]", stop_event: threading.Event) -> None:
        """Walk the root and put every candidate path on ``output``, then close it."""

        LOGGER.info(
            "walker_start",
            extra={"root": str(self._root), "extensions": sorted(self._extensions)},
        )
        try:
            for path in iter_image_files(self._root, self._extensions):
                channels.put(output, path, stop_event)
                self.discovered += 1
        except channels.StageStopped:
            LOGGER.warning("walker_stopped", extra={"discovered": self.discovered})
            return
        finally:
            channels.close(output, stop_event)

        LOGGER.info("walker_complete", extra={"discovered": self.discovered})


__all__ = ["iter_image_files", "Walker"]
