"""Counters shared by the stages of an indexing job."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, fields


@dataclass
class IndexingStats:
    """Per-job counters; every stage thread may bump them concurrently."""

    discovered: int = 0
    processed: int = 0
    reused: int = 0  # known content, extraction skipped
    failed: int = 0
    indexed: int = 0  # new documents
    merged: int = 0  # existing documents that gained a path
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}

    def __str__(self) -> str:
        counts = self.snapshot()
        return (
            f"Discovered {counts['discovered']} files, processed {counts['processed']} "
            f"({counts['reused']} already known, {counts['failed']} failed); "
            f"{counts['indexed']} new documents, {counts['merged']} merged"
        )


__all__ = ["IndexingStats"]
