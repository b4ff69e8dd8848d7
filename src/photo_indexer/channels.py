"""Bounded hand-off queues between pipeline stages.

A stage closes its output by putting :data:`CLOSED`. Producers block while a
queue is full but wake up periodically to honour a shared stop event, so a
consumer that died never leaves its producers hanging.
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Final

CLOSED: Final[object] = object()

_POLL_INTERVAL: Final[float] = 0.25


class StageStopped(Exception):
    """Raised inside a stage when the job was asked to stop."""


def make_queue(size: int) -> "queue.Queue[Any]":
    """Return a queue bounded to ``size`` items; ``0`` or less means unbounded."""

    return queue.Queue(maxsize=max(0, size))


def put(channel: "queue.Queue[Any]", item: Any, stop_event: threading.Event) -> None:
    """Put ``item`` on ``channel``, blocking for space until ``stop_event`` is set."""

    while True:
        if stop_event.is_set():
            raise StageStopped()
        try:
            channel.put(item, timeout=_POLL_INTERVAL)
            return
        except queue.Full:
            continue


def close(channel: "queue.Queue[Any]", stop_event: threading.Event) -> None:
    """Signal end of input. Gives up silently when the job is stopping."""

    try:
        put(channel, CLOSED, stop_event)
    except StageStopped:
        pass


def get(channel: "queue.Queue[Any]", stop_event: threading.Event) -> Any:
    """Take the next item, waiting until one arrives or ``stop_event`` is set."""

    while True:
        if stop_event.is_set():
            raise StageStopped()
        try:
            return channel.get(timeout=_POLL_INTERVAL)
        except queue.Empty:
            continue


__all__ = ["CLOSED", "StageStopped", "make_queue", "put", "close", "get"]
