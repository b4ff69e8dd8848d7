"""Logger factory for the indexer: key=value console lines plus a rotating JSONL file."""

from __future__ import annotations

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

LOG_DIR_ENV = "PHOTO_INDEXER_LOG_DIR"
LOG_FILENAME = "photo_indexer.log"

_STANDARD_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"stack_info", "asctime", "message"}


def _log_dir() -> Path:
    override = os.environ.get(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path(__file__).resolve().parents[2] / "log"


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the fields a call site attached through ``extra``."""

    return {key: value for key, value in record.__dict__.items() if key not in _STANDARD_KEYS}


class _StructuredFormatter(logging.Formatter):
    """One JSON object per line; event fields sit beside the envelope keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        payload.update(_record_fields(record))
        return json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)


class _ConsoleFormatter(logging.Formatter):
    """Appends event fields to the console line as sorted ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = _record_fields(record)
        if not fields:
            return base
        return base + " | " + " ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))


class _StructuredAdapter(logging.LoggerAdapter):
    """Adapter that merges call-site ``extra`` with the adapter's base fields."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        call_extra = kwargs.get("extra") or {}
        kwargs["extra"] = {**(self.extra or {}), **call_extra}
        return msg, kwargs


def _configure_root_logger() -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(_ConsoleFormatter("%(asctime)s %(levelname)s [%(threadName)s] %(name)s %(message)s"))
    root.addHandler(console_handler)

    log_dir = _log_dir()
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILENAME,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as exc:
        root.warning("log_file_unavailable", extra={"log_dir": str(log_dir), "error": str(exc)})
        return
    file_handler.setFormatter(_StructuredFormatter())
    root.addHandler(file_handler)


def configure_logging(level: str | int) -> None:
    """Apply the configured verbosity to the root logger.

    Accepts level names (``"debug"``, ``"INFO"``) or numeric levels. Unknown
    names leave the current level untouched.
    """

    _configure_root_logger()
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            logging.getLogger(__name__).warning("unknown_log_level", extra={"level": level})
            return
        level = resolved
    logging.getLogger().setLevel(level)


def get_logger(name: str, extra: Dict[str, Any] | None = None) -> logging.LoggerAdapter:
    """Return a structured logger whose records always carry ``extra``."""

    _configure_root_logger()
    return _StructuredAdapter(logging.getLogger(name), extra or {})


__all__ = ["LOG_DIR_ENV", "configure_logging", "get_logger"]
