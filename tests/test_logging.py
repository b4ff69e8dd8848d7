"""Tests for the structured logger adapter."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from utils.logging import LOG_DIR_ENV, _log_dir, _StructuredFormatter, configure_logging, get_logger


def test_adapter_merges_base_and_call_extras(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("photo_indexer.tests", extra={"component": "tests"})

    with caplog.at_level(logging.INFO, logger="photo_indexer.tests"):
        logger.info("walker_complete", extra={"discovered": 3})

    record = caplog.records[-1]
    assert record.getMessage() == "walker_complete"
    assert record.component == "tests"  # type: ignore[attr-defined]
    assert record.discovered == 3  # type: ignore[attr-defined]


def test_structured_formatter_emits_json_with_extras() -> None:
    record = logging.makeLogRecord({"msg": "indexer_complete", "levelname": "INFO", "name": "x", "indexed": 2})

    payload = json.loads(_StructuredFormatter().format(record))

    assert payload["message"] == "indexer_complete"
    assert payload["indexed"] == 2


def test_configure_logging_accepts_names_and_ignores_unknown() -> None:
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        configure_logging("chatty")
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous)


def test_structured_formatter_stringifies_paths_and_keeps_unicode() -> None:
    record = logging.makeLogRecord({"msg": "walker_skip", "levelname": "INFO", "name": "x", "path": Path("/fotos/Köln")})

    line = _StructuredFormatter().format(record)

    assert "Köln" in line
    assert json.loads(line)["path"] == "/fotos/Köln"


def test_log_dir_follows_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path / "logs"))
    assert _log_dir() == tmp_path / "logs"

    monkeypatch.delenv(LOG_DIR_ENV)
    assert _log_dir().name == "log"
