"""Removal of duplicate copies of an indexed image."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from photo_indexer.errors import InvalidRequestError, RecordNotFoundError
from photo_indexer.search.base import Searcher
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "duplicates"})

# Web-initiated writes must be visible to the caller's next read.
WEB_REFRESH = "wait_for"


class DeleteMode(str, Enum):
    ALL = "all"
    KEEP_ONE = "keep-one"

    @classmethod
    def parse(cls, value: object) -> "DeleteMode":
        if isinstance(value, str):
            for mode in cls:
                if mode.value == value.strip().lower():
                    return mode
        allowed = ", ".join(mode.value for mode in cls)
        raise InvalidRequestError(f"invalid delete mode {value!r}; expected one of {allowed}")


def _unlink(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        LOGGER.warning("duplicate_file_missing", extra={"path": str(path)})
        return False
    except OSError as exc:
        LOGGER.warning("duplicate_file_delete_error", extra={"path": str(path), "error": str(exc)})
        return False
    return True


def remove_duplicates(searcher: Searcher, file_hash: str, mode: DeleteMode) -> list[str]:
    """Delete copies of the image ``file_hash`` from disk and update its record.

    ``ALL`` removes every known path and the thumbnail, then the document.
    ``KEEP_ONE`` removes only the duplicate paths, keeping ``file_path``, and
    stores the record with an empty duplicate list. Files that cannot be
    removed are logged and skipped.

    Returns:
        The paths actually deleted from disk.

    Raises:
        RecordNotFoundError: When no record exists for ``file_hash``.
    """

    record = searcher.get_document(file_hash)
    if record is None:
        raise RecordNotFoundError(file_hash)

    targets = record.all_paths if mode is DeleteMode.ALL else list(record.duplicate_paths)
    deleted = [path for path in targets if _unlink(Path(path))]

    if mode is DeleteMode.ALL:
        if record.thumbnail_path:
            thumbnail = Path(record.thumbnail_path)
            if thumbnail.exists():
                _unlink(thumbnail)
        searcher.delete_document(file_hash, refresh=WEB_REFRESH)
    else:
        record.duplicate_paths = []
        searcher.update_document(record, refresh=WEB_REFRESH)

    LOGGER.info(
        "duplicates_removed",
        extra={"file_hash": file_hash, "mode": mode.value, "deleted": len(deleted), "requested": len(targets)},
    )
    return deleted


__all__ = ["DeleteMode", "WEB_REFRESH", "remove_duplicates"]
