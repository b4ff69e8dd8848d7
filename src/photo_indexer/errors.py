"""Exception taxonomy shared by the pipeline, the search backends, and the web API.

Each exception carries the HTTP status the web layer should answer with, so
route handlers can raise freely and a single error handler renders the body.
"""

from __future__ import annotations

from pathlib import Path


class PhotoIndexerError(Exception):
    """Base class for all application errors."""

    status_code = 500


class ConfigurationError(PhotoIndexerError):
    """Settings are invalid or name an unsupported component."""


class ProcessingError(PhotoIndexerError):
    """A single image could not be processed; the batch continues."""

    def __init__(self, path: Path, step: str, cause: BaseException | None = None) -> None:
        self.path = path
        self.step = step
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{step} failed for {path}{detail}")


class StoreError(PhotoIndexerError):
    """The document store is unreachable or rejected an operation."""


class RecordNotFoundError(PhotoIndexerError):
    """No stored record exists for the requested content hash."""

    status_code = 404

    def __init__(self, file_hash: str) -> None:
        self.file_hash = file_hash
        super().__init__(f"no image indexed with hash {file_hash}")


class InvalidRequestError(PhotoIndexerError):
    """The caller sent a malformed payload or parameter."""

    status_code = 400


class JobRunningError(PhotoIndexerError):
    """An indexing job was requested while another one is still running."""

    status_code = 409


__all__ = [
    "PhotoIndexerError",
    "ConfigurationError",
    "ProcessingError",
    "StoreError",
    "RecordNotFoundError",
    "InvalidRequestError",
    "JobRunningError",
]
