"""Flask JSON API over the shared search store."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Any

from flask import Flask, abort, current_app, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from photo_indexer.config import Settings
from photo_indexer.duplicates import DeleteMode, remove_duplicates
from photo_indexer.errors import InvalidRequestError, PhotoIndexerError
from photo_indexer.hasher import is_content_hash
from photo_indexer.pipeline import IndexingJob
from photo_indexer.search.base import Searcher
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "webui"})


def _settings() -> Settings:
    return current_app.extensions["photo_indexer.settings"]


def _searcher() -> Searcher:
    return current_app.extensions["photo_indexer.searcher"]


def _job() -> IndexingJob | None:
    return current_app.extensions.get("photo_indexer.job")


def _validated_hash(file_hash: str) -> str:
    if not is_content_hash(file_hash):
        raise InvalidRequestError(f"malformed content hash {file_hash!r}")
    return file_hash


def _error_response(message: str, status: int) -> Any:
    response = jsonify({"error": message})
    response.status_code = status
    return response


def create_app(settings: Settings, searcher: Searcher, job: IndexingJob | None = None) -> Flask:
    """Build the API application around one shared ``searcher``.

    Args:
        settings: Loaded application settings; the thumbnail directory is
            read from here.
        searcher: Store shared with the background indexing job.
        job: Optional indexing job whose status is reported by ``/api/status``.
    """

    app = Flask(__name__)
    app.extensions["photo_indexer.settings"] = settings
    app.extensions["photo_indexer.searcher"] = searcher
    if job is not None:
        app.extensions["photo_indexer.job"] = job

    @app.errorhandler(PhotoIndexerError)
    def handle_app_error(exc: PhotoIndexerError) -> Any:
        if exc.status_code >= 500:
            LOGGER.error("api_error", extra={"path": request.path, "error": str(exc)})
        else:
            LOGGER.info("api_client_error", extra={"path": request.path, "status": exc.status_code, "error": str(exc)})
        return _error_response(str(exc), exc.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException) -> Any:
        return _error_response(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception) -> Any:
        LOGGER.exception("api_unexpected_error", extra={"path": request.path})
        return _error_response("internal server error", 500)

    @app.get("/api/images")
    def search_images() -> Any:
        query = request.args.get("q", "")
        records = _searcher().search_images(query)
        return jsonify([record.to_dict() for record in records])

    @app.get("/api/status")
    def status() -> Any:
        job = _job()
        return jsonify(
            {
                "total_images": _searcher().count_images(),
                "job": job.status() if job is not None else None,
            }
        )

    @app.get("/api/thumbnails/<file_hash>")
    def thumbnail(file_hash: str) -> Any:
        thumb_path = _settings().thumbnails.path_for(_validated_hash(file_hash)).resolve()
        if not thumb_path.is_file():
            abort(404, description=f"no thumbnail for {file_hash}")
        return send_file(thumb_path, mimetype="image/jpeg")

    @app.get("/api/images/<file_hash>")
    def image_content(file_hash: str) -> Any:
        record = _searcher().get_document(_validated_hash(file_hash))
        if record is None:
            abort(404, description=f"no image indexed with hash {file_hash}")

        path = Path(record.file_path).resolve()
        if not path.is_file():
            LOGGER.warning("image_file_missing", extra={"file_hash": file_hash, "path": str(path)})
            abort(404, description="Image content not found on disk. Run the indexer again to refresh the record.")

        mimetype, _ = mimetypes.guess_type(path.name)
        return send_file(path, mimetype=mimetype or "application/octet-stream")

    @app.delete("/api/images/<file_hash>/duplicates")
    def delete_duplicates(file_hash: str) -> Any:
        file_hash = _validated_hash(file_hash)
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise InvalidRequestError('request body must be a JSON object like {"mode": "all"}')
        mode = DeleteMode.parse(payload.get("mode"))

        deleted = remove_duplicates(_searcher(), file_hash, mode)
        return jsonify(deleted)

    return app


__all__ = ["create_app"]
