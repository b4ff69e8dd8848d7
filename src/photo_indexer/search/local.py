"""Embedded search backend on a SQLite file."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from threading import Lock

from sqlalchemy import ColumnElement, delete, exists, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from photo_indexer.db import ImageDocument, dispose_engine, get_engine, open_session
from photo_indexer.errors import StoreError
from photo_indexer.metadata import TEXT_FIELDS, ImageMetadata, merge_duplicate_path
from photo_indexer.search.base import MAX_RESULTS, Searcher
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "search_local"})

DB_FILENAME = "images.db"


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _term_clause(term: str) -> ColumnElement[bool]:
    """Match ``term`` in any scalar text field or in any single duplicate path."""

    pattern = _like_pattern(term)
    clauses = [
        getattr(ImageDocument, field_name).ilike(pattern, escape="\\")
        for field_name in TEXT_FIELDS
        if field_name != "duplicate_paths"
    ]
    # Paths are matched decoded, not against their JSON encoding.
    paths = func.json_each(ImageDocument.duplicate_paths).table_valued("value")
    clauses.append(exists(select(1).select_from(paths).where(paths.c.value.ilike(pattern, escape="\\"))))
    return or_(*clauses)


class LocalSearcher(Searcher):
    """Stores one row per content hash in ``<index_path>/images.db``.

    Queries are split on whitespace; a record matches when any term occurs,
    case-insensitively, inside any of its text fields. Writes are serialised
    by a process-local lock; readers never block on it.
    """

    def __init__(self, index_path: Path) -> None:
        self._db_path = index_path / DB_FILENAME
        self._write_lock = Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with open_session(self._db_path) as session:
                yield session
        except SQLAlchemyError as exc:
            LOGGER.error("local_store_error", extra={"operation": operation, "error": str(exc)})
            raise StoreError(f"{operation} failed on {self._db_path}: {exc}") from exc

    def ensure_index_exists(self) -> None:
        try:
            get_engine(self._db_path)
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(f"cannot open index at {self._db_path}: {exc}") from exc
        LOGGER.info("local_index_ready", extra={"db_path": str(self._db_path)})

    def index_metadata(self, record: ImageMetadata, *, refresh: bool | str | None = None) -> bool:
        with self._write_lock, self._session("index_metadata") as session:
            row = session.get(ImageDocument, record.file_hash)
            if row is None:
                session.add(ImageDocument.from_metadata(record))
                session.commit()
                LOGGER.debug("local_document_created", extra={"file_hash": record.file_hash})
                return True

            merged = merge_duplicate_path(row.to_metadata(), record)
            if merged is None:
                return False
            row.apply(merged)
            session.commit()
            LOGGER.debug(
                "local_document_merged",
                extra={"file_hash": record.file_hash, "path": record.file_path},
            )
            return False

    def search_images(self, query: str) -> list[ImageMetadata]:
        stmt = select(ImageDocument)
        terms = query.split()
        if terms:
            stmt = stmt.where(or_(*(_term_clause(term) for term in terms)))
        stmt = stmt.order_by(ImageDocument.file_path).limit(MAX_RESULTS)

        with self._session("search_images") as session:
            return [row.to_metadata() for row in session.scalars(stmt)]

    def count_images(self) -> int:
        with self._session("count_images") as session:
            return int(session.scalar(select(func.count()).select_from(ImageDocument)) or 0)

    def delete_document(self, file_hash: str, *, refresh: bool | str | None = None) -> None:
        with self._write_lock, self._session("delete_document") as session:
            session.execute(delete(ImageDocument).where(ImageDocument.file_hash == file_hash))
            session.commit()

    def update_document(self, record: ImageMetadata, *, refresh: bool | str | None = None) -> None:
        with self._write_lock, self._session("update_document") as session:
            row = session.get(ImageDocument, record.file_hash)
            if row is None:
                session.add(ImageDocument.from_metadata(record))
            else:
                row.apply(record)
            session.commit()

    def get_document(self, file_hash: str) -> ImageMetadata | None:
        with self._session("get_document") as session:
            row = session.get(ImageDocument, file_hash)
            return row.to_metadata() if row is not None else None

    def existing_hashes(self) -> set[str]:
        with self._session("existing_hashes") as session:
            return set(session.scalars(select(ImageDocument.file_hash)))

    def close(self) -> None:
        dispose_engine(self._db_path)


__all__ = ["LocalSearcher", "DB_FILENAME"]
