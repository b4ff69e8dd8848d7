"""SQLAlchemy schema and engine management for the embedded index."""

from __future__ import annotations

import json
import time
from pathlib import Path
from threading import Lock
from typing import Any

from sqlalchemy import Float, Index, Integer, String, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from photo_indexer.metadata import ImageMetadata
from utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ImageDocument(Base):
    """One stored record per distinct image content."""

    __tablename__ = "images"

    file_hash: Mapped[str] = mapped_column(String, primary_key=True)
    file_path: Mapped[str] = mapped_column(String, nullable=False)
    duplicate_paths: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    thumbnail_path: Mapped[str] = mapped_column(String, nullable=False)
    camera_make: Mapped[str | None] = mapped_column(String, nullable=True)
    camera_model: Mapped[str | None] = mapped_column(String, nullable=True)
    date_taken: Mapped[str | None] = mapped_column(String, nullable=True)
    gps_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    gps_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (Index("idx_images_file_path", "file_path"),)

    @classmethod
    def from_metadata(cls, record: ImageMetadata) -> "ImageDocument":
        now = time.time()
        row = cls(file_hash=record.file_hash, created_at=now, updated_at=now)
        row.apply(record)
        return row

    def apply(self, record: ImageMetadata) -> None:
        """Overwrite every content column with the values of ``record``."""

        self.file_path = record.file_path
        self.duplicate_paths = json.dumps(record.duplicate_paths, ensure_ascii=False)
        self.width = record.width
        self.height = record.height
        self.thumbnail_path = record.thumbnail_path
        self.camera_make = record.camera_make
        self.camera_model = record.camera_model
        self.date_taken = record.date_taken
        self.gps_latitude = record.gps_latitude
        self.gps_longitude = record.gps_longitude
        self.updated_at = time.time()

    def to_metadata(self) -> ImageMetadata:
        try:
            duplicates = json.loads(self.duplicate_paths or "[]")
        except json.JSONDecodeError:
            LOGGER.warning("db_duplicate_paths_corrupt", extra={"file_hash": self.file_hash})
            duplicates = []
        if not isinstance(duplicates, list):
            duplicates = []

        return ImageMetadata(
            file_path=self.file_path,
            file_hash=self.file_hash,
            width=self.width,
            height=self.height,
            thumbnail_path=self.thumbnail_path,
            camera_make=self.camera_make,
            camera_model=self.camera_model,
            date_taken=self.date_taken,
            gps_latitude=self.gps_latitude,
            gps_longitude=self.gps_longitude,
            duplicate_paths=duplicates,
        )


_ENGINE_CACHE: dict[str, Engine] = {}
_ENGINE_LOCK = Lock()


def _ensure_parent_directory(path: Path) -> None:
    """Ensure the parent directory for a database file exists."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.error("db_parent_directory_error", extra={"path": str(path), "error": str(exc)})
        raise


def _normalize_target(db_path: Path) -> str:
    return f"sqlite:///{db_path.resolve()}"


def get_engine(db_path: Path) -> Engine:
    """Return a cached engine for the SQLite file at ``db_path``, creating schema if needed."""

    normalized = _normalize_target(db_path)
    engine = _ENGINE_CACHE.get(normalized)
    if engine is not None:
        return engine

    with _ENGINE_LOCK:
        engine = _ENGINE_CACHE.get(normalized)
        if engine is not None:
            return engine

        _ensure_parent_directory(db_path.resolve())
        engine = create_engine(normalized, connect_args={"timeout": 30.0, "check_same_thread": False})

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:  # type: ignore[override]
            """Let readers proceed while the single writer commits."""

            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA busy_timeout = 30000")
            finally:
                cursor.close()

        try:
            Base.metadata.create_all(engine)
        except OperationalError as exc:
            # Another process may create the table between the existence check and CREATE TABLE.
            if "already exists" in str(exc).lower():
                LOGGER.info("db_create_all_table_exists_race", extra={"target": normalized, "error": str(exc)})
            else:
                raise

        _ENGINE_CACHE[normalized] = engine
        return engine


def dispose_engine(db_path: Path) -> None:
    """Drop the cached engine for ``db_path`` and close its pooled connections."""

    normalized = _normalize_target(db_path)
    with _ENGINE_LOCK:
        engine = _ENGINE_CACHE.pop(normalized, None)
    if engine is not None:
        engine.dispose()


def open_session(db_path: Path) -> Session:
    """Open a SQLAlchemy session on the index database."""

    return Session(get_engine(db_path))


__all__ = ["Base", "ImageDocument", "get_engine", "dispose_engine", "open_session"]
