"""Backend-independent contract of the document store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from photo_indexer.metadata import ImageMetadata

MAX_RESULTS = 100


class Searcher(ABC):
    """Capability set every search backend implements with the same observable behaviour.

    One instance is shared by the indexing job and all web requests: reads may
    run concurrently with writes. Pipeline writes are serialised by the
    indexer; writes issued by the web layer race with a running job and the
    last writer wins.
    """

    @abstractmethod
    def ensure_index_exists(self) -> None:
        """Create the index or schema when missing. Safe to call repeatedly."""

    @abstractmethod
    def index_metadata(self, record: ImageMetadata, *, refresh: bool | str | None = None) -> bool:
        """Merge ``record`` into the store by content hash.

        A new hash inserts ``record`` as is. A known hash gains
        ``record.file_path`` as a duplicate path unless that path is already
        recorded; every other stored field is kept.

        Returns:
            ``True`` when a new document was created.
        """

    @abstractmethod
    def search_images(self, query: str) -> list[ImageMetadata]:
        """Return at most :data:`MAX_RESULTS` records matching ``query``; empty matches all."""

    @abstractmethod
    def count_images(self) -> int:
        """Number of stored documents."""

    @abstractmethod
    def delete_document(self, file_hash: str, *, refresh: bool | str | None = None) -> None:
        """Remove the document for ``file_hash``; an unknown hash is ignored."""

    @abstractmethod
    def update_document(self, record: ImageMetadata, *, refresh: bool | str | None = None) -> None:
        """Atomically replace the document for ``record.file_hash``, inserting it if absent."""

    @abstractmethod
    def get_document(self, file_hash: str) -> ImageMetadata | None:
        """Exact lookup by content hash."""

    @abstractmethod
    def existing_hashes(self) -> set[str]:
        """Every stored content hash."""

    def close(self) -> None:
        """Release connections held by the backend."""


__all__ = ["MAX_RESULTS", "Searcher"]
