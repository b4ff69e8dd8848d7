"""Remote search backend on an Elasticsearch cluster."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from elasticsearch import (
    ApiError,
    BadRequestError,
    ConflictError,
    Elasticsearch,
    NotFoundError,
    TransportError,
)

from photo_indexer.errors import StoreError
from photo_indexer.metadata import TEXT_FIELDS, ImageMetadata, merge_duplicate_path
from photo_indexer.search.base import MAX_RESULTS, Searcher
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "search_remote"})

MAX_CONFLICT_RETRIES = 5
HASH_PAGE_SIZE = 1000

_TEXT_WITH_KEYWORD = {"type": "text", "fields": {"keyword": {"type": "keyword", "ignore_above": 1024}}}

MAPPINGS: dict[str, Any] = {
    "properties": {
        "file_hash": {"type": "keyword"},
        "file_path": _TEXT_WITH_KEYWORD,
        "duplicate_paths": _TEXT_WITH_KEYWORD,
        "width": {"type": "integer"},
        "height": {"type": "integer"},
        "thumbnail_path": {"type": "keyword", "index": False},
        "camera_make": _TEXT_WITH_KEYWORD,
        "camera_model": _TEXT_WITH_KEYWORD,
        "date_taken": {"type": "keyword"},
        # Plain numbers: a record may carry one coordinate without the other.
        "gps_latitude": {"type": "double"},
        "gps_longitude": {"type": "double"},
    }
}


class ElasticsearchSearcher(Searcher):
    """Stores one document per content hash, using the hash as the document id.

    Merges read the current document with a realtime ``get`` and write back
    with optimistic concurrency control, retrying on version conflicts, so a
    concurrent writer can never make a merge drop a path. Searches are near
    real time: a write becomes visible after the next index refresh.
    """

    def __init__(
        self,
        url: str,
        index: str,
        *,
        request_timeout: float = 30.0,
        refresh: bool | str = False,
        client: Elasticsearch | None = None,
    ) -> None:
        self._index = index
        self._default_refresh = refresh
        self._client = client if client is not None else Elasticsearch(url, request_timeout=request_timeout)

    @property
    def index_name(self) -> str:
        return self._index

    def _refresh(self, refresh: bool | str | None) -> bool | str:
        return self._default_refresh if refresh is None else refresh

    @contextmanager
    def _store_call(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (ApiError, TransportError) as exc:
            LOGGER.error(
                "remote_store_error",
                extra={"operation": operation, "index": self._index, "error": str(exc)},
            )
            raise StoreError(f"{operation} failed on index {self._index}: {exc}") from exc

    def ensure_index_exists(self) -> None:
        with self._store_call("ensure_index_exists"):
            if self._client.indices.exists(index=self._index):
                return
            try:
                self._client.indices.create(index=self._index, mappings=MAPPINGS)
            except BadRequestError as exc:
                # Lost a creation race with another process.
                if "resource_already_exists" not in str(exc):
                    raise
            LOGGER.info("remote_index_created", extra={"index": self._index})

    def index_metadata(self, record: ImageMetadata, *, refresh: bool | str | None = None) -> bool:
        refresh_value = self._refresh(refresh)
        with self._store_call("index_metadata"):
            for attempt in range(1, MAX_CONFLICT_RETRIES + 1):
                try:
                    current = self._client.get(index=self._index, id=record.file_hash)
                except NotFoundError:
                    try:
                        self._client.index(
                            index=self._index,
                            id=record.file_hash,
                            document=record.to_dict(),
                            op_type="create",
                            refresh=refresh_value,
                        )
                    except ConflictError:
                        LOGGER.info(
                            "remote_create_conflict_retry",
                            extra={"file_hash": record.file_hash, "attempt": attempt},
                        )
                        continue
                    return True

                existing = ImageMetadata.from_dict(current["_source"])
                merged = merge_duplicate_path(existing, record)
                if merged is None:
                    return False
                try:
                    self._client.index(
                        index=self._index,
                        id=record.file_hash,
                        document=merged.to_dict(),
                        if_seq_no=current["_seq_no"],
                        if_primary_term=current["_primary_term"],
                        refresh=refresh_value,
                    )
                except ConflictError:
                    LOGGER.info(
                        "remote_merge_conflict_retry",
                        extra={"file_hash": record.file_hash, "attempt": attempt},
                    )
                    continue
                return False

        raise StoreError(
            f"gave up merging {record.file_path} into {record.file_hash} after {MAX_CONFLICT_RETRIES} conflicts"
        )

    def search_images(self, query: str) -> list[ImageMetadata]:
        text = query.strip()
        if text:
            es_query: dict[str, Any] = {
                "multi_match": {"query": text, "fields": list(TEXT_FIELDS), "lenient": True}
            }
        else:
            es_query = {"match_all": {}}

        with self._store_call("search_images"):
            try:
                response = self._client.search(index=self._index, query=es_query, size=MAX_RESULTS)
            except NotFoundError:
                LOGGER.warning("remote_index_missing", extra={"index": self._index})
                return []
        return [ImageMetadata.from_dict(hit["_source"]) for hit in response["hits"]["hits"]]

    def count_images(self) -> int:
        with self._store_call("count_images"):
            try:
                response = self._client.count(index=self._index)
            except NotFoundError:
                return 0
        return int(response["count"])

    def delete_document(self, file_hash: str, *, refresh: bool | str | None = None) -> None:
        with self._store_call("delete_document"):
            try:
                self._client.delete(index=self._index, id=file_hash, refresh=self._refresh(refresh))
            except NotFoundError:
                LOGGER.debug("remote_delete_missing", extra={"file_hash": file_hash})

    def update_document(self, record: ImageMetadata, *, refresh: bool | str | None = None) -> None:
        with self._store_call("update_document"):
            self._client.index(
                index=self._index,
                id=record.file_hash,
                document=record.to_dict(),
                refresh=self._refresh(refresh),
            )

    def get_document(self, file_hash: str) -> ImageMetadata | None:
        with self._store_call("get_document"):
            try:
                response = self._client.get(index=self._index, id=file_hash)
            except NotFoundError:
                return None
        return ImageMetadata.from_dict(response["_source"])

    def existing_hashes(self) -> set[str]:
        hashes: set[str] = set()
        search_after: list[Any] | None = None
        with self._store_call("existing_hashes"):
            while True:
                kwargs: dict[str, Any] = {
                    "index": self._index,
                    "query": {"match_all": {}},
                    "size": HASH_PAGE_SIZE,
                    "sort": [{"file_hash": "asc"}],
                    "source": False,
                }
                if search_after is not None:
                    kwargs["search_after"] = search_after
                try:
                    hits = self._client.search(**kwargs)["hits"]["hits"]
                except NotFoundError:
                    break
                if not hits:
                    break
                hashes.update(hit["_id"] for hit in hits)
                if len(hits) < HASH_PAGE_SIZE:
                    break
                search_after = hits[-1]["sort"]
        return hashes

    def close(self) -> None:
        self._client.close()


__all__ = ["ElasticsearchSearcher", "MAPPINGS"]
