"""Shared fixtures: isolated settings, generated images and an in-memory Elasticsearch client."""

from __future__ import annotations

import copy
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import BadRequestError, ConflictError, NotFoundError
from PIL import Image

from photo_indexer.config import Settings


def write_image(
    path: Path,
    color: tuple[int, int, int] = (200, 30, 30),
    size: tuple[int, int] = (64, 48),
    exif: Image.Exif | None = None,
) -> Path:
    """Write a solid-colour image whose format follows the file suffix."""

    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.new("RGB", size, color=color)
    if exif is not None:
        image.save(path, exif=exif)
    else:
        image.save(path)
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    settings = Settings()
    settings.scan.directory = tmp_path / "photos"
    settings.search.local_index_path = tmp_path / "index"
    settings.thumbnails.directory = tmp_path / "thumbnails"
    settings.indexing.num_workers = 2
    settings.indexing.queue_size = 4
    return settings


@pytest.fixture
def photos_dir(settings: Settings) -> Path:
    settings.scan.directory.mkdir(parents=True, exist_ok=True)
    return settings.scan.directory


def _meta(status: int) -> ApiResponseMeta:
    return ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )


def _matches(source: dict[str, Any], query: dict[str, Any] | None) -> bool:
    if not query or "match_all" in query:
        return True
    if "multi_match" in query:
        clause = query["multi_match"]
        terms = str(clause["query"]).lower().split()
        haystacks: list[str] = []
        for field_name in clause.get("fields", source.keys()):
            value = source.get(field_name)
            if isinstance(value, list):
                haystacks.extend(str(item).lower() for item in value)
            elif value is not None:
                haystacks.append(str(value).lower())
        return any(term in text for term in terms for text in haystacks)
    if "term" in query:
        ((field_name, value),) = query["term"].items()
        return source.get(field_name) == value
    raise AssertionError(f"unsupported query in fake client: {query}")


class FakeIndices:
    def __init__(self, owner: "FakeElasticsearch") -> None:
        self._owner = owner
        self.create_calls = 0

    def exists(self, index: str, **_kwargs: Any) -> bool:
        return index in self._owner.documents

    def create(self, index: str, mappings: dict[str, Any] | None = None, **_kwargs: Any) -> dict[str, Any]:
        self.create_calls += 1
        if index in self._owner.documents:
            raise BadRequestError("resource_already_exists_exception", _meta(400), {"error": "exists"})
        self._owner.documents[index] = {}
        self._owner.mappings[index] = mappings or {}
        return {"acknowledged": True, "index": index}


class FakeElasticsearch:
    """Realtime, single-node stand-in for the subset of the client API the searcher uses."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, dict[str, Any]]] = {}
        self.mappings: dict[str, Any] = {}
        self.indices = FakeIndices(self)
        self.refresh_log: list[tuple[str, Any]] = []
        self.before_index: Callable[[], None] | None = None
        self.closed = False
        self._seq_no = 0

    def _store(self, index: str) -> dict[str, dict[str, Any]]:
        if index not in self.documents:
            raise NotFoundError("index_not_found_exception", _meta(404), {"error": "no such index"})
        return self.documents[index]

    def put_raw(self, index: str, doc_id: str, source: dict[str, Any]) -> None:
        """Write a document directly, as a concurrent writer would."""

        self._seq_no += 1
        self.documents.setdefault(index, {})[doc_id] = {
            "_source": copy.deepcopy(source),
            "_seq_no": self._seq_no,
            "_primary_term": 1,
        }

    def get(self, index: str, id: str, **_kwargs: Any) -> dict[str, Any]:  # noqa: A002
        store = self._store(index)
        if id not in store:
            raise NotFoundError("not_found", _meta(404), {"found": False})
        doc = store[id]
        return {
            "_index": index,
            "_id": id,
            "found": True,
            "_source": copy.deepcopy(doc["_source"]),
            "_seq_no": doc["_seq_no"],
            "_primary_term": doc["_primary_term"],
        }

    def index(
        self,
        index: str,
        id: str,  # noqa: A002
        document: dict[str, Any],
        op_type: str | None = None,
        if_seq_no: int | None = None,
        if_primary_term: int | None = None,
        refresh: Any = None,
        **_kwargs: Any,
    ) -> dict[str, Any]:
        if self.before_index is not None:
            hook, self.before_index = self.before_index, None
            hook()

        store = self.documents.setdefault(index, {})
        existing = store.get(id)
        if op_type == "create" and existing is not None:
            raise ConflictError("version_conflict_engine_exception", _meta(409), {"error": "exists"})
        if if_seq_no is not None:
            if existing is None or existing["_seq_no"] != if_seq_no or existing["_primary_term"] != if_primary_term:
                raise ConflictError("version_conflict_engine_exception", _meta(409), {"error": "stale"})

        self.put_raw(index, id, document)
        self.refresh_log.append(("index", refresh))
        return {"_id": id, "result": "updated" if existing else "created"}

    def search(
        self,
        index: str,
        query: dict[str, Any] | None = None,
        size: int = 10,
        sort: list[Any] | None = None,
        search_after: list[Any] | None = None,
        source: bool = True,
        **_kwargs: Any,
    ) -> dict[str, Any]:
        store = self._store(index)
        ids = sorted(store) if sort else list(store)
        if search_after:
            ids = [doc_id for doc_id in ids if doc_id > search_after[0]]

        hits: list[dict[str, Any]] = []
        for doc_id in ids:
            doc_source = store[doc_id]["_source"]
            if not _matches(doc_source, query):
                continue
            hit: dict[str, Any] = {"_id": doc_id, "_index": index}
            if source:
                hit["_source"] = copy.deepcopy(doc_source)
            if sort:
                hit["sort"] = [doc_id]
            hits.append(hit)
            if len(hits) >= size:
                break
        return {"hits": {"total": {"value": len(hits), "relation": "eq"}, "hits": hits}}

    def count(self, index: str, **_kwargs: Any) -> dict[str, Any]:
        return {"count": len(self._store(index))}

    def delete(self, index: str, id: str, refresh: Any = None, **_kwargs: Any) -> dict[str, Any]:  # noqa: A002
        store = self._store(index)
        if id not in store:
            raise NotFoundError("not_found", _meta(404), {"result": "not_found"})
        del store[id]
        self.refresh_log.append(("delete", refresh))
        return {"_id": id, "result": "deleted"}

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
def make_image() -> Callable[..., Path]:
    return write_image
