"""Tests for the JSON API using Flask's test client."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from flask.testing import FlaskClient

from photo_indexer.config import Settings
from photo_indexer.hasher import compute_content_hash
from photo_indexer.metadata import ImageMetadata
from photo_indexer.pipeline import IndexingJob
from photo_indexer.search.local import LocalSearcher
from photo_indexer.webui import create_app

UNKNOWN = "f" * 32


@pytest.fixture
def searcher(settings: Settings) -> Iterator[LocalSearcher]:
    searcher = LocalSearcher(settings.search.local_index_path)
    searcher.ensure_index_exists()
    yield searcher
    searcher.close()


@pytest.fixture
def indexed(settings: Settings, searcher: LocalSearcher, photos_dir: Path, make_image: Callable[..., Path]):
    primary = make_image(photos_dir / "beach.jpg", color=(0, 100, 200))
    duplicate = photos_dir / "copy" / "beach.jpg"
    duplicate.parent.mkdir()
    duplicate.write_bytes(primary.read_bytes())
    # One worker keeps walk order, so the top-level file becomes the primary path.
    settings.indexing.num_workers = 1
    job = IndexingJob(settings, searcher)
    job.run()
    return job, compute_content_hash(primary), primary, duplicate


@pytest.fixture
def client(settings: Settings, searcher: LocalSearcher, indexed) -> FlaskClient:
    job = indexed[0]
    return create_app(settings, searcher, job).test_client()


def test_status_reports_count_and_job(client: FlaskClient) -> None:
    response = client.get("/api/status")

    assert response.status_code == 200
    body = response.get_json()
    assert body["total_images"] == 1
    assert body["job"]["state"] == "completed"


def test_status_without_job(settings: Settings, searcher: LocalSearcher) -> None:
    response = create_app(settings, searcher).test_client().get("/api/status")

    assert response.get_json() == {"total_images": 0, "job": None}


def test_search_returns_records(client: FlaskClient, indexed) -> None:
    _job, file_hash, primary, duplicate = indexed

    everything = client.get("/api/images").get_json()
    by_query = client.get("/api/images", query_string={"q": "copy"}).get_json()
    nothing = client.get("/api/images", query_string={"q": "mountain"}).get_json()

    assert [item["file_hash"] for item in everything] == [file_hash]
    assert by_query[0]["duplicate_paths"] == [str(duplicate)]
    assert by_query[0]["file_path"] == str(primary)
    assert nothing == []


def test_thumbnail_is_served_by_hash(client: FlaskClient, indexed) -> None:
    file_hash = indexed[1]

    response = client.get(f"/api/thumbnails/{file_hash}")

    assert response.status_code == 200
    assert response.mimetype == "image/jpeg"
    assert response.data[:2] == b"\xff\xd8"


def test_thumbnail_missing_and_malformed(client: FlaskClient) -> None:
    assert client.get(f"/api/thumbnails/{UNKNOWN}").status_code == 404
    response = client.get("/api/thumbnails/not-a-hash")
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_image_content_is_served(client: FlaskClient, indexed) -> None:
    _job, file_hash, primary, _duplicate = indexed

    response = client.get(f"/api/images/{file_hash}")

    assert response.status_code == 200
    assert response.mimetype == "image/jpeg"
    assert response.data == primary.read_bytes()
    assert client.get(f"/api/images/{UNKNOWN}").status_code == 404


def test_image_content_missing_on_disk(client: FlaskClient, indexed) -> None:
    _job, file_hash, primary, _duplicate = indexed
    primary.unlink()

    assert client.get(f"/api/images/{file_hash}").status_code == 404


def test_delete_keep_one(client: FlaskClient, searcher: LocalSearcher, indexed) -> None:
    _job, file_hash, primary, duplicate = indexed

    response = client.delete(f"/api/images/{file_hash}/duplicates", json={"mode": "keep-one"})

    assert response.status_code == 200
    assert response.get_json() == [str(duplicate)]
    assert primary.exists() and not duplicate.exists()
    assert searcher.get_document(file_hash).duplicate_paths == []  # type: ignore[union-attr]


def test_delete_all(client: FlaskClient, searcher: LocalSearcher, indexed) -> None:
    _job, file_hash, primary, duplicate = indexed
    searcher.update_document(
        ImageMetadata(file_path="/elsewhere/other.jpg", file_hash=UNKNOWN, width=1, height=1, thumbnail_path="t.jpg")
    )
    assert searcher.count_images() == 2

    response = client.delete(f"/api/images/{file_hash}/duplicates", json={"mode": "all"})

    assert response.status_code == 200
    assert sorted(response.get_json()) == sorted([str(primary), str(duplicate)])
    assert searcher.get_document(file_hash) is None
    assert searcher.count_images() == 1
    assert client.get("/api/images", query_string={"q": file_hash}).get_json() == []
    assert searcher.get_document(UNKNOWN) is not None
    assert client.get(f"/api/thumbnails/{file_hash}").status_code == 404


def test_delete_rejects_bad_requests(client: FlaskClient, indexed) -> None:
    file_hash = indexed[1]
    url = f"/api/images/{file_hash}/duplicates"

    assert client.delete(url, json={"mode": "some"}).status_code == 400
    assert client.delete(url, data="not json", content_type="application/json").status_code == 400
    assert client.delete(url).status_code == 400
    assert client.delete(f"/api/images/{UNKNOWN}/duplicates", json={"mode": "all"}).status_code == 404


def test_unexpected_errors_become_json_500(settings: Settings, searcher: LocalSearcher, monkeypatch) -> None:
    def boom(_query: str) -> list[ImageMetadata]:
        raise RuntimeError("kaboom")

    monkeypatch.setattr(searcher, "search_images", boom)
    response = create_app(settings, searcher).test_client().get("/api/images")

    assert response.status_code == 500
    assert response.get_json() == {"error": "internal server error"}
