"""Tests for removing duplicate copies from disk and from the store."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from photo_indexer.config import Settings
from photo_indexer.duplicates import DeleteMode, remove_duplicates
from photo_indexer.errors import InvalidRequestError, RecordNotFoundError
from photo_indexer.metadata import ImageMetadata
from photo_indexer.search.local import LocalSearcher

HASH = "abcdef0123456789abcdef0123456789"
OTHER_HASH = "0" * 32


@pytest.fixture
def indexed_copies(settings: Settings, photos_dir: Path, make_image: Callable[..., Path]):
    """One record ``P`` with duplicates ``D1`` and ``D2`` on disk and a thumbnail."""

    primary = make_image(photos_dir / "p.jpg")
    d1 = make_image(photos_dir / "d1.jpg")
    d2 = make_image(photos_dir / "d2.jpg")
    thumbnail = make_image(settings.thumbnails.path_for(HASH))

    searcher = LocalSearcher(settings.search.local_index_path)
    searcher.ensure_index_exists()
    searcher.update_document(
        ImageMetadata(
            file_path=str(primary),
            file_hash=HASH,
            width=64,
            height=48,
            thumbnail_path=str(thumbnail),
            duplicate_paths=[str(d1), str(d2)],
        )
    )
    searcher.update_document(
        ImageMetadata(
            file_path=str(photos_dir / "unrelated.jpg"),
            file_hash=OTHER_HASH,
            width=10,
            height=10,
            thumbnail_path=str(settings.thumbnails.path_for(OTHER_HASH)),
        )
    )
    yield searcher, primary, d1, d2, thumbnail
    searcher.close()


def test_delete_all_removes_every_copy_and_the_document(indexed_copies) -> None:
    searcher, primary, d1, d2, thumbnail = indexed_copies
    before = searcher.count_images()
    assert before == 2

    deleted = remove_duplicates(searcher, HASH, DeleteMode.ALL)

    assert deleted == [str(primary), str(d1), str(d2)]
    assert not any(path.exists() for path in (primary, d1, d2, thumbnail))
    assert searcher.get_document(HASH) is None
    assert searcher.count_images() == before - 1
    assert searcher.search_images(HASH) == []
    assert searcher.get_document(OTHER_HASH) is not None


def test_keep_one_removes_duplicates_only(indexed_copies) -> None:
    searcher, primary, d1, d2, thumbnail = indexed_copies

    deleted = remove_duplicates(searcher, HASH, DeleteMode.KEEP_ONE)

    assert deleted == [str(d1), str(d2)]
    assert primary.exists()
    assert thumbnail.exists()
    assert not d1.exists() and not d2.exists()
    stored = searcher.get_document(HASH)
    assert stored is not None
    assert stored.file_path == str(primary)
    assert stored.duplicate_paths == []


def test_already_missing_files_are_skipped(indexed_copies) -> None:
    searcher, _primary, d1, d2, _thumbnail = indexed_copies
    d1.unlink()

    deleted = remove_duplicates(searcher, HASH, DeleteMode.KEEP_ONE)

    assert deleted == [str(d2)]
    assert searcher.get_document(HASH).duplicate_paths == []  # type: ignore[union-attr]


def test_unknown_hash_raises_not_found(settings: Settings) -> None:
    searcher = LocalSearcher(settings.search.local_index_path)
    try:
        with pytest.raises(RecordNotFoundError):
            remove_duplicates(searcher, HASH, DeleteMode.ALL)
    finally:
        searcher.close()


def test_delete_mode_parse() -> None:
    assert DeleteMode.parse("all") is DeleteMode.ALL
    assert DeleteMode.parse("Keep-One") is DeleteMode.KEEP_ONE
    for bad in ("everything", None, 3):
        with pytest.raises(InvalidRequestError):
            DeleteMode.parse(bad)
