"""The indexed record type and the merge-by-hash rule shared by every backend."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field, replace
from typing import Any

# Fields a free-text query is matched against, in every backend.
TEXT_FIELDS: tuple[str, ...] = (
    "file_path",
    "file_hash",
    "camera_make",
    "camera_model",
    "date_taken",
    "duplicate_paths",
)


def _unique_paths(paths: Iterable[Any], exclude: str) -> list[str]:
    """Drop blanks, repeats, and ``exclude`` while keeping first-seen order."""

    seen: set[str] = {exclude}
    result: list[str] = []
    for raw in paths:
        text = str(raw)
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _optional_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ImageMetadata:
    """Metadata for one distinct image content, keyed by ``file_hash``.

    ``file_path`` is the first location at which the content was merged;
    ``duplicate_paths`` lists every other known location, never repeating a
    path and never repeating ``file_path``.
    """

    file_path: str
    file_hash: str
    width: int
    height: int
    thumbnail_path: str
    camera_make: str | None = None
    camera_model: str | None = None
    date_taken: str | None = None
    gps_latitude: float | None = None
    gps_longitude: float | None = None
    duplicate_paths: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.duplicate_paths = _unique_paths(self.duplicate_paths, exclude=self.file_path)

    @property
    def all_paths(self) -> list[str]:
        """Every known location of this content, primary first."""

        return [self.file_path, *self.duplicate_paths]

    def knows_path(self, path: str) -> bool:
        return path == self.file_path or path in self.duplicate_paths

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ImageMetadata":
        """Build a record from a stored or JSON document, tolerating missing optionals."""

        raw_duplicates = payload.get("duplicate_paths") or []
        if isinstance(raw_duplicates, str):
            raw_duplicates = [raw_duplicates]

        return cls(
            file_path=str(payload["file_path"]),
            file_hash=str(payload["file_hash"]),
            width=int(payload.get("width") or 0),
            height=int(payload.get("height") or 0),
            thumbnail_path=str(payload.get("thumbnail_path") or ""),
            camera_make=_optional_str(payload.get("camera_make")),
            camera_model=_optional_str(payload.get("camera_model")),
            date_taken=_optional_str(payload.get("date_taken")),
            gps_latitude=_optional_float(payload.get("gps_latitude")),
            gps_longitude=_optional_float(payload.get("gps_longitude")),
            duplicate_paths=list(raw_duplicates),
        )


def merge_duplicate_path(existing: ImageMetadata, incoming: ImageMetadata) -> ImageMetadata | None:
    """Fold ``incoming.file_path`` into ``existing`` as a duplicate location.

    Returns the merged record, or ``None`` when the path is already known and
    the stored document must stay untouched. Every other field is taken from
    ``existing``: the first-seen metadata wins.
    """

    if existing.file_hash != incoming.file_hash:
        raise ValueError(
            f"cannot merge records with different hashes: {existing.file_hash} != {incoming.file_hash}"
        )

    if existing.knows_path(incoming.file_path):
        return None

    return replace(existing, duplicate_paths=[*existing.duplicate_paths, incoming.file_path])


__all__ = ["TEXT_FIELDS", "ImageMetadata", "merge_duplicate_path"]
