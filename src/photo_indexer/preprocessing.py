"""Per-image extraction: content hash, EXIF fields, dimensions and thumbnail."""

from __future__ import annotations

from collections.abc import Container, Sequence
from dataclasses import dataclass
from pathlib import Path

from PIL import ExifTags, Image

from photo_indexer.config import Settings
from photo_indexer.errors import ProcessingError
from photo_indexer.hasher import compute_content_hash
from photo_indexer.metadata import ImageMetadata
from photo_indexer.thumbnailing import save_thumbnail
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "preprocessing"})


@dataclass
class ExifFields:
    """Descriptive fields read from an image's EXIF container; any may be missing."""

    camera_make: str | None = None
    camera_model: str | None = None
    date_taken: str | None = None
    gps_latitude: float | None = None
    gps_longitude: float | None = None


def _clean_text(value: object) -> str | None:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        return None
    text = value.strip("\x00").strip()
    return text or None


def _gps_to_degrees(value: object, ref: object) -> float | None:
    """Convert an EXIF ``(degrees, minutes, seconds)`` triple to signed decimal degrees.

    Southern latitudes and western longitudes are negative.
    """

    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)) or len(value) < 3:
        return None
    try:
        degrees = float(value[0]) + float(value[1]) / 60.0 + float(value[2]) / 3600.0
    except (TypeError, ValueError, ZeroDivisionError):
        return None

    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if isinstance(ref, str) and ref.strip("\x00").strip().upper() in {"S", "W"}:
        degrees = -degrees
    return degrees


def extract_exif_fields(image: Image.Image) -> ExifFields:
    """Read camera make/model, capture time and GPS position from ``image``.

    Extraction is best effort: a missing or unreadable container yields an
    empty :class:`ExifFields` and a broken sub-directory only drops its own
    fields.
    """

    fields = ExifFields()
    try:
        exif = image.getexif()
    except Exception as exc:  # noqa: BLE001 - corrupt containers surface as arbitrary errors
        LOGGER.debug("exif_read_error", extra={"error": str(exc)})
        return fields

    if not exif:
        return fields

    fields.camera_make = _clean_text(exif.get(ExifTags.Base.Make))
    fields.camera_model = _clean_text(exif.get(ExifTags.Base.Model))

    try:
        exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
    except Exception as exc:  # noqa: BLE001
        LOGGER.debug("exif_ifd_error", extra={"error": str(exc)})
        exif_ifd = {}
    fields.date_taken = _clean_text(exif_ifd.get(ExifTags.Base.DateTimeOriginal)) or _clean_text(
        exif.get(ExifTags.Base.DateTime)
    )

    try:
        gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)
    except Exception as exc:  # noqa: BLE001
        LOGGER.debug("gps_ifd_error", extra={"error": str(exc)})
        gps_ifd = {}
    if gps_ifd:
        latitude = _gps_to_degrees(gps_ifd.get(ExifTags.GPS.GPSLatitude), gps_ifd.get(ExifTags.GPS.GPSLatitudeRef))
        longitude = _gps_to_degrees(
            gps_ifd.get(ExifTags.GPS.GPSLongitude), gps_ifd.get(ExifTags.GPS.GPSLongitudeRef)
        )
        # A half coordinate is useless to callers.
        if latitude is not None and longitude is not None:
            fields.gps_latitude = latitude
            fields.gps_longitude = longitude

    return fields


def lightweight_record(path: Path, file_hash: str, settings: Settings) -> ImageMetadata:
    """Record for content that is already indexed; only its path and hash matter to the merge."""

    return ImageMetadata(
        file_path=str(path),
        file_hash=file_hash,
        width=0,
        height=0,
        thumbnail_path=str(settings.thumbnails.path_for(file_hash)),
    )


def process_image(
    path: Path,
    settings: Settings,
    known_hashes: Container[str] | None = None,
) -> tuple[ImageMetadata, bool]:
    """Build the metadata record for one image file.

    Steps run in order: content hash, EXIF fields, pixel dimensions, thumbnail.
    When the hash is in ``known_hashes`` only the hash step runs and a
    lightweight record is returned.

    Returns:
        The record and whether it was a lightweight (reused) one.

    Raises:
        ProcessingError: When hashing, decoding or thumbnailing fails.
    """

    try:
        file_hash = compute_content_hash(path)
    except OSError as exc:
        raise ProcessingError(path, "hash", exc) from exc

    if known_hashes is not None and file_hash in known_hashes:
        return lightweight_record(path, file_hash, settings), True

    thumbnail_path = settings.thumbnails.path_for(file_hash)
    try:
        with Image.open(path) as image:
            fields = extract_exif_fields(image)
            width, height = image.size
            try:
                save_thumbnail(image, thumbnail_path, settings.thumbnails.max_side, settings.thumbnails.quality)
            except (OSError, ValueError, Image.DecompressionBombError) as exc:
                raise ProcessingError(path, "thumbnail", exc) from exc
    except ProcessingError:
        raise
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ProcessingError(path, "decode", exc) from exc

    record = ImageMetadata(
        file_path=str(path),
        file_hash=file_hash,
        width=int(width),
        height=int(height),
        thumbnail_path=str(thumbnail_path),
        camera_make=fields.camera_make,
        camera_model=fields.camera_model,
        date_taken=fields.date_taken,
        gps_latitude=fields.gps_latitude,
        gps_longitude=fields.gps_longitude,
    )
    return record, False


__all__ = ["ExifFields", "extract_exif_fields", "lightweight_record", "process_image"]
