"""Hash-addressed thumbnail generation."""

from __future__ import annotations

from pathlib import Path

from PIL import Image
from PIL.Image import Resampling

from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "thumbnailing"})


def build_thumbnail_image(image: Image.Image, max_side: int) -> Image.Image:
    """Return an RGB copy of ``image`` fitted inside a ``max_side`` square, aspect preserved."""

    safe_side = max(1, int(max_side))
    resized = image.convert("RGB") if image.mode != "RGB" else image.copy()
    resized.thumbnail((safe_side, safe_side), resample=Resampling.LANCZOS)
    return resized


def save_thumbnail(image: Image.Image, output_path: Path, max_side: int, quality: int) -> Path:
    """Resize ``image`` and write it to ``output_path`` as JPEG, replacing any existing file.

    The parent directory is created when missing. Identical content always
    maps to the same ``output_path``, so overwriting is harmless.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)
    resized = build_thumbnail_image(image, max_side)

    try:
        resized.save(output_path, format="JPEG", quality=quality)
    except OSError as exc:
        LOGGER.error(
            "thumbnail_save_error",
            extra={"path": str(output_path), "max_side": max_side, "quality": quality, "error": str(exc)},
        )
        raise
    return output_path


__all__ = ["build_thumbnail_image", "save_thumbnail"]
