"""Content hashing for image files."""

from __future__ import annotations

from pathlib import Path
from typing import Final

import xxhash

CONTENT_HASH_ALGO: Final[str] = "xxh3-128"
HASH_CHUNK_SIZE: Final[int] = 1 << 20


def compute_content_hash(path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Compute the content hash of a file by streaming its bytes.

    The file is read in fixed-size chunks, so memory use does not depend on
    the file size. Two files share a hash exactly when their bytes are equal
    (up to the collision odds of a 128-bit digest).

    Args:
        path: Path to the file whose content should be hashed.
        chunk_size: Size of the read buffer in bytes.

    Returns:
        Content hash as a 32-character lowercase hexadecimal string.

    Raises:
        OSError: When the file cannot be opened or read.
    """

    hasher = xxhash.xxh3_128()

    with path.open("rb") as handle:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            hasher.update(chunk)

    return hasher.hexdigest()


def is_content_hash(value: str) -> bool:
    """Return ``True`` when ``value`` looks like a digest produced by :func:`compute_content_hash`."""

    return len(value) == 32 and all(ch in "0123456789abcdef" for ch in value)


__all__ = ["CONTENT_HASH_ALGO", "HASH_CHUNK_SIZE", "compute_content_hash", "is_content_hash"]
