"""Filesystem helpers used by auto-tidy."""
from __future__ import annotations

import hashlib
import threading
from pathlib import Path

UNIQUE_NAME_LIMIT = 999
SMALL_FILE_THRESHOLD = 8 * 1024
HASH_CHUNK_SIZE = 64 * 1024


class UniqueNameExhausted(OSError):
    """Raised when no free ``name_N`` variant exists below the limit."""


class ScanCancelled(Exception):
    """Raised when a long-running scan step notices a cancellation request."""


def ensure_directory(path: Path) -> Path:
    """Ensure that *path* exists as a directory and return it."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def split_name(file_name: str) -> tuple[str, str]:
    """Split *file_name* into ``(base, extension)`` at the last dot.

    A leading dot belongs to the base so ``.bashrc`` keeps an empty extension.
    """

    dot_index = file_name.rfind(".")
    if dot_index > 0:
        return file_name[:dot_index], file_name[dot_index:]
    return file_name, ""


def _taken(path: Path) -> bool:
    return path.is_symlink() or path.exists()


def unique_path(base: Path, *, limit: int = UNIQUE_NAME_LIMIT) -> Path:
    """Return *base* or the first free ``stem_N.ext`` sibling with ``N <= limit``."""

    if not _taken(base):
        return base

    stem, suffix = split_name(base.name)
    for counter in range(1, limit + 1):
        candidate = base.with_name(f"{stem}_{counter}{suffix}")
        if not _taken(candidate):
            return candidate
    raise UniqueNameExhausted(f"No free name for {base} after {limit} attempts")


def file_extension(path: Path) -> str | None:
    """Return the lower-cased text after the last ``.`` of the file name."""

    name = path.name
    if "." not in name:
        return None
    extension = name[name.rfind(".") + 1:].lower()
    return extension or None


def hash_file(path: Path, cancelled: threading.Event | None = None) -> str:
    """SHA-256 of *path*; files above the small-file threshold are streamed.

    When *cancelled* is set between two chunks, :class:`ScanCancelled` is
    raised and the partial digest is discarded.
    """

    digest = hashlib.sha256()
    if path.stat().st_size <= SMALL_FILE_THRESHOLD:
        digest.update(path.read_bytes())
        return digest.hexdigest()
    with path.open("rb") as handle:
        while True:
            if cancelled is not None and cancelled.is_set():
                raise ScanCancelled(f"Hashing of {path} cancelled")
            chunk = handle.read(HASH_CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def is_within(path: Path, folder: Path) -> bool:
    try:
        path.relative_to(folder)
    except ValueError:
        return False
    return True


__all__ = [
    "HASH_CHUNK_SIZE",
    "SMALL_FILE_THRESHOLD",
    "ScanCancelled",
    "UNIQUE_NAME_LIMIT",
    "UniqueNameExhausted",
    "ensure_directory",
    "file_extension",
    "hash_file",
    "is_within",
    "split_name",
    "unique_path",
]
