"""Content identity: chunked hashing and stat helpers.

Two files are considered identical when their content hashes match.  The
hash algorithm is selectable per repository / per sync call:

* ``md5``, ``sha1``, ``sha256`` (default), ``sha512`` via :mod:`hashlib`.
* ``xxh64`` via the ``xxhash`` library, a fast non-cryptographic digest
  for large trees where collision resistance against adversaries does not
  matter.
"""

from __future__ import annotations

import hashlib
import mimetypes
import os
from pathlib import Path
from typing import Any, Callable

import xxhash

from .models import FileIdentity, FileStat

DEFAULT_ALGORITHM = "sha256"
CHUNK_SIZE = 1024 * 1024

_HASHERS: dict[str, Callable[[], Any]] = {
    "md5": hashlib.md5,
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
    "xxh64": xxhash.xxh64,
}

HASH_ALGORITHMS: tuple[str, ...] = tuple(sorted(_HASHERS))


def new_hasher(algorithm: str = DEFAULT_ALGORITHM) -> Any:
    """Return a fresh hash object for *algorithm*.

    Raises:
        ValueError: If the algorithm is not supported.
    """
    try:
        factory = _HASHERS[algorithm.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown hash algorithm: {algorithm!r}. "
            f"Valid algorithms: {', '.join(HASH_ALGORITHMS)}"
        ) from None
    return factory()


def hash_file(
    path: str | os.PathLike[str],
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = CHUNK_SIZE,
) -> str:
    """Compute the hex digest of a file's content, reading in chunks."""
    hasher = new_hasher(algorithm)
    with open(path, "rb") as fh:
        while chunk := fh.read(chunk_size):
            hasher.update(chunk)
    return hasher.hexdigest()


def stat_file(path: str | os.PathLike[str]) -> FileStat:
    st = os.stat(path)
    return FileStat(
        size=st.st_size,
        mtime=st.st_mtime,
        atime=st.st_atime,
        ctime=st.st_ctime,
    )


def identify(
    path: Path,
    root: Path,
    algorithm: str | None = DEFAULT_ALGORITHM,
) -> FileIdentity:
    """Stat (and optionally hash) *path*, keyed by its path relative to *root*.

    Args:
        path: The file to identify.
        root: Tree root the relative path is computed against.
        algorithm: Hash algorithm, or ``None`` to skip hashing.
    """
    content_hash = hash_file(path, algorithm) if algorithm else None
    return FileIdentity(
        relative_path=path.relative_to(root).as_posix(),
        stat=stat_file(path),
        content_hash=content_hash,
        algorithm=algorithm or DEFAULT_ALGORITHM,
    )


def guess_mime_type(path: str | os.PathLike[str]) -> str:
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or "application/octet-stream"
