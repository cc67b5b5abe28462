"""Pydantic models shared across the sync and versioning packages.

- ``FileStat``: size and timestamps of one file.
- ``FileIdentity``: a file's relative path, stat and content hash.
- ``FileError``: one per-file failure recorded in a report.

All models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class FileStat(BaseModel):
    """Size and timestamps (seconds since the epoch) of a regular file."""

    size: int
    mtime: float
    atime: float
    ctime: float

    model_config = {"frozen": True}


class FileIdentity(BaseModel):
    """Content identity of a file relative to a tree root.

    Attributes:
        relative_path: POSIX path relative to the walked root.
        stat: Size and timestamps.
        content_hash: Hex digest of the file content, or ``None`` when the
            caller asked for metadata only.
        algorithm: Name of the hash algorithm used.
    """

    relative_path: str
    stat: FileStat
    content_hash: str | None = None
    algorithm: str = "sha256"

    model_config = {"frozen": True}


class FileError(BaseModel):
    """A per-file failure recorded in a report instead of aborting the run.

    Attributes:
        path: Path relative to the tree root the operation ran against.
        operation: What was being attempted (``copy``, ``delete``, ``hash``, ...).
        error: Human-readable failure description.
        timestamp: When the failure was recorded.
    """

    path: str
    operation: str
    error: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    model_config = {"frozen": True}
