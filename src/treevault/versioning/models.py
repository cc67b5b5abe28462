"""Pydantic models for the version repository.

- ``RepositoryConfig`` / ``VersionRepository``: repository record
  persisted as ``config.json``.
- ``VersionMetadata`` / ``FileVersion``: one committed file revision,
  persisted as ``metadata/<id>.json``.
- ``VersionSnapshot``: a whole-tree capture, persisted as
  ``snapshots/<id>.json``.
- ``ChangeType`` / ``VersionDiff``: result of comparing two versions.
- ``VersionResult`` / ``RestoreResult`` / ``SnapshotRestoreResult``:
  operation outcomes.

Persisted records are frozen; a version is never mutated after creation.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from treevault.core.models import FileError

DEFAULT_VERSIONING_EXCLUDES: tuple[str, ...] = (
    ".git/**",
    "node_modules/**",
    ".tmp",
    ".cache/**",
)
DEFAULT_MAX_VERSIONS = 10
DEFAULT_REPOSITORY_DIR = ".versions"


class RepositoryConfig(BaseModel):
    """Policy stored with a repository.

    Attributes:
        exclude_patterns: Glob patterns skipped by snapshots.
        store_metadata: Keep original name, times and MIME type per version.
        duplicate_snapshot_payload: Copy file content into each snapshot
            so it can be restored later.
        hash_algorithm: Content hash used for idempotence checks.
    """

    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_VERSIONING_EXCLUDES)
    )
    store_metadata: bool = True
    duplicate_snapshot_payload: bool = True
    hash_algorithm: str = "sha256"

    model_config = {"frozen": True}


class VersionRepository(BaseModel):
    """A version store bound to one tracked tree."""

    base_path: str
    repository_path: str
    max_versions: int = Field(default=DEFAULT_MAX_VERSIONS, ge=1)
    total_versions: int = 0
    total_size: int = 0
    created: datetime
    last_snapshot: datetime | None = None
    config: RepositoryConfig = Field(default_factory=RepositoryConfig)

    model_config = {"frozen": True}


class VersionMetadata(BaseModel):
    """Extra information retained when ``store_metadata`` is enabled."""

    original_name: str
    created: datetime
    modified: datetime
    mime_type: str
    blob_path: str | None = None

    model_config = {"frozen": True}


class FileVersion(BaseModel):
    """One committed revision of a single file.

    Attributes:
        id: Globally unique identifier.
        file_path: POSIX path relative to the repository's tracked root.
        version: Positive, monotonically increasing per ``file_path``.
        timestamp: When the version was recorded.
        size: Size in bytes of the captured content.
        content_hash: Hex digest of the captured content.
        blob: Blob location relative to the repository (``None`` inside
            snapshots, whose content lives in the snapshot payload).
    """

    id: str
    file_path: str
    version: int = Field(ge=1)
    timestamp: datetime
    size: int
    content_hash: str
    comment: str | None = None
    author: str | None = None
    tags: set[str] = Field(default_factory=set)
    blob: str | None = None
    metadata: VersionMetadata | None = None

    model_config = {"frozen": True}


class VersionSnapshot(BaseModel):
    """Capture of every non-excluded file of a tree at one moment."""

    id: str
    name: str
    description: str | None = None
    timestamp: datetime
    base_path: str
    files: list[FileVersion] = Field(default_factory=list)
    total_size: int = 0
    author: str | None = None
    has_payload: bool = False
    errors: list[FileError] = Field(default_factory=list)

    model_config = {"frozen": True}


class ChangeType(str, Enum):
    UNCHANGED = "unchanged"
    SIZE_CHANGED = "size_changed"
    CONTENT_CHANGED = "content_changed"


class VersionDiff(BaseModel):
    """Metadata-level comparison of two versions."""

    file_path: str
    old_version: FileVersion
    new_version: FileVersion
    change_type: ChangeType
    size_delta: int
    summary: str

    model_config = {"frozen": True}


class VersionResult(BaseModel):
    """Outcome of ``create_file_version``.

    ``created`` is ``False`` when the content matched an existing version
    and that version was returned instead.
    """

    version: FileVersion
    created: bool
    pruned: list[str] = Field(default_factory=list)
    dry_run: bool = False

    model_config = {"frozen": True}


class RestoreResult(BaseModel):
    file_path: str
    version: FileVersion
    backup_path: str | None = None
    dry_run: bool = False

    model_config = {"frozen": True}


class SnapshotRestoreResult(BaseModel):
    snapshot_id: str
    target_path: str
    files_restored: int = 0
    bytes_restored: int = 0
    backups: list[str] = Field(default_factory=list)
    errors: list[FileError] = Field(default_factory=list)
    dry_run: bool = False

    model_config = {"frozen": True}
