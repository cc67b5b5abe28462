"""Content-addressed file versioning.

Modules:

- ``manager`` -- ``VersionManager``: repository lifecycle, file versions,
  snapshots, restore and comparison.
- ``store``   -- ``RepositoryStore``: on-disk layout and atomic records.
- ``models``  -- ``VersionRepository``, ``FileVersion``,
  ``VersionSnapshot``, ``VersionDiff``: data contracts.
"""

from .manager import VersionManager
from .models import (
    ChangeType,
    FileVersion,
    RepositoryConfig,
    RestoreResult,
    SnapshotRestoreResult,
    VersionDiff,
    VersionRepository,
    VersionResult,
    VersionSnapshot,
)
from .store import RepositoryStore

__all__ = [
    "ChangeType",
    "FileVersion",
    "RepositoryConfig",
    "RepositoryStore",
    "RestoreResult",
    "SnapshotRestoreResult",
    "VersionDiff",
    "VersionManager",
    "VersionRepository",
    "VersionResult",
    "VersionSnapshot",
]
