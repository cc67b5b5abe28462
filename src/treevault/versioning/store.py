"""On-disk layout of a version repository.

Manages the files under a repository directory::

    <repository>/
        config.json                       repository record
        versions/<path key>/<name>.v<N>   version blobs
        metadata/<version id>.json        one FileVersion per file
        snapshots/<snapshot id>.json      snapshot record
        snapshots/<snapshot id>/...       snapshot payload (optional)

Key design choices:

* **Atomic writes** -- every JSON record goes through
  ``fileops.write_json_atomic()`` so readers never see partial data.
* **Fresh reads** -- nothing is cached; each call re-reads the disk, so
  several processes can share a repository.
* **Path keys** -- blobs are grouped under a short digest of the file's
  relative path, so files with the same basename in different
  directories never collide.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from treevault.core import fileops
from treevault.errors import NotFoundError, RepositoryNotInitializedError
from treevault.versioning.models import FileVersion, VersionRepository, VersionSnapshot

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"
VERSIONS_DIR = "versions"
METADATA_DIR = "metadata"
SNAPSHOTS_DIR = "snapshots"


def path_key(file_path: str) -> str:
    """Short stable directory name for a tracked relative path."""
    return hashlib.sha256(file_path.encode("utf-8")).hexdigest()[:16]


class RepositoryStore:
    """Read and write the records of one repository.

    Args:
        root: The repository directory.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILE

    @property
    def versions_dir(self) -> Path:
        return self.root / VERSIONS_DIR

    @property
    def metadata_dir(self) -> Path:
        return self.root / METADATA_DIR

    @property
    def snapshots_dir(self) -> Path:
        return self.root / SNAPSHOTS_DIR

    # ------------------------------------------------------------------
    # Repository record
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.config_path.is_file()

    def create_layout(self) -> None:
        for directory in (self.versions_dir, self.metadata_dir, self.snapshots_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def load_repository(self) -> VersionRepository:
        """Load ``config.json``.

        Raises:
            RepositoryNotInitializedError: If the repository has no config.
        """
        if not self.exists():
            raise RepositoryNotInitializedError(
                f"No version repository at {self.root}"
            )
        return VersionRepository.model_validate(fileops.read_json(self.config_path))

    def save_repository(self, repository: VersionRepository) -> None:
        fileops.write_json_atomic(
            self.config_path, repository.model_dump(mode="json")
        )

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def blob_path(self, file_path: str, version: int) -> Path:
        name = Path(file_path).name
        return self.versions_dir / path_key(file_path) / f"{name}.v{version}"

    def metadata_path(self, version_id: str) -> Path:
        return self.metadata_dir / f"{version_id}.json"

    def iter_versions(self) -> Iterator[FileVersion]:
        """Yield every readable version record.

        Unreadable or malformed records are logged and skipped so one
        corrupt file does not hide the rest of the history.
        """
        if not self.metadata_dir.is_dir():
            return
        for path in sorted(self.metadata_dir.glob("*.json")):
            try:
                yield FileVersion.model_validate(fileops.read_json(path))
            except (OSError, ValueError, ValidationError) as e:
                logger.warning("Skipping unreadable version record %s: %s", path, e)

    def versions_for(self, file_path: str) -> list[FileVersion]:
        """All live versions of *file_path*, oldest first."""
        return sorted(
            (v for v in self.iter_versions() if v.file_path == file_path),
            key=lambda v: v.version,
        )

    def load_version(self, version_id: str) -> FileVersion:
        path = self.metadata_path(version_id)
        if not path.is_file():
            raise NotFoundError(f"Version not found: {version_id}")
        return FileVersion.model_validate(fileops.read_json(path))

    def save_version(self, version: FileVersion) -> None:
        fileops.write_json_atomic(
            self.metadata_path(version.id), version.model_dump(mode="json")
        )

    def delete_version(self, version: FileVersion) -> None:
        """Remove a version's blob and metadata record."""
        if version.blob:
            blob = self.root / version.blob
            if blob.exists():
                blob.unlink()
        self.metadata_path(version.id).unlink(missing_ok=True)

    def resolve_blob(self, version: FileVersion) -> Path:
        if not version.blob:
            raise NotFoundError(f"Version {version.id} has no stored content")
        blob = self.root / version.blob
        if not blob.is_file():
            raise NotFoundError(f"Version content missing: {blob}")
        return blob

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot_path(self, snapshot_id: str) -> Path:
        return self.snapshots_dir / f"{snapshot_id}.json"

    def payload_dir(self, snapshot_id: str) -> Path:
        return self.snapshots_dir / snapshot_id

    def save_snapshot(self, snapshot: VersionSnapshot) -> None:
        fileops.write_json_atomic(
            self.snapshot_path(snapshot.id), snapshot.model_dump(mode="json")
        )

    def load_snapshot(self, snapshot_id: str) -> VersionSnapshot:
        path = self.snapshot_path(snapshot_id)
        if not path.is_file():
            raise NotFoundError(f"Snapshot not found: {snapshot_id}")
        return VersionSnapshot.model_validate(fileops.read_json(path))

    def iter_snapshots(self) -> Iterator[VersionSnapshot]:
        if not self.snapshots_dir.is_dir():
            return
        for path in sorted(self.snapshots_dir.glob("*.json")):
            try:
                yield VersionSnapshot.model_validate(fileops.read_json(path))
            except (OSError, ValueError, ValidationError) as e:
                logger.warning("Skipping unreadable snapshot record %s: %s", path, e)

    def discard_payload(self, directory: Path) -> None:
        shutil.rmtree(directory, ignore_errors=True)
