"""Version manager: per-file history and whole-tree snapshots.

The ``VersionManager`` owns every operation on a version repository:

1. ``initialize_repository`` creates the layout and the policy record.
2. ``create_file_version`` stores a new revision of one file, unless its
   content already matches a live version, then prunes the oldest
   revisions beyond ``max_versions``.
3. ``create_snapshot`` captures every non-excluded file of a tree, with an
   optional payload copy for later restore.
4. ``restore_file_version`` / ``restore_snapshot`` write stored content
   back, backing up whatever they overwrite first.
5. ``compare_versions`` / ``get_version_history`` / ``list_snapshots``
   answer read-only queries.

Repository state is re-read from disk on every call.  Creating a version
for one ``(repository, file)`` pair is a critical section; updates to the
repository totals are serialized per repository.
"""

from __future__ import annotations

import logging
import os
import re
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from treevault.core import fileops
from treevault.core.formatting import format_signed_size
from treevault.core.identity import (
    guess_mime_type,
    hash_file,
    identify,
    new_hasher,
    stat_file,
)
from treevault.core.locks import KeyedLock
from treevault.core.models import FileError
from treevault.core.patterns import GlobMatcher
from treevault.core.walker import TreeWalker, WalkEntry
from treevault.core.workers import run_bounded
from treevault.errors import NotFoundError, PreconditionError
from treevault.versioning.models import (
    DEFAULT_MAX_VERSIONS,
    DEFAULT_REPOSITORY_DIR,
    ChangeType,
    FileVersion,
    RepositoryConfig,
    RestoreResult,
    SnapshotRestoreResult,
    VersionDiff,
    VersionMetadata,
    VersionRepository,
    VersionResult,
    VersionSnapshot,
)
from treevault.versioning.store import RepositoryStore

logger = logging.getLogger(__name__)

# Shared by every manager in the process.
_LOCKS = KeyedLock()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _utc(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _safe_name(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name) or "file"


def _version_id(file_path: str, version: int) -> str:
    return (
        f"{_safe_name(Path(file_path).name)}_v{version}_"
        f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
    )


def _snapshot_id(name: str) -> str:
    return f"snapshot_{_safe_name(name)}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class VersionManager:
    """Create, query and restore versions in a repository.

    Args:
        max_workers: Upper bound on concurrent per-file work in snapshots.
        hash_algorithm: Default algorithm for newly initialized
            repositories; existing repositories keep their own.
    """

    def __init__(
        self, *, max_workers: int = 4, hash_algorithm: str = "sha256"
    ) -> None:
        self.max_workers = max_workers
        self.hash_algorithm = hash_algorithm

    # ------------------------------------------------------------------
    # Repository lifecycle
    # ------------------------------------------------------------------

    def initialize_repository(
        self,
        base_path: Path,
        repository_path: Path | None = None,
        *,
        max_versions: int = DEFAULT_MAX_VERSIONS,
        store_metadata: bool = True,
        duplicate_snapshot_payload: bool = True,
        exclude_patterns: Iterable[str] | None = None,
        hash_algorithm: str | None = None,
    ) -> VersionRepository:
        """Create a repository tracking *base_path*.

        The repository defaults to ``<base_path>/.versions``.

        Raises:
            NotFoundError: If *base_path* is not an existing directory.
            PreconditionError: If the repository already exists, overlaps
                the tracked tree badly, or *max_versions* is below 1.
            ValueError: If *hash_algorithm* is unknown.
        """
        base = Path(base_path)
        if not base.is_dir():
            raise NotFoundError(f"Base directory not found: {base}")
        if max_versions < 1:
            raise PreconditionError(
                f"max_versions must be at least 1 (got {max_versions})"
            )
        algorithm = hash_algorithm or self.hash_algorithm
        new_hasher(algorithm)

        base = base.resolve()
        repo_root = (
            Path(repository_path) if repository_path else base / DEFAULT_REPOSITORY_DIR
        ).resolve()
        store = RepositoryStore(repo_root)
        if store.exists():
            raise PreconditionError(f"Repository already initialized at {repo_root}")
        if repo_root == base or base.is_relative_to(repo_root):
            raise PreconditionError(
                f"Repository {repo_root} must not contain the tracked tree {base}"
            )

        config = (
            RepositoryConfig(
                exclude_patterns=list(exclude_patterns),
                store_metadata=store_metadata,
                duplicate_snapshot_payload=duplicate_snapshot_payload,
                hash_algorithm=algorithm,
            )
            if exclude_patterns is not None
            else RepositoryConfig(
                store_metadata=store_metadata,
                duplicate_snapshot_payload=duplicate_snapshot_payload,
                hash_algorithm=algorithm,
            )
        )
        if repo_root.is_relative_to(base):
            self._check_not_excluded(
                repo_root.relative_to(base).as_posix(), config.exclude_patterns
            )

        store.create_layout()
        repository = VersionRepository(
            base_path=str(base),
            repository_path=str(repo_root),
            max_versions=max_versions,
            created=_now(),
            config=config,
        )
        store.save_repository(repository)
        logger.info(
            "Initialized repository %s for %s (max_versions=%d)",
            repo_root,
            base,
            max_versions,
        )
        return repository

    def load_repository(self, repository_path: Path) -> VersionRepository:
        return RepositoryStore(Path(repository_path)).load_repository()

    # ------------------------------------------------------------------
    # File versions
    # ------------------------------------------------------------------

    def create_file_version(
        self,
        file_path: Path | str,
        repository_path: Path,
        comment: str | None = None,
        author: str | None = None,
        tags: Iterable[str] | None = None,
        dry_run: bool = False,
    ) -> VersionResult:
        """Record the current content of *file_path* as a new version.

        Returns the existing version (``created=False``) when the content
        hash matches a live version of the same file.

        Raises:
            NotFoundError: If the repository or the file does not exist.
            PreconditionError: If the file lies outside the tracked tree.
        """
        store, repo = self._open(repository_path)
        path, rel = self._resolve_tracked(repo, store, file_path)
        if not path.is_file():
            raise NotFoundError(f"File not found: {path}")

        algorithm = repo.config.hash_algorithm
        with _LOCKS.hold(("version", str(store.root), rel)):
            # The stored blob is hashed, not the live file, so the recorded
            # hash always describes what was kept.
            staged = (
                None
                if dry_run
                else store.versions_dir / f".{uuid.uuid4().hex}.partial"
            )
            try:
                if staged is None:
                    identity = identify(path, path.parent, algorithm)
                else:
                    fileops.copy_file(path, staged, preserve_timestamps=True)
                    identity = identify(staged, staged.parent, algorithm)
                content_hash = identity.content_hash

                existing = store.versions_for(rel)
                for live in reversed(existing):
                    if live.content_hash == content_hash:
                        logger.info(
                            "%s unchanged since version %d; not creating a new one",
                            rel,
                            live.version,
                        )
                        return VersionResult(
                            version=live, created=False, dry_run=dry_run
                        )

                number = existing[-1].version + 1 if existing else 1
                st = stat_file(path)
                blob = store.blob_path(rel, number)
                metadata = None
                if repo.config.store_metadata:
                    metadata = VersionMetadata(
                        original_name=path.name,
                        created=_utc(st.ctime),
                        modified=_utc(st.mtime),
                        mime_type=guess_mime_type(path),
                        blob_path=blob.relative_to(store.root).as_posix(),
                    )
                version = FileVersion(
                    id=_version_id(rel, number),
                    file_path=rel,
                    version=number,
                    timestamp=_now(),
                    size=identity.stat.size,
                    content_hash=content_hash,
                    comment=comment,
                    author=author,
                    tags=set(tags or ()),
                    blob=blob.relative_to(store.root).as_posix(),
                    metadata=metadata,
                )
                retained = existing + [version]
                excess = retained[: -repo.max_versions] if len(retained) > repo.max_versions else []
                pruned = [old.id for old in excess]

                if staged is None:
                    logger.info("[dry run] would create %s v%d", rel, number)
                    return VersionResult(
                        version=version, created=True, pruned=pruned, dry_run=True
                    )

                blob.parent.mkdir(parents=True, exist_ok=True)
                os.replace(staged, blob)
                try:
                    store.save_version(version)
                except BaseException:
                    blob.unlink(missing_ok=True)
                    raise
            finally:
                if staged is not None:
                    staged.unlink(missing_ok=True)

            for old in excess:
                logger.info("Pruning %s v%d (%s)", rel, old.version, old.id)
                store.delete_version(old)

        self._refresh_totals(store)
        logger.info("Created %s v%d (%s)", rel, number, version.id)
        return VersionResult(version=version, created=True, pruned=pruned)

    def get_version_history(
        self, file_path: Path | str, repository_path: Path
    ) -> list[FileVersion]:
        """All live versions of *file_path*, newest first.

        The file itself need not exist any more.
        """
        store, repo = self._open(repository_path)
        _, rel = self._resolve_tracked(repo, store, file_path)
        return list(reversed(store.versions_for(rel)))

    def compare_versions(
        self, repository_path: Path, version_id1: str, version_id2: str
    ) -> VersionDiff:
        """Compare two versions by hash and size (no content diff)."""
        store, _ = self._open(repository_path)
        old = store.load_version(version_id1)
        new = store.load_version(version_id2)
        delta = new.size - old.size

        if old.content_hash == new.content_hash:
            change_type = ChangeType.UNCHANGED
            summary = "No content changes"
        elif delta != 0:
            change_type = ChangeType.SIZE_CHANGED
            summary = f"File size changed by {format_signed_size(delta)}"
        else:
            change_type = ChangeType.CONTENT_CHANGED
            summary = "Content changed (same size)"

        return VersionDiff(
            file_path=new.file_path,
            old_version=old,
            new_version=new,
            change_type=change_type,
            size_delta=delta,
            summary=summary,
        )

    def restore_file_version(
        self,
        file_path: Path | str | None,
        repository_path: Path,
        version_id: str,
        dry_run: bool = False,
    ) -> RestoreResult:
        """Write the content of *version_id* to *file_path*.

        *file_path* defaults to the version's own location in the tracked
        tree.  An existing file is first copied to
        ``<file>.backup.<epoch ms>``; if that copy fails the restore still
        proceeds.

        Raises:
            NotFoundError: If the version record or its content is missing.
        """
        store, repo = self._open(repository_path)
        version = store.load_version(version_id)
        blob = store.resolve_blob(version)

        if file_path is None:
            target = Path(repo.base_path) / version.file_path
        else:
            target = Path(file_path)
            if not target.is_absolute():
                target = Path(repo.base_path) / target

        if dry_run:
            logger.info("[dry run] would restore %s to %s", version.id, target)
            return RestoreResult(file_path=str(target), version=version, dry_run=True)

        backup_path = None
        if target.exists():
            try:
                backup_path = str(fileops.backup_file(target))
            except OSError as e:
                logger.warning("Could not back up %s before restore: %s", target, e)

        fileops.copy_file(blob, target, preserve_timestamps=True)
        if version.metadata is not None:
            os.utime(target, (time.time(), version.metadata.modified.timestamp()))
        logger.info("Restored %s v%d to %s", version.file_path, version.version, target)
        return RestoreResult(
            file_path=str(target), version=version, backup_path=backup_path
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def create_snapshot(
        self,
        base_path: Path,
        repository_path: Path,
        name: str,
        description: str | None = None,
        author: str | None = None,
        dry_run: bool = False,
    ) -> VersionSnapshot:
        """Capture every non-excluded file under *base_path*.

        Files that cannot be read are recorded in ``errors`` and left out.
        When payload duplication is enabled the content is staged first and
        the record written last, so a snapshot record always has its
        payload.
        """
        store, repo = self._open(repository_path)
        base = Path(base_path)
        walker = TreeWalker(repo.config.exclude_patterns, excluded_dirs=[store.root])
        walk = walker.walk(base)

        snapshot_id = _snapshot_id(name)
        timestamp = _now()
        algorithm = repo.config.hash_algorithm
        with_payload = repo.config.duplicate_snapshot_payload
        staging = (
            store.snapshots_dir / f".{snapshot_id}.partial"
            if with_payload and not dry_run
            else None
        )

        def _capture(entry: WalkEntry) -> FileVersion | FileError:
            rel = entry.relative_path
            try:
                if staging is not None:
                    captured = staging / rel
                    size = fileops.copy_file(entry.path, captured, preserve_timestamps=True)
                else:
                    captured = entry.path
                    size = entry.size
                metadata = None
                if repo.config.store_metadata:
                    st = stat_file(entry.path)
                    metadata = VersionMetadata(
                        original_name=entry.path.name,
                        created=_utc(st.ctime),
                        modified=_utc(st.mtime),
                        mime_type=guess_mime_type(entry.path),
                    )
                return FileVersion(
                    id=_version_id(rel, 1),
                    file_path=rel,
                    version=1,
                    timestamp=timestamp,
                    size=size,
                    content_hash=hash_file(captured, algorithm),
                    comment=f"Snapshot: {name}",
                    author=author,
                    metadata=metadata,
                )
            except OSError as e:
                logger.warning("Skipping %s in snapshot %s: %s", rel, name, e)
                return FileError(path=rel, operation="snapshot", error=str(e))

        run = run_bounded(_capture, walk.entries, max_workers=self.max_workers)
        files = [r for _, r in run.results if isinstance(r, FileVersion)]
        errors = list(walk.errors) + [
            r for _, r in run.results if isinstance(r, FileError)
        ]
        snapshot = VersionSnapshot(
            id=snapshot_id,
            name=name,
            description=description,
            timestamp=timestamp,
            base_path=str(base.resolve()),
            files=files,
            total_size=sum(f.size for f in files),
            author=author,
            has_payload=with_payload,
            errors=sorted(errors, key=lambda e: e.path),
        )
        if dry_run:
            logger.info(
                "[dry run] snapshot %s would capture %d files", name, len(files)
            )
            return snapshot

        payload = store.payload_dir(snapshot_id)
        try:
            if staging is not None:
                if staging.exists():
                    os.replace(staging, payload)
                else:
                    payload.mkdir(parents=True)
            store.save_snapshot(snapshot)
        except BaseException:
            if staging is not None:
                store.discard_payload(staging)
                store.discard_payload(payload)
            raise

        with _LOCKS.hold(("repository", str(store.root))):
            repo = store.load_repository()
            store.save_repository(repo.model_copy(update={"last_snapshot": timestamp}))
        logger.info(
            "Created snapshot %s (%s): %d files, %d errors",
            snapshot_id,
            name,
            len(files),
            len(snapshot.errors),
        )
        return snapshot

    def list_snapshots(self, repository_path: Path) -> list[VersionSnapshot]:
        """All snapshots of the repository, newest first."""
        store, _ = self._open(repository_path)
        return sorted(store.iter_snapshots(), key=lambda s: s.timestamp, reverse=True)

    def restore_snapshot(
        self,
        snapshot_id: str,
        repository_path: Path,
        target_path: Path | None = None,
        dry_run: bool = False,
    ) -> SnapshotRestoreResult:
        """Copy a snapshot's payload back into a tree.

        *target_path* defaults to the tree the snapshot was taken from.  Files
        whose current content differs from the snapshot are first copied to
        ``<file>.backup.<epoch ms>`` (best effort); the paths are returned
        in ``backups``.

        Raises:
            NotFoundError: If the snapshot does not exist.
            PreconditionError: If the snapshot was taken without a payload.
        """
        store, repo = self._open(repository_path)
        snapshot = store.load_snapshot(snapshot_id)
        payload = store.payload_dir(snapshot_id)
        if not snapshot.has_payload or not payload.is_dir():
            raise PreconditionError(
                f"Snapshot {snapshot_id} has no stored payload to restore"
            )
        target = Path(target_path) if target_path else Path(snapshot.base_path)
        algorithm = repo.config.hash_algorithm

        def _restore(version: FileVersion) -> tuple[int, str | None] | FileError:
            try:
                src = payload / version.file_path
                if dry_run:
                    return src.stat().st_size, None
                dst = target / version.file_path
                backup = None
                if dst.is_file() and (
                    hash_file(dst, algorithm) != version.content_hash
                ):
                    try:
                        backup = str(fileops.backup_file(dst))
                    except OSError as e:
                        logger.warning(
                            "Could not back up %s before restore: %s", dst, e
                        )
                size = fileops.copy_file(src, dst, preserve_timestamps=True)
                return size, backup
            except OSError as e:
                logger.error("Error restoring %s: %s", version.file_path, e)
                return FileError(
                    path=version.file_path, operation="restore", error=str(e)
                )

        run = run_bounded(_restore, snapshot.files, max_workers=self.max_workers)
        restored = [r for _, r in run.results if isinstance(r, tuple)]
        sizes = [size for size, _ in restored]
        backups = sorted(backup for _, backup in restored if backup is not None)
        errors = [r for _, r in run.results if isinstance(r, FileError)]
        logger.info(
            "%sRestored snapshot %s to %s: %d files",
            "[dry run] " if dry_run else "",
            snapshot_id,
            target,
            len(sizes),
        )
        return SnapshotRestoreResult(
            snapshot_id=snapshot_id,
            target_path=str(target),
            files_restored=len(sizes),
            bytes_restored=sum(sizes),
            backups=backups,
            errors=errors,
            dry_run=dry_run,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _open(repository_path: Path) -> tuple[RepositoryStore, VersionRepository]:
        store = RepositoryStore(Path(repository_path).resolve())
        return store, store.load_repository()

    @staticmethod
    def _resolve_tracked(
        repo: VersionRepository, store: RepositoryStore, file_path: Path | str
    ) -> tuple[Path, str]:
        """Return the absolute path and tracked relative path of a file."""
        base = Path(repo.base_path)
        path = Path(file_path)
        if not path.is_absolute():
            path = base / path
        path = path.resolve()
        if not path.is_relative_to(base):
            raise PreconditionError(
                f"{file_path} is outside the tracked tree {base}"
            )
        if path.is_relative_to(store.root):
            raise PreconditionError(
                f"{file_path} is inside the repository {store.root}"
            )
        return path, path.relative_to(base).as_posix()

    @staticmethod
    def _check_not_excluded(relative_dir: str, patterns: list[str]) -> None:
        matcher = GlobMatcher(patterns)
        parts = relative_dir.split("/")
        for depth in range(1, len(parts)):
            prefix = "/".join(parts[:depth])
            if matcher.matches_dir(prefix):
                raise PreconditionError(
                    f"Repository location {relative_dir} lies inside "
                    f"excluded directory {prefix}"
                )

    @staticmethod
    def _refresh_totals(store: RepositoryStore) -> None:
        with _LOCKS.hold(("repository", str(store.root))):
            repo = store.load_repository()
            versions = list(store.iter_versions())
            store.save_repository(
                repo.model_copy(
                    update={
                        "total_versions": len(versions),
                        "total_size": sum(v.size for v in versions),
                    }
                )
            )
