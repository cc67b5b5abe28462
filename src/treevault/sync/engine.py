"""Directory synchronizer.

The ``Synchronizer`` reconciles two directory trees:

1. Walks both trees with the same exclusions.
2. Decides per file whether content must move, using a two-tier check:
   a cheap metadata comparison first (missing target, size, newer mtime),
   then a content hash only when metadata is inconclusive.
3. Resolves two-sided differences with the configured ``ConflictPolicy``
   (bidirectional mode).
4. Executes copies / deletions on a bounded worker pool.
5. Aggregates a ``SyncReport`` sorted by relative path.

Error handling is per file: a single failure is recorded in the report and
the run continues.  Only a missing or unreadable root aborts the call.
``dry_run`` computes the same report without touching the filesystem.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from treevault.core import fileops
from treevault.core.identity import hash_file, stat_file
from treevault.core.models import FileError
from treevault.core.walker import TreeWalker, WalkEntry, WalkResult
from treevault.core.workers import CancelToken, run_bounded
from treevault.errors import NotFoundError, PreconditionError
from treevault.sync.models import (
    ConflictPolicy,
    CopySide,
    IntegrityReport,
    SyncConflict,
    SyncOptions,
    SyncReport,
)
from treevault.sync.resolver import ConflictCandidate, create_resolver

logger = logging.getLogger(__name__)


@dataclass
class _FileOutcome:
    """Result of processing one relative path."""

    path: str
    copied: bool = False
    skipped: bool = False
    deleted: bool = False
    bytes: int = 0
    conflict: SyncConflict | None = None
    error: FileError | None = None


def _utc(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _backup_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


class Synchronizer:
    """Synchronize, back up and verify directory trees.

    Args:
        defaults: Options used when a call passes none.
    """

    def __init__(self, defaults: SyncOptions | None = None) -> None:
        self.defaults = defaults or SyncOptions()

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def sync_directories(
        self,
        source: Path,
        target: Path,
        options: SyncOptions | None = None,
        token: CancelToken | None = None,
    ) -> SyncReport:
        """Synchronize *target* with *source*.

        One-way unless ``options.bidirectional`` is set, in which case
        *source* and *target* are the two peers of the reconciliation.

        Raises:
            NotFoundError: If a required root does not exist.
            PermissionDeniedError: If a root cannot be listed.
            PreconditionError: If the roots overlap.
        """
        options = options or self.defaults
        token = token or CancelToken(options.timeout)
        source, target = Path(source), Path(target)
        self._check_roots(source, target)

        logger.info(
            "Sync %s %s %s (policy=%s, dry_run=%s)",
            source,
            "<->" if options.bidirectional else "->",
            target,
            options.conflict_resolution.value,
            options.dry_run,
        )
        if options.bidirectional:
            report = self._sync_bidirectional(source, target, options, token)
        else:
            report = self._sync_one_way(source, target, options, token)

        logger.info(
            "Sync finished: %d processed, %d copied, %d deleted, "
            "%d conflicts, %d errors%s",
            report.files_processed,
            report.files_copied,
            report.files_deleted,
            len(report.conflicts),
            len(report.errors),
            " (cancelled)" if report.cancelled else "",
        )
        return report

    def create_incremental_backup(
        self,
        source: Path,
        backup_root: Path,
        options: SyncOptions | None = None,
        token: CancelToken | None = None,
    ) -> SyncReport:
        """Copy *source* into a new ``backup_<timestamp>`` directory.

        Each run gets its own destination; earlier backups are never
        touched.  The report's ``target_path`` names the new directory.
        """
        options = (options or self.defaults).model_copy(
            update={
                "bidirectional": False,
                "delete_extraneous": False,
                "conflict_resolution": ConflictPolicy.SOURCE,
            }
        )
        backup_root = Path(backup_root)
        destination = backup_root / f"backup_{_backup_stamp()}"
        suffix = 1
        while destination.exists():
            destination = backup_root / f"backup_{_backup_stamp()}_{suffix}"
            suffix += 1
        return self.sync_directories(source, destination, options, token)

    def create_mirror_backup(
        self,
        source: Path,
        backup_path: Path,
        options: SyncOptions | None = None,
        token: CancelToken | None = None,
    ) -> SyncReport:
        """Make *backup_path* an exact mirror of *source*.

        Target files with no source counterpart are deleted.
        """
        options = (options or self.defaults).model_copy(
            update={
                "bidirectional": False,
                "delete_extraneous": True,
                "conflict_resolution": ConflictPolicy.SOURCE,
            }
        )
        return self.sync_directories(source, Path(backup_path), options, token)

    def verify_integrity(
        self,
        source: Path,
        target: Path,
        deep: bool = False,
        options: SyncOptions | None = None,
    ) -> IntegrityReport:
        """Check that *target* holds every file of *source*, unchanged.

        Without *deep* the check is metadata only (size, and the source not
        being newer); with *deep* content hashes are compared.
        """
        options = options or self.defaults
        source, target = Path(source), Path(target)
        walker = self._walker(options)
        src_walk = walker.walk(source)
        tgt_walk = walker.walk(target)
        tgt_index = tgt_walk.by_path()

        def _check(entry: WalkEntry) -> tuple[str, FileError | None]:
            other = tgt_index.get(entry.relative_path)
            if other is None:
                return "missing", None
            try:
                if entry.size != other.size:
                    return "mismatched", None
                if deep:
                    algorithm = options.hash_algorithm
                    same = hash_file(entry.path, algorithm) == hash_file(
                        other.path, algorithm
                    )
                else:
                    same = entry.mtime <= other.mtime
                return ("matched" if same else "mismatched"), None
            except OSError as e:
                logger.error("Error verifying %s: %s", entry.relative_path, e)
                return "error", FileError(
                    path=entry.relative_path, operation="verify", error=str(e)
                )

        run = run_bounded(
            _check, src_walk.entries, max_workers=options.max_workers
        )
        buckets: dict[str, list[str]] = {
            "matched": [],
            "missing": [],
            "mismatched": [],
        }
        errors = list(src_walk.errors) + list(tgt_walk.errors)
        for entry, (status, error) in run.results:
            if error is not None:
                errors.append(error)
            else:
                buckets[status].append(entry.relative_path)

        src_paths = {e.relative_path for e in src_walk.entries}
        return IntegrityReport(
            source_path=str(source),
            target_path=str(target),
            deep=deep,
            files_checked=len(src_walk.entries),
            matched=buckets["matched"],
            missing_in_target=buckets["missing"],
            extra_in_target=sorted(
                rel for rel in tgt_index if rel not in src_paths
            ),
            mismatched=buckets["mismatched"],
            errors=sorted(errors, key=lambda e: e.path),
        )

    # ------------------------------------------------------------------
    # One-way
    # ------------------------------------------------------------------

    def _sync_one_way(
        self,
        source: Path,
        target: Path,
        options: SyncOptions,
        token: CancelToken,
    ) -> SyncReport:
        start_time = datetime.now(timezone.utc)
        walker = self._walker(options)
        src_walk = walker.walk(source)

        if target.exists() and not target.is_dir():
            raise PreconditionError(f"Target is not a directory: {target}")
        if target.is_dir():
            tgt_walk = walker.walk(target)
        else:
            tgt_walk = WalkResult(root=target)
            if not options.dry_run:
                target.mkdir(parents=True, exist_ok=True)
        tgt_index = tgt_walk.by_path()

        def _one(entry: WalkEntry) -> _FileOutcome:
            return self._sync_file(
                entry, target, tgt_index.get(entry.relative_path), options
            )

        run = run_bounded(
            _one, src_walk.entries, max_workers=options.max_workers, token=token
        )
        outcomes = [outcome for _, outcome in run.results]
        cancelled = run.cancelled

        deletions: list[_FileOutcome] = []
        if options.delete_extraneous and not cancelled:
            src_paths = {e.relative_path for e in src_walk.entries}
            extraneous = [
                e for rel, e in tgt_index.items() if rel not in src_paths
            ]
            del_run = run_bounded(
                lambda e: self._delete_file(e, options),
                extraneous,
                max_workers=options.max_workers,
                token=token,
            )
            deletions = [outcome for _, outcome in del_run.results]
            cancelled = del_run.cancelled

        return self._build_report(
            source,
            target,
            options,
            start_time,
            outcomes,
            deletions,
            walk_errors=src_walk.errors + tgt_walk.errors,
            cancelled=cancelled,
        )

    def _sync_file(
        self,
        entry: WalkEntry,
        target_root: Path,
        target_entry: WalkEntry | None,
        options: SyncOptions,
    ) -> _FileOutcome:
        rel = entry.relative_path
        dst = target_root / rel
        operation = "compare"
        try:
            if not self._needs_copy(entry, target_entry, options):
                return _FileOutcome(path=rel, skipped=True)
            operation = "copy"
            if options.dry_run:
                logger.debug("[dry run] would copy %s", rel)
                return _FileOutcome(path=rel, copied=True, bytes=entry.size)
            size = fileops.copy_file(
                entry.path, dst, preserve_timestamps=options.preserve_timestamps
            )
            logger.debug("Copied %s (%d bytes)", rel, size)
            return _FileOutcome(path=rel, copied=True, bytes=size)
        except Exception as exc:
            logger.error("Error syncing %s: %s", rel, exc)
            return _FileOutcome(
                path=rel,
                error=FileError(path=rel, operation=operation, error=str(exc)),
            )

    def _needs_copy(
        self,
        entry: WalkEntry,
        target_entry: WalkEntry | None,
        options: SyncOptions,
    ) -> bool:
        """Two-tier change detection.

        The metadata tier decides most files.  When it is inconclusive, the
        ``source`` policy trusts metadata and skips; every other policy
        compares content hashes.
        """
        if target_entry is None:
            return True
        if entry.size != target_entry.size:
            return True
        if entry.mtime > target_entry.mtime:
            return True
        if options.conflict_resolution == ConflictPolicy.SOURCE:
            return False
        algorithm = options.hash_algorithm
        return hash_file(entry.path, algorithm) != hash_file(
            target_entry.path, algorithm
        )

    def _delete_file(self, entry: WalkEntry, options: SyncOptions) -> _FileOutcome:
        rel = entry.relative_path
        try:
            if options.dry_run:
                logger.debug("[dry run] would delete %s", rel)
            else:
                fileops.delete_file(entry.path)
                logger.debug("Deleted extraneous %s", rel)
            return _FileOutcome(path=rel, deleted=True)
        except Exception as exc:
            logger.error("Error deleting %s: %s", rel, exc)
            return _FileOutcome(
                path=rel,
                error=FileError(path=rel, operation="delete", error=str(exc)),
            )

    # ------------------------------------------------------------------
    # Bidirectional
    # ------------------------------------------------------------------

    def _sync_bidirectional(
        self,
        source: Path,
        target: Path,
        options: SyncOptions,
        token: CancelToken,
    ) -> SyncReport:
        start_time = datetime.now(timezone.utc)
        if not target.is_dir():
            raise NotFoundError(f"Directory not found: {target}")
        walker = self._walker(options)
        a_walk = walker.walk(source)
        b_walk = walker.walk(target)
        a_index = a_walk.by_path()
        b_index = b_walk.by_path()
        paths = sorted(set(a_index) | set(b_index))
        resolver = create_resolver(options.conflict_resolution)

        def _one(rel: str) -> _FileOutcome:
            a = a_index.get(rel)
            b = b_index.get(rel)
            operation = "compare"
            try:
                if b is None:
                    operation = "copy"
                    return self._copy_across(a.path, target / rel, rel, options)
                if a is None:
                    operation = "copy"
                    return self._copy_across(b.path, source / rel, rel, options)
                if a.size == b.size:
                    algorithm = options.hash_algorithm
                    if hash_file(a.path, algorithm) == hash_file(b.path, algorithm):
                        return _FileOutcome(path=rel, skipped=True)
                a_stat, b_stat = stat_file(a.path), stat_file(b.path)
                resolution = resolver.resolve(
                    ConflictCandidate(path=rel, source=a_stat, target=b_stat)
                )
                conflict = SyncConflict(
                    path=rel,
                    reason="content differs on both sides",
                    source_modified=_utc(a_stat.mtime),
                    target_modified=_utc(b_stat.mtime),
                    resolution=resolution.description,
                    outcome=resolution.outcome,
                    copied_from=resolution.winner,
                )
                if resolution.winner is None:
                    return _FileOutcome(path=rel, skipped=True, conflict=conflict)
                operation = "copy"
                if resolution.winner == CopySide.SOURCE:
                    outcome = self._copy_across(a.path, b.path, rel, options)
                else:
                    outcome = self._copy_across(b.path, a.path, rel, options)
                outcome.conflict = conflict
                return outcome
            except Exception as exc:
                logger.error("Error syncing %s <-> %s: %s", source / rel, target / rel, exc)
                return _FileOutcome(
                    path=rel,
                    error=FileError(path=rel, operation=operation, error=str(exc)),
                )

        run = run_bounded(_one, paths, max_workers=options.max_workers, token=token)
        return self._build_report(
            source,
            target,
            options,
            start_time,
            [outcome for _, outcome in run.results],
            [],
            walk_errors=a_walk.errors + b_walk.errors,
            cancelled=run.cancelled,
        )

    def _copy_across(
        self, src: Path, dst: Path, rel: str, options: SyncOptions
    ) -> _FileOutcome:
        if options.dry_run:
            logger.debug("[dry run] would copy %s -> %s", src, dst)
            return _FileOutcome(path=rel, copied=True, bytes=src.stat().st_size)
        size = fileops.copy_file(
            src, dst, preserve_timestamps=options.preserve_timestamps
        )
        return _FileOutcome(path=rel, copied=True, bytes=size)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _walker(options: SyncOptions) -> TreeWalker:
        return TreeWalker(
            options.exclude_patterns, include_hidden=options.include_hidden
        )

    @staticmethod
    def _check_roots(source: Path, target: Path) -> None:
        if not source.is_dir():
            raise NotFoundError(f"Source directory not found: {source}")
        src = source.resolve()
        tgt = target.resolve()
        if src == tgt:
            raise PreconditionError("Source and target are the same directory")
        if tgt.is_relative_to(src) or src.is_relative_to(tgt):
            raise PreconditionError(
                f"Source {source} and target {target} must not contain each other"
            )

    @staticmethod
    def _build_report(
        source: Path,
        target: Path,
        options: SyncOptions,
        start_time: datetime,
        outcomes: list[_FileOutcome],
        deletions: list[_FileOutcome],
        *,
        walk_errors: list[FileError],
        cancelled: bool,
    ) -> SyncReport:
        errors = list(walk_errors)
        errors.extend(o.error for o in outcomes if o.error is not None)
        errors.extend(o.error for o in deletions if o.error is not None)
        conflicts = [o.conflict for o in outcomes if o.conflict is not None]
        return SyncReport(
            source_path=str(source),
            target_path=str(target),
            start_time=start_time,
            end_time=datetime.now(timezone.utc),
            files_processed=len(outcomes),
            files_copied=sum(1 for o in outcomes if o.copied),
            files_skipped=sum(1 for o in outcomes if o.skipped),
            files_deleted=sum(1 for o in deletions if o.deleted),
            files_failed=sum(1 for o in outcomes if o.error is not None),
            bytes_transferred=sum(o.bytes for o in outcomes if o.copied),
            conflicts=sorted(conflicts, key=lambda c: c.path),
            errors=sorted(errors, key=lambda e: (e.path, e.operation)),
            bidirectional=options.bidirectional,
            dry_run=options.dry_run,
            cancelled=cancelled,
        )
