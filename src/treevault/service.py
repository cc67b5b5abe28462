"""Service facade: every public operation behind one result envelope.

``TreeVaultService`` is the surface a tool layer (RPC server, CLI, agent
runtime) calls.  Each method runs the engine operation and returns an
``OperationResult``:

* success -- ``success=True`` with a short summary message and the typed
  report / record in ``data``.
* partial failure -- bulk operations where some files failed still
  succeed, with the counts in the message and an ``error`` of type
  ``partial_failure``; when *no* file succeeded the call fails.
* failure -- ``success=False`` with an ``ErrorDetail`` carrying the error
  category and a corrective action.

Unexpected exceptions are logged with their traceback and returned as
``internal_error``; nothing escapes to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Callable

from .config import load_config
from .config_schema import UnifiedConfig
from .core.formatting import format_size, pluralize
from .core.workers import CancelToken
from .errors import TreeVaultError, build_error_result, corrective_action
from .logger import setup_logging
from .results import ErrorDetail, OperationResult, failure_result, success_result
from .sync.engine import Synchronizer
from .sync.models import IntegrityReport, SyncOptions, SyncReport
from .sync.reporter import summarize_sync, write_sync_report
from .versioning.manager import VersionManager
from .versioning.models import (
    FileVersion,
    RestoreResult,
    SnapshotRestoreResult,
    VersionDiff,
    VersionRepository,
    VersionResult,
    VersionSnapshot,
)

logger = logging.getLogger(__name__)

SyncOptionsArg = SyncOptions | Mapping[str, Any] | None


def _dry(message: str, dry_run: bool) -> str:
    return f"Dry run: {message}" if dry_run else message


class TreeVaultService:
    """Synchronization and versioning operations returning ``OperationResult``.

    Args:
        config: Effective configuration.  Defaults to zero-config values;
            use ``from_environment()`` to read files and env vars.
    """

    def __init__(self, config: UnifiedConfig | None = None) -> None:
        self.config = config or UnifiedConfig()
        self.synchronizer = Synchronizer(self.config.sync_options())
        self.versions = VersionManager(
            max_workers=self.config.engine.max_workers,
            hash_algorithm=self.config.engine.hash_algorithm,
        )

    @classmethod
    def from_environment(
        cls,
        overrides: dict[str, dict[str, Any]] | None = None,
        *,
        log_mode: str | None = None,
        debug: bool = False,
    ) -> TreeVaultService:
        """Build a service from ``.env``, YAML config files and env vars.

        Args:
            overrides: Section-keyed values that win over every other source.
            log_mode: ``"console"`` or ``"service"`` to configure logging
                from the ``logging`` config section; ``None`` leaves logging
                to the host application.
            debug: Force DEBUG level when *log_mode* is set.
        """
        config = load_config(overrides)
        if log_mode is not None:
            setup_logging(
                mode=log_mode,
                debug=debug,
                log_file=config.logging.file,
                level=config.logging.level,
            )
        return cls(config)

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    def sync_directories(
        self,
        source_path: str | Path,
        target_path: str | Path,
        options: SyncOptionsArg = None,
        token: CancelToken | None = None,
    ) -> OperationResult[SyncReport]:
        """One-way (or, with ``bidirectional``, two-way) sync."""
        return self._run(
            "sync",
            lambda: self._sync_result(
                self.synchronizer.sync_directories(
                    Path(source_path), Path(target_path), self._options(options), token
                )
            ),
        )

    def bidirectional_sync(
        self,
        path_a: str | Path,
        path_b: str | Path,
        options: SyncOptionsArg = None,
        token: CancelToken | None = None,
    ) -> OperationResult[SyncReport]:
        """Reconcile two trees; *path_a* plays the source role for policies."""

        def _call() -> OperationResult[SyncReport]:
            opts = self._options(options).model_copy(update={"bidirectional": True})
            report = self.synchronizer.sync_directories(
                Path(path_a), Path(path_b), opts, token
            )
            return self._sync_result(report)

        return self._run("sync", _call)

    def create_incremental_backup(
        self,
        source_path: str | Path,
        backup_root: str | Path,
        options: SyncOptionsArg = None,
        token: CancelToken | None = None,
    ) -> OperationResult[SyncReport]:
        """Back up into a new timestamped directory under *backup_root*."""

        def _call() -> OperationResult[SyncReport]:
            report = self.synchronizer.create_incremental_backup(
                Path(source_path), Path(backup_root), self._options(options), token
            )
            return self._sync_result(
                report, prefix=f"Incremental backup to {report.target_path}: "
            )

        return self._run("sync", _call)

    def create_mirror_backup(
        self,
        source_path: str | Path,
        backup_path: str | Path,
        options: SyncOptionsArg = None,
        token: CancelToken | None = None,
    ) -> OperationResult[SyncReport]:
        """Make *backup_path* an exact mirror of *source_path*."""

        def _call() -> OperationResult[SyncReport]:
            report = self.synchronizer.create_mirror_backup(
                Path(source_path), Path(backup_path), self._options(options), token
            )
            return self._sync_result(
                report, prefix=f"Mirror backup to {report.target_path}: "
            )

        return self._run("sync", _call)

    def verify_sync_integrity(
        self,
        source_path: str | Path,
        target_path: str | Path,
        deep: bool = False,
        options: SyncOptionsArg = None,
    ) -> OperationResult[IntegrityReport]:
        """Report missing, extra and mismatched files between two trees."""

        def _call() -> OperationResult[IntegrityReport]:
            report = self.synchronizer.verify_integrity(
                Path(source_path), Path(target_path), deep, self._options(options)
            )
            if report.is_consistent:
                message = (
                    f"Integrity verified: all {pluralize(report.files_checked, 'file')} match"
                )
            else:
                message = (
                    "Integrity check found differences: "
                    f"{len(report.missing_in_target)} missing, "
                    f"{len(report.extra_in_target)} extra, "
                    f"{len(report.mismatched)} mismatched, "
                    f"{pluralize(len(report.errors), 'error')}"
                )
            return success_result(message, report)

        return self._run("sync", _call)

    def generate_sync_report(
        self, report: SyncReport, output_path: str | Path | None = None
    ) -> OperationResult[str]:
        """Write *report* as text; ``data`` is the written path."""

        def _call() -> OperationResult[str]:
            path = write_sync_report(
                report, Path(output_path) if output_path is not None else None
            )
            return success_result(f"Sync report written to {path}", str(path))

        return self._run("sync", _call)

    # ------------------------------------------------------------------
    # Versioning
    # ------------------------------------------------------------------

    def initialize_repository(
        self,
        base_path: str | Path,
        repository_path: str | Path | None = None,
        *,
        max_versions: int | None = None,
        store_metadata: bool | None = None,
        duplicate_snapshot_payload: bool | None = None,
        exclude_patterns: Iterable[str] | None = None,
    ) -> OperationResult[VersionRepository]:
        """Create a repository; unset options come from the config."""
        defaults = self.config.versioning

        def _call() -> OperationResult[VersionRepository]:
            repo_path = (
                Path(repository_path)
                if repository_path is not None
                else Path(base_path) / defaults.repository_dir_name
            )
            repository = self.versions.initialize_repository(
                Path(base_path),
                repo_path,
                max_versions=(
                    max_versions if max_versions is not None else defaults.max_versions
                ),
                store_metadata=(
                    store_metadata if store_metadata is not None else defaults.store_metadata
                ),
                duplicate_snapshot_payload=(
                    duplicate_snapshot_payload
                    if duplicate_snapshot_payload is not None
                    else defaults.duplicate_snapshot_payload
                ),
                exclude_patterns=(
                    exclude_patterns
                    if exclude_patterns is not None
                    else defaults.exclude_patterns
                ),
            )
            return success_result(
                f"Initialized version repository at {repository.repository_path} "
                f"(keeping up to {pluralize(repository.max_versions, 'version')} per file)",
                repository,
            )

        return self._run("version", _call)

    def create_file_version(
        self,
        file_path: str | Path,
        repository_path: str | Path,
        comment: str | None = None,
        author: str | None = None,
        tags: Iterable[str] | None = None,
        dry_run: bool = False,
    ) -> OperationResult[VersionResult]:
        def _call() -> OperationResult[VersionResult]:
            result = self.versions.create_file_version(
                file_path, Path(repository_path), comment, author, tags, dry_run
            )
            v = result.version
            if not result.created:
                message = (
                    f"{v.file_path} unchanged; returning existing version {v.version}"
                )
            else:
                message = f"Created version {v.version} of {v.file_path} ({format_size(v.size)})"
                if result.pruned:
                    message += f", pruned {pluralize(len(result.pruned), 'old version')}"
            return success_result(_dry(message, dry_run), result)

        return self._run("version", _call, entity_name=str(repository_path))

    def create_snapshot(
        self,
        base_path: str | Path,
        repository_path: str | Path,
        name: str,
        description: str | None = None,
        author: str | None = None,
        dry_run: bool = False,
    ) -> OperationResult[VersionSnapshot]:
        def _call() -> OperationResult[VersionSnapshot]:
            snapshot = self.versions.create_snapshot(
                Path(base_path), Path(repository_path), name, description, author, dry_run
            )
            captured, failed = len(snapshot.files), len(snapshot.errors)
            message = _dry(
                f"Snapshot '{name}' captured {captured}/{captured + failed} files "
                f"({format_size(snapshot.total_size)})",
                dry_run,
            )
            return self._bulk_result("snapshot", message, snapshot, captured, failed)

        return self._run("snapshot", _call, entity_name=str(repository_path))

    def restore_file_version(
        self,
        file_path: str | Path | None,
        repository_path: str | Path,
        version_id: str,
        dry_run: bool = False,
    ) -> OperationResult[RestoreResult]:
        def _call() -> OperationResult[RestoreResult]:
            result = self.versions.restore_file_version(
                file_path, Path(repository_path), version_id, dry_run
            )
            message = f"Restored {result.file_path} to version {result.version.version}"
            if result.backup_path:
                message += f" (previous content saved to {result.backup_path})"
            return success_result(_dry(message, dry_run), result)

        return self._run("version", _call, entity_name=str(repository_path))

    def restore_snapshot(
        self,
        snapshot_id: str,
        repository_path: str | Path,
        target_path: str | Path | None = None,
        dry_run: bool = False,
    ) -> OperationResult[SnapshotRestoreResult]:
        def _call() -> OperationResult[SnapshotRestoreResult]:
            result = self.versions.restore_snapshot(
                snapshot_id,
                Path(repository_path),
                Path(target_path) if target_path is not None else None,
                dry_run,
            )
            restored, failed = result.files_restored, len(result.errors)
            message = _dry(
                f"Restored {restored}/{restored + failed} files from snapshot "
                f"{snapshot_id} to {result.target_path}",
                dry_run,
            )
            if result.backups:
                message += f" ({pluralize(len(result.backups), 'overwritten file')} backed up)"
            return self._bulk_result("snapshot", message, result, restored, failed)

        return self._run("snapshot", _call, entity_name=str(repository_path))

    def compare_versions(
        self, repository_path: str | Path, version_id1: str, version_id2: str
    ) -> OperationResult[VersionDiff]:
        def _call() -> OperationResult[VersionDiff]:
            diff = self.versions.compare_versions(
                Path(repository_path), version_id1, version_id2
            )
            return success_result(
                f"{diff.file_path} v{diff.old_version.version} -> "
                f"v{diff.new_version.version}: {diff.summary}",
                diff,
            )

        return self._run("version", _call, entity_name=str(repository_path))

    def get_version_history(
        self, file_path: str | Path, repository_path: str | Path
    ) -> OperationResult[list[FileVersion]]:
        def _call() -> OperationResult[list[FileVersion]]:
            history = self.versions.get_version_history(file_path, Path(repository_path))
            return success_result(
                f"{pluralize(len(history), 'version')} of {file_path}", history
            )

        return self._run("version", _call, entity_name=str(repository_path))

    def list_snapshots(
        self, repository_path: str | Path
    ) -> OperationResult[list[VersionSnapshot]]:
        def _call() -> OperationResult[list[VersionSnapshot]]:
            snapshots = self.versions.list_snapshots(Path(repository_path))
            return success_result(pluralize(len(snapshots), "snapshot"), snapshots)

        return self._run("snapshot", _call, entity_name=str(repository_path))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _options(self, options: SyncOptionsArg) -> SyncOptions:
        if options is None:
            return self.synchronizer.defaults
        if isinstance(options, SyncOptions):
            return options
        return self.config.sync_options(**dict(options))

    def _sync_result(
        self, report: SyncReport, prefix: str = ""
    ) -> OperationResult[SyncReport]:
        return self._bulk_result(
            "sync",
            prefix + summarize_sync(report),
            report,
            report.files_succeeded + report.files_deleted,
            report.files_failed,
            extra_errors=len(report.errors) - report.files_failed,
        )

    @staticmethod
    def _bulk_result(
        domain: str,
        message: str,
        data: Any,
        succeeded: int,
        failed: int,
        extra_errors: int = 0,
    ) -> OperationResult[Any]:
        """Apply the partial-failure policy to a bulk operation.

        Zero successes with at least one failure (a file, a deletion or a
        walk error) fails the call; otherwise any failure is reported as a successful result carrying a
        ``partial_failure`` error detail.
        """
        if (failed or extra_errors) and not succeeded:
            return failure_result(
                "partial_failure",
                message,
                corrective_action(domain, "partial_failure"),
                data=data,
            )
        if failed or extra_errors:
            return OperationResult(
                success=True,
                message=message,
                data=data,
                error=ErrorDetail(
                    error_type="partial_failure",
                    message=f"{pluralize(failed + extra_errors, 'file')} could not be processed",
                    corrective_action=corrective_action(domain, "partial_failure"),
                ),
            )
        return success_result(message, data)

    @staticmethod
    def _run(
        domain: str,
        action: Callable[[], OperationResult[Any]],
        entity_name: str | None = None,
    ) -> OperationResult[Any]:
        try:
            return action()
        except (TreeVaultError, ValueError, OSError) as exc:
            logger.warning("%s operation failed: %s", domain.capitalize(), exc)
            return build_error_result(exc, domain, entity_name)
        except Exception as exc:
            logger.exception("Unexpected %s error: %s", domain, exc)
            return build_error_result(exc, domain, entity_name)
