"""Pydantic models for the synchronizer.

Defines the data contracts used across the sync modules:

- ``ConflictPolicy``: Closed set of conflict-resolution policies.
- ``ResolutionOutcome`` / ``CopySide``: What a resolver decided.
- ``SyncOptions``: Per-call options.
- ``SyncConflict``: One path that differed on both sides.
- ``SyncReport``: Aggregate result of a sync run.
- ``IntegrityReport``: Result of comparing two trees without copying.

Reports are transient: they are returned to the caller (and optionally
written as text) but never persisted by the engine.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from treevault.core.identity import HASH_ALGORITHMS
from treevault.core.models import FileError

DEFAULT_SYNC_EXCLUDES: tuple[str, ...] = (
    ".git/**",
    "node_modules/**",
    ".DS_Store",
    "Thumbs.db",
)


class ConflictPolicy(str, Enum):
    """How a path that differs on both sides is reconciled."""

    NEWER = "newer"
    LARGER = "larger"
    SOURCE = "source"
    TARGET = "target"


class CopySide(str, Enum):
    """The side whose content wins a conflict."""

    SOURCE = "source"
    TARGET = "target"


class ResolutionOutcome(str, Enum):
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


class SyncOptions(BaseModel):
    """Options for one sync call.

    Attributes:
        bidirectional: Reconcile both trees instead of mirroring source.
        delete_extraneous: Remove target files that have no source
            counterpart (one-way only).
        preserve_timestamps: Copy access/modification times with content.
        exclude_patterns: Glob patterns skipped on both sides.
        include_hidden: Also walk dot-files and dot-directories.
        dry_run: Compute the report without touching the filesystem.
        conflict_resolution: Policy for paths that differ on both sides.
        max_workers: Upper bound on concurrent per-file operations.
        timeout: Seconds before the run is cancelled (``None``: no limit).
        hash_algorithm: Algorithm for content comparison.
    """

    bidirectional: bool = False
    delete_extraneous: bool = False
    preserve_timestamps: bool = True
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SYNC_EXCLUDES)
    )
    include_hidden: bool = False
    dry_run: bool = False
    conflict_resolution: ConflictPolicy = ConflictPolicy.NEWER
    max_workers: int = Field(default=4, ge=1, le=64)
    timeout: float | None = Field(default=None, gt=0)
    hash_algorithm: str = "sha256"

    model_config = {"frozen": True}

    @field_validator("hash_algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        value = value.lower()
        if value not in HASH_ALGORITHMS:
            raise ValueError(
                f"Unknown hash algorithm '{value}'. "
                f"Valid algorithms: {', '.join(HASH_ALGORITHMS)}"
            )
        return value


class SyncConflict(BaseModel):
    """A path whose content differed on both sides.

    Attributes:
        path: Path relative to the sync roots.
        reason: Why the path was considered conflicting.
        source_modified: Source-side modification time.
        target_modified: Target-side modification time.
        resolution: Human-readable description of the action taken.
        outcome: Whether the policy decided a winner.
        copied_from: Winning side, ``None`` when unresolved.
    """

    path: str
    reason: str
    source_modified: datetime
    target_modified: datetime
    resolution: str
    outcome: ResolutionOutcome
    copied_from: CopySide | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a sync run.

    ``files_processed >= files_copied + files_skipped``.  Files whose
    comparison or copy failed count as processed and as ``files_failed``;
    every failure (including deletions and unreadable directories) is listed
    in ``errors``.
    """

    source_path: str
    target_path: str
    start_time: datetime
    end_time: datetime
    files_processed: int = 0
    files_copied: int = 0
    files_skipped: int = 0
    files_deleted: int = 0
    files_failed: int = 0
    bytes_transferred: int = 0
    conflicts: list[SyncConflict] = Field(default_factory=list)
    errors: list[FileError] = Field(default_factory=list)
    bidirectional: bool = False
    dry_run: bool = False
    cancelled: bool = False

    model_config = {"frozen": True}

    @property
    def files_succeeded(self) -> int:
        return max(self.files_processed - self.files_failed, 0)

    @property
    def unresolved_conflicts(self) -> list[SyncConflict]:
        return [
            c
            for c in self.conflicts
            if c.outcome == ResolutionOutcome.UNRESOLVED
        ]

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()


class IntegrityReport(BaseModel):
    """Result of verifying that a target tree matches its source.

    Attributes:
        deep: Whether content hashes were compared.
        files_checked: Number of source files examined.
        matched: Paths present and equal on both sides.
        missing_in_target: Source paths with no target counterpart.
        extra_in_target: Target paths with no source counterpart.
        mismatched: Paths present on both sides whose content differs.
        errors: Per-file failures while checking.
    """

    source_path: str
    target_path: str
    deep: bool = False
    files_checked: int = 0
    matched: list[str] = Field(default_factory=list)
    missing_in_target: list[str] = Field(default_factory=list)
    extra_in_target: list[str] = Field(default_factory=list)
    mismatched: list[str] = Field(default_factory=list)
    errors: list[FileError] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_consistent(self) -> bool:
        return not (
            self.missing_in_target
            or self.extra_in_target
            or self.mismatched
            or self.errors
        )
