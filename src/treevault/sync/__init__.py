"""Directory synchronization engine.

Public API for reconciling two directory trees, backing them up and
verifying that a copy still matches its source.

Modules:

- ``engine``    -- ``Synchronizer``: one-way / bidirectional sync, backups,
  integrity verification.
- ``models``    -- ``ConflictPolicy``, ``SyncOptions``, ``SyncConflict``,
  ``SyncReport``, ``IntegrityReport``: data contracts.
- ``resolver``  -- conflict resolution policies (newer, larger, source,
  target).
- ``reporter``  -- human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from treevault.sync import SyncOptions, Synchronizer, format_sync_report

    sync = Synchronizer()

    # Dry-run first to preview changes
    preview = sync.sync_directories(
        Path("docs"), Path("/mnt/backup/docs"), SyncOptions(dry_run=True)
    )
    print(format_sync_report(preview))

    report = sync.sync_directories(Path("docs"), Path("/mnt/backup/docs"))
"""

from .engine import Synchronizer
from .models import (
    ConflictPolicy,
    IntegrityReport,
    SyncConflict,
    SyncOptions,
    SyncReport,
)
from .reporter import (
    format_integrity_report,
    format_sync_report,
    report_to_json,
    summarize_sync,
    write_sync_report,
)
from .resolver import create_resolver

__all__ = [
    "ConflictPolicy",
    "IntegrityReport",
    "SyncConflict",
    "SyncOptions",
    "SyncReport",
    "Synchronizer",
    "create_resolver",
    "format_integrity_report",
    "format_sync_report",
    "report_to_json",
    "summarize_sync",
    "write_sync_report",
]
