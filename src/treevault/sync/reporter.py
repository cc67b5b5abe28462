"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``summarize_sync`` -- one-line result message
  (``"12/15 files synchronized, 2 conflicts, 1 error"``).
- ``format_sync_report`` -- full post-sync report text.
- ``format_integrity_report`` -- integrity verification text.
- ``report_to_json`` -- structured dict for tool output.
- ``write_sync_report`` -- write the report text to a file.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from treevault.core.formatting import format_size, format_timestamp, pluralize

if TYPE_CHECKING:
    from .models import IntegrityReport, SyncReport

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Summary line
# ------------------------------------------------------------------


def summarize_sync(report: SyncReport) -> str:
    """One-line summary used as the result message."""
    message = (
        f"{report.files_succeeded}/{report.files_processed} files synchronized, "
        f"{pluralize(len(report.conflicts), 'conflict')}, "
        f"{pluralize(len(report.errors), 'error')}"
    )
    if report.files_deleted:
        message += f", {report.files_deleted} deleted"
    if report.dry_run:
        message = "Dry run: " + message
    if report.cancelled:
        message += " (cancelled before completion)"
    return message


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Conflict and error sections are only included when non-empty.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    arrow = "<->" if report.bidirectional else "->"
    header = f"Sync report: {report.source_path} {arrow} {report.target_path}"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {format_timestamp(report.start_time)}")
    lines.append(f"Completed: {format_timestamp(report.end_time)}")
    lines.append(f"Duration: {report.duration_seconds:.2f}s")
    if report.cancelled:
        lines.append("Status: cancelled before completion (partial report)")
    lines.append("")

    lines.append("Summary:")
    lines.append(f"  Files processed:   {report.files_processed}")
    lines.append(f"  Files copied:      {report.files_copied}")
    lines.append(f"  Files unchanged:   {report.files_skipped}")
    lines.append(f"  Files deleted:     {report.files_deleted}")
    lines.append(f"  Data transferred:  {format_size(report.bytes_transferred)}")
    lines.append(f"  Conflicts:         {len(report.conflicts)}")
    lines.append(f"  Errors:            {len(report.errors)}")
    lines.append("")

    if report.conflicts:
        lines.append("Conflicts:")
        for c in report.conflicts:
            lines.append(f"  {c.path}: {c.reason}")
            lines.append(
                f"    source modified {format_timestamp(c.source_modified)}, "
                f"target modified {format_timestamp(c.target_modified)}"
            )
            lines.append(f"    resolution: {c.resolution}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for e in report.errors:
            lines.append(f"  {e.path} [{e.operation}]: {e.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_integrity_report(report: IntegrityReport) -> str:
    """Format an integrity verification result as human-readable text."""
    lines = [
        f"Integrity check: {report.source_path} -> {report.target_path}"
        + (" (deep)" if report.deep else ""),
        f"Files checked: {report.files_checked}, matched: {len(report.matched)}",
        "",
    ]
    sections = (
        ("Missing in target", report.missing_in_target),
        ("Extra in target", report.extra_in_target),
        ("Content mismatch", report.mismatched),
    )
    for title, paths in sections:
        if paths:
            lines.append(f"{title}:")
            lines.extend(f"  {p}" for p in paths)
            lines.append("")
    if report.errors:
        lines.append("Errors:")
        for e in report.errors:
            lines.append(f"  {e.path}: {e.error}")
        lines.append("")
    if report.is_consistent:
        lines.append("Trees are consistent.")
    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict[str, Any]:
    """Convert a sync report to a structured dictionary.

    Args:
        report: The sync report.

    Returns:
        Dictionary with ``summary``, ``conflicts`` and ``errors`` keys.
    """
    return {
        "source_path": report.source_path,
        "target_path": report.target_path,
        "bidirectional": report.bidirectional,
        "dry_run": report.dry_run,
        "cancelled": report.cancelled,
        "start_time": report.start_time.isoformat(),
        "end_time": report.end_time.isoformat(),
        "summary": {
            "files_processed": report.files_processed,
            "files_copied": report.files_copied,
            "files_skipped": report.files_skipped,
            "files_deleted": report.files_deleted,
            "files_failed": report.files_failed,
            "bytes_transferred": report.bytes_transferred,
            "conflicts": len(report.conflicts),
            "errors": len(report.errors),
        },
        "conflicts": [c.model_dump(mode="json") for c in report.conflicts],
        "errors": [e.model_dump(mode="json") for e in report.errors],
    }


# ------------------------------------------------------------------
# Report files
# ------------------------------------------------------------------


def write_sync_report(
    report: SyncReport, output_path: Path | None = None
) -> Path:
    """Write the formatted report to *output_path*.

    Defaults to ``sync_report_<epoch ms>.txt`` in the working directory.
    Parent directories are created as needed.

    Returns:
        The path written.
    """
    path = (
        Path(output_path)
        if output_path is not None
        else Path.cwd() / f"sync_report_{int(time.time() * 1000)}.txt"
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_sync_report(report) + "\n", encoding="utf-8")
    logger.info("Wrote sync report to %s", path)
    return path
