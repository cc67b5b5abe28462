"""Tests for sync reporter formatting functions.

Covers:
- summarize_sync message format (counts, plurals, dry run, cancellation)
- format_sync_report sections
- format_integrity_report
- report_to_json structure
- write_sync_report default and explicit paths
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from treevault.core.models import FileError
from treevault.sync.models import (
    CopySide,
    IntegrityReport,
    ResolutionOutcome,
    SyncConflict,
    SyncReport,
)
from treevault.sync.reporter import (
    format_integrity_report,
    format_sync_report,
    report_to_json,
    summarize_sync,
    write_sync_report,
)

START = datetime(2026, 2, 7, 10, 0, 0, tzinfo=timezone.utc)
END = datetime(2026, 2, 7, 10, 1, 0, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_report(**overrides) -> SyncReport:
    """Build a SyncReport with sensible defaults."""
    fields = dict(
        source_path="/data/src",
        target_path="/data/dst",
        start_time=START,
        end_time=END,
        files_processed=15,
        files_copied=10,
        files_skipped=4,
        files_failed=1,
        bytes_transferred=2048,
    )
    fields.update(overrides)
    return SyncReport(**fields)


def _conflict(path: str = "docs/readme.md") -> SyncConflict:
    return SyncConflict(
        path=path,
        reason="content differs on both sides",
        source_modified=START,
        target_modified=END,
        resolution="copied target to source (target is newer)",
        outcome=ResolutionOutcome.RESOLVED,
        copied_from=CopySide.TARGET,
    )


def _error(path: str = "locked.db") -> FileError:
    return FileError(path=path, operation="copy", error="Permission denied")


# ---------------------------------------------------------------------------
# summarize_sync
# ---------------------------------------------------------------------------


class TestSummarizeSync:
    """Tests for summarize_sync()."""

    def test_counts_and_plurals(self):
        report = _make_report(
            conflicts=[_conflict("a"), _conflict("b")], errors=[_error()]
        )
        assert summarize_sync(report) == (
            "14/15 files synchronized, 2 conflicts, 1 error"
        )

    def test_zero_counts(self):
        report = _make_report(files_processed=2, files_failed=0)
        assert summarize_sync(report) == "2/2 files synchronized, 0 conflicts, 0 errors"

    def test_deleted_appended(self):
        report = _make_report(files_failed=0, files_deleted=3)
        assert summarize_sync(report).endswith(", 3 deleted")

    def test_dry_run_prefix(self):
        assert summarize_sync(_make_report(dry_run=True)).startswith("Dry run: ")

    def test_cancelled_suffix(self):
        text = summarize_sync(_make_report(cancelled=True))
        assert text.endswith("(cancelled before completion)")


# ---------------------------------------------------------------------------
# format_sync_report
# ---------------------------------------------------------------------------


class TestFormatSyncReport:
    """Tests for format_sync_report()."""

    def test_header_names_both_roots(self):
        text = format_sync_report(_make_report())
        assert text.splitlines()[0] == "Sync report: /data/src -> /data/dst"

    def test_bidirectional_arrow(self):
        text = format_sync_report(_make_report(bidirectional=True))
        assert "/data/src <-> /data/dst" in text

    def test_dry_run_indicator_in_header(self):
        assert "DRY RUN" in format_sync_report(_make_report(dry_run=True))

    def test_summary_section(self):
        text = format_sync_report(_make_report())
        assert "Files processed:   15" in text
        assert "Files copied:      10" in text
        assert "Data transferred:  2.0 KB" in text
        assert "Duration: 60.00s" in text

    def test_conflicts_section(self):
        text = format_sync_report(_make_report(conflicts=[_conflict()]))
        assert "Conflicts:\n  docs/readme.md: content differs on both sides" in text
        assert "resolution: copied target to source (target is newer)" in text

    def test_errors_section(self):
        text = format_sync_report(_make_report(errors=[_error()]))
        assert "  locked.db [copy]: Permission denied" in text

    def test_empty_sections_omitted(self):
        text = format_sync_report(_make_report())
        assert "Conflicts:\n" not in text
        assert "Errors:\n" not in text

    def test_cancelled_status_line(self):
        text = format_sync_report(_make_report(cancelled=True))
        assert "Status: cancelled before completion" in text


# ---------------------------------------------------------------------------
# format_integrity_report
# ---------------------------------------------------------------------------


class TestFormatIntegrityReport:
    def test_consistent(self):
        report = IntegrityReport(
            source_path="a", target_path="b", files_checked=2, matched=["x", "y"]
        )
        text = format_integrity_report(report)
        assert "Files checked: 2, matched: 2" in text
        assert text.endswith("Trees are consistent.")

    def test_differences_listed(self):
        report = IntegrityReport(
            source_path="a",
            target_path="b",
            deep=True,
            files_checked=2,
            missing_in_target=["gone.txt"],
            mismatched=["changed.txt"],
        )
        text = format_integrity_report(report)
        assert "(deep)" in text
        assert "Missing in target:\n  gone.txt" in text
        assert "Content mismatch:\n  changed.txt" in text
        assert "Trees are consistent." not in text


# ---------------------------------------------------------------------------
# report_to_json
# ---------------------------------------------------------------------------


class TestReportToJson:
    def test_structure(self):
        data = report_to_json(
            _make_report(conflicts=[_conflict()], errors=[_error()])
        )
        assert data["summary"]["files_processed"] == 15
        assert data["summary"]["bytes_transferred"] == 2048
        assert data["summary"]["conflicts"] == 1
        assert data["conflicts"][0]["copied_from"] == "target"
        assert data["errors"][0]["operation"] == "copy"
        assert data["start_time"] == START.isoformat()


# ---------------------------------------------------------------------------
# write_sync_report
# ---------------------------------------------------------------------------


class TestWriteSyncReport:
    def test_explicit_path(self, tmp_path: Path):
        out = tmp_path / "reports" / "run.txt"
        written = write_sync_report(_make_report(), out)
        assert written == out
        assert out.read_text().startswith("Sync report:")

    def test_default_path_in_cwd(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        written = write_sync_report(_make_report())
        assert written.parent.resolve() == tmp_path.resolve()
        assert written.name.startswith("sync_report_")
        assert written.suffix == ".txt"
