"""Tests for RepositoryStore (on-disk repository layout)."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from treevault.errors import NotFoundError, RepositoryNotInitializedError
from treevault.versioning.models import FileVersion, VersionRepository, VersionSnapshot
from treevault.versioning.store import RepositoryStore, path_key

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _version(file_path: str = "docs/a.txt", number: int = 1, **kw) -> FileVersion:
    fields = dict(
        id=f"a_txt_v{number}_{number}",
        file_path=file_path,
        version=number,
        timestamp=NOW,
        size=3,
        content_hash=f"hash{number}",
    )
    fields.update(kw)
    return FileVersion(**fields)


@pytest.fixture
def store(tmp_path: Path) -> RepositoryStore:
    s = RepositoryStore(tmp_path / "repo")
    s.create_layout()
    return s


class TestLayout:
    def test_create_layout(self, store: RepositoryStore):
        assert store.versions_dir.is_dir()
        assert store.metadata_dir.is_dir()
        assert store.snapshots_dir.is_dir()
        assert not store.exists()

    def test_repository_round_trip(self, store: RepositoryStore):
        repo = VersionRepository(
            base_path="/data", repository_path=str(store.root), created=NOW
        )
        store.save_repository(repo)
        assert store.exists()
        assert store.load_repository() == repo

    def test_missing_repository(self, tmp_path: Path):
        with pytest.raises(RepositoryNotInitializedError):
            RepositoryStore(tmp_path / "none").load_repository()

    def test_not_initialized_is_not_found(self):
        assert issubclass(RepositoryNotInitializedError, NotFoundError)


class TestBlobPaths:
    def test_blob_path_grouped_by_path_key(self, store: RepositoryStore):
        blob = store.blob_path("docs/report.docx", 3)
        assert blob == store.versions_dir / path_key("docs/report.docx") / "report.docx.v3"

    def test_same_basename_different_dirs_do_not_collide(self, store: RepositoryStore):
        assert store.blob_path("a/notes.txt", 1) != store.blob_path("b/notes.txt", 1)

    def test_path_key_is_stable(self):
        assert path_key("x/y.txt") == path_key("x/y.txt")
        assert len(path_key("x/y.txt")) == 16


class TestVersionRecords:
    def test_versions_for_sorted_oldest_first(self, store: RepositoryStore):
        for n in (3, 1, 2):
            store.save_version(_version(number=n))
        store.save_version(_version("other.txt", 1, id="other_v1"))
        assert [v.version for v in store.versions_for("docs/a.txt")] == [1, 2, 3]

    def test_load_missing_version(self, store: RepositoryStore):
        with pytest.raises(NotFoundError, match="Version not found"):
            store.load_version("nope")

    def test_corrupt_record_skipped(self, store: RepositoryStore):
        store.save_version(_version())
        (store.metadata_dir / "broken.json").write_text("{not json")
        assert len(list(store.iter_versions())) == 1

    def test_delete_version_removes_blob_and_record(self, store: RepositoryStore):
        blob = store.blob_path("docs/a.txt", 1)
        blob.parent.mkdir(parents=True)
        blob.write_text("abc")
        version = _version(blob=blob.relative_to(store.root).as_posix())
        store.save_version(version)

        store.delete_version(version)

        assert not blob.exists()
        assert not store.metadata_path(version.id).exists()

    def test_resolve_blob_missing_content(self, store: RepositoryStore):
        version = _version(blob="versions/x/a.txt.v1")
        with pytest.raises(NotFoundError, match="content missing"):
            store.resolve_blob(version)

    def test_tags_persist(self, store: RepositoryStore):
        store.save_version(_version(tags={"release", "q1"}))
        assert store.load_version("a_txt_v1_1").tags == {"release", "q1"}


class TestSnapshotRecords:
    def test_snapshot_round_trip(self, store: RepositoryStore):
        snap = VersionSnapshot(
            id="snapshot_s_1", name="s", timestamp=NOW, base_path="/data"
        )
        store.save_snapshot(snap)
        assert store.load_snapshot("snapshot_s_1") == snap
        assert [s.id for s in store.iter_snapshots()] == ["snapshot_s_1"]

    def test_missing_snapshot(self, store: RepositoryStore):
        with pytest.raises(NotFoundError, match="Snapshot not found"):
            store.load_snapshot("snapshot_missing")
