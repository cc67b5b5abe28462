"""Shared pytest fixtures for treevault tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from treevault.config_schema import UnifiedConfig
from treevault.service import TreeVaultService
from treevault.versioning.manager import VersionManager


def write_tree(
    root: Path,
    files: dict[str, str | bytes],
    mtime: float | None = None,
) -> dict[str, Path]:
    """Create *files* (relative path -> content) below *root*.

    When *mtime* is given every file gets that access/modification time.
    """
    created: dict[str, Path] = {}
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        created[rel] = path
    return created


def snapshot_tree(root: Path) -> dict[str, tuple[bytes, int]]:
    """Map every file below *root* to (content, mtime_ns) for purity checks."""
    if not root.exists():
        return {}
    return {
        p.relative_to(root).as_posix(): (p.read_bytes(), p.stat().st_mtime_ns)
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def make_tree():
    """Factory fixture wrapping ``write_tree``."""
    return write_tree


@pytest.fixture
def service() -> TreeVaultService:
    """Service with zero-config defaults (no files or env read)."""
    return TreeVaultService(UnifiedConfig())


@pytest.fixture
def manager() -> VersionManager:
    return VersionManager(max_workers=2)


@pytest.fixture
def tracked(tmp_path: Path) -> Path:
    """An empty tracked tree."""
    base = tmp_path / "project"
    base.mkdir()
    return base


@pytest.fixture
def repo(manager: VersionManager, tracked: Path) -> Path:
    """An initialized repository for ``tracked`` (default location)."""
    manager.initialize_repository(tracked)
    return tracked / ".versions"


@pytest.fixture
def tree_state():
    """Factory fixture wrapping ``snapshot_tree``."""
    return snapshot_tree
