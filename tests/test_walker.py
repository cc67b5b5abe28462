"""Tests for TreeWalker.

Covers:
- Sorted relative paths and sizes
- Hidden files and directories skipped unless requested
- Exclude patterns on files and directory pruning
- Extra excluded directories (repository inside the tree)
- Missing root raises NotFoundError
- Unreadable sub-directory recorded as an error, walk continues
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from treevault.core.walker import TreeWalker
from treevault.errors import NotFoundError


class TestTreeWalker:
    """Tests for TreeWalker.walk()."""

    def test_lists_files_sorted(self, tmp_path: Path, make_tree):
        make_tree(tmp_path, {"b.txt": "bb", "a/z.txt": "z", "a/c.txt": "ccc"})
        result = TreeWalker().walk(tmp_path)
        assert [e.relative_path for e in result.entries] == [
            "a/c.txt",
            "a/z.txt",
            "b.txt",
        ]
        assert result.by_path()["a/c.txt"].size == 3
        assert result.total_size == 6

    def test_hidden_entries_skipped(self, tmp_path: Path, make_tree):
        make_tree(tmp_path, {".env": "x", ".hidden/f.txt": "x", "ok.txt": "x"})
        result = TreeWalker().walk(tmp_path)
        assert [e.relative_path for e in result.entries] == ["ok.txt"]

    def test_include_hidden(self, tmp_path: Path, make_tree):
        make_tree(tmp_path, {".env": "x", "ok.txt": "x"})
        result = TreeWalker(include_hidden=True).walk(tmp_path)
        assert [e.relative_path for e in result.entries] == [".env", "ok.txt"]

    def test_exclude_patterns(self, tmp_path: Path, make_tree):
        make_tree(
            tmp_path,
            {
                "node_modules/pkg/index.js": "x",
                "src/app.js": "x",
                "src/app.tmp": "x",
                "Thumbs.db": "x",
            },
        )
        walker = TreeWalker(["node_modules/**", "*.tmp", "Thumbs.db"])
        result = walker.walk(tmp_path)
        assert [e.relative_path for e in result.entries] == ["src/app.js"]

    def test_is_excluded(self):
        walker = TreeWalker(["node_modules/**", "*.log"])
        assert walker.is_excluded("node_modules/a/b.js")
        assert walker.is_excluded("x/debug.log")
        assert walker.is_excluded(".git/config")
        assert not walker.is_excluded("src/main.py")

    def test_excluded_dirs_pruned(self, tmp_path: Path, make_tree):
        make_tree(tmp_path, {"store/blob": "x", "data.txt": "x"})
        walker = TreeWalker(excluded_dirs=[tmp_path / "store"])
        result = walker.walk(tmp_path)
        assert [e.relative_path for e in result.entries] == ["data.txt"]

    def test_missing_root_raises(self, tmp_path: Path):
        with pytest.raises(NotFoundError):
            TreeWalker().walk(tmp_path / "nope")

    def test_file_root_raises(self, tmp_path: Path):
        f = tmp_path / "f.txt"
        f.write_text("x")
        with pytest.raises(NotFoundError):
            TreeWalker().walk(f)

    def test_unreadable_subdirectory_recorded(
        self, tmp_path: Path, make_tree, monkeypatch
    ):
        make_tree(tmp_path, {"good/a.txt": "x", "bad/b.txt": "x"})
        real_scandir = os.scandir

        def _scandir(path):
            if Path(path).name == "bad":
                raise PermissionError(13, "Permission denied")
            return real_scandir(path)

        monkeypatch.setattr("treevault.core.walker.os.scandir", _scandir)
        result = TreeWalker().walk(tmp_path)
        assert [e.relative_path for e in result.entries] == ["good/a.txt"]
        assert len(result.errors) == 1
        assert result.errors[0].path == "bad"
        assert result.errors[0].operation == "scan"
