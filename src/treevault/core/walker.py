"""Tree walker: enumerate the regular files of a directory tree.

Hidden entries (names starting with ``.``) are skipped unless requested,
excluded patterns are applied to files and used to prune directories, and
extra absolute directories (typically a version repository living inside
the tracked tree) are never descended into.

Unreadable sub-directories do not abort the walk: they are logged and
recorded in ``WalkResult.errors``.  A missing or unreadable *root* raises,
since nothing meaningful can be reported without it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from treevault.errors import NotFoundError, PermissionDeniedError

from .models import FileError
from .patterns import GlobMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalkEntry:
    """One regular file found by the walker."""

    path: Path
    relative_path: str
    size: int
    mtime: float


@dataclass
class WalkResult:
    """Files found under a root, sorted by relative path."""

    root: Path
    entries: list[WalkEntry] = field(default_factory=list)
    errors: list[FileError] = field(default_factory=list)

    def by_path(self) -> dict[str, WalkEntry]:
        return {e.relative_path: e for e in self.entries}

    @property
    def total_size(self) -> int:
        return sum(e.size for e in self.entries)


class TreeWalker:
    """Enumerate files below a root honouring exclusions.

    Args:
        exclude_patterns: Glob patterns (see :mod:`treevault.core.patterns`).
        include_hidden: Descend into / report dot-files and dot-directories.
        excluded_dirs: Absolute directories that are never entered.
        follow_symlinks: Follow symlinked directories and files.
    """

    def __init__(
        self,
        exclude_patterns: Iterable[str] = (),
        *,
        include_hidden: bool = False,
        excluded_dirs: Iterable[Path] = (),
        follow_symlinks: bool = False,
    ) -> None:
        self.matcher = GlobMatcher(exclude_patterns)
        self.include_hidden = include_hidden
        self.excluded_dirs = frozenset(
            Path(d).resolve() for d in excluded_dirs
        )
        self.follow_symlinks = follow_symlinks

    def walk(self, root: Path) -> WalkResult:
        """Walk *root* and return every non-excluded regular file.

        Raises:
            NotFoundError: If *root* does not exist or is not a directory.
            PermissionDeniedError: If *root* itself cannot be listed.
        """
        root = Path(root)
        if not root.is_dir():
            raise NotFoundError(f"Directory not found: {root}")
        try:
            with os.scandir(root):
                pass
        except PermissionError as e:
            raise PermissionDeniedError(
                f"Cannot read directory {root}: {e.strerror or e}"
            ) from e

        result = WalkResult(root=root)
        self._walk_dir(root, root, result)
        result.entries.sort(key=lambda e: e.relative_path)
        return result

    def is_excluded(self, relative_path: str) -> bool:
        """Return ``True`` if a file at *relative_path* would be skipped."""
        parts = relative_path.replace("\\", "/").split("/")
        if not self.include_hidden and any(p.startswith(".") for p in parts):
            return True
        for depth in range(1, len(parts)):
            if self.matcher.matches_dir("/".join(parts[:depth])):
                return True
        return self.matcher.matches(relative_path)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _walk_dir(self, directory: Path, root: Path, result: WalkResult) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            rel = directory.relative_to(root).as_posix()
            logger.warning("Cannot read directory %s: %s", directory, e)
            result.errors.append(
                FileError(path=rel, operation="scan", error=str(e))
            )
            return

        for entry in entries:
            if not self.include_hidden and entry.name.startswith("."):
                continue
            path = Path(entry.path)
            rel = path.relative_to(root).as_posix()
            try:
                if entry.is_dir(follow_symlinks=self.follow_symlinks):
                    if self.matcher.matches_dir(rel):
                        logger.debug("Pruned excluded directory %s", rel)
                        continue
                    if self.excluded_dirs and path.resolve() in self.excluded_dirs:
                        logger.debug("Pruned repository directory %s", rel)
                        continue
                    self._walk_dir(path, root, result)
                elif entry.is_file(follow_symlinks=self.follow_symlinks):
                    if self.matcher.matches(rel):
                        continue
                    st = entry.stat(follow_symlinks=self.follow_symlinks)
                    result.entries.append(
                        WalkEntry(
                            path=path,
                            relative_path=rel,
                            size=st.st_size,
                            mtime=st.st_mtime,
                        )
                    )
            except OSError as e:
                logger.warning("Cannot stat %s: %s", path, e)
                result.errors.append(
                    FileError(path=rel, operation="scan", error=str(e))
                )
