"""Glob pattern compiler used for exclude lists.

Supported syntax:

* ``*``  -- any run of characters within one path segment (no ``/``).
* ``**`` -- any run of characters across segments.  ``a/**/b`` also
  matches ``a/b``, and a leading ``**/`` matches zero directories.
* ``?``  -- exactly one character other than ``/``.

Every other character is matched literally (regex metacharacters are
escaped).  Paths are matched in POSIX form, anchored at both ends.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a glob *pattern* into an anchored compiled regex."""
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                i += 2
                if i < n and pattern[i] == "/":
                    # "**/" matches zero or more whole directories
                    parts.append("(?:.*/)?")
                    i += 1
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("^" + "".join(parts) + "$")


class GlobMatcher:
    """Match relative paths against a list of exclude patterns.

    A file is excluded when any pattern matches its full relative path or
    its basename.  A directory is pruned when a pattern of the form
    ``<dir>/**`` names it (by relative path or by basename), so walks never
    descend into it.

    Args:
        patterns: Glob patterns; blank entries are ignored.
    """

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self.patterns: tuple[str, ...] = tuple(
            p.strip().replace("\\", "/") for p in patterns if p and p.strip()
        )
        self._file_regexes = [compile_glob(p) for p in self.patterns]
        self._dir_regexes = [
            compile_glob(p[: -len("/**")])
            for p in self.patterns
            if p.endswith("/**") and len(p) > 3
        ]

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __repr__(self) -> str:
        return f"GlobMatcher({list(self.patterns)!r})"

    def matches(self, relative_path: str) -> bool:
        """Return ``True`` if *relative_path* (a file) is excluded."""
        rel = relative_path.replace("\\", "/").strip("/")
        name = rel.rsplit("/", 1)[-1]
        return any(
            rx.match(rel) or rx.match(name) for rx in self._file_regexes
        )

    def matches_dir(self, relative_dir: str) -> bool:
        """Return ``True`` if the directory *relative_dir* should be pruned."""
        rel = relative_dir.replace("\\", "/").strip("/")
        if not rel:
            return False
        name = rel.rsplit("/", 1)[-1]
        if any(rx.match(rel) or rx.match(name) for rx in self._dir_regexes):
            return True
        # "**" style patterns that swallow everything below a directory
        return any(rx.match(rel + "/") for rx in self._file_regexes)
