"""Mutating filesystem helpers.

* **Atomic JSON writes** -- ``write_json_atomic()`` writes to a temp file in
  the destination directory and then calls ``os.replace()`` so readers
  never see partial data.
* **Copies** -- ``copy_file()`` copies content and, when asked, the
  source's access/modification times.
* **Backups** -- ``backup_file()`` places a timestamped copy next to a file
  before it is overwritten.

The engines call these through the module (``fileops.copy_file``) so tests
can patch a single seam.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any


def copy_file(
    src: Path, dst: Path, *, preserve_timestamps: bool = True
) -> int:
    """Copy *src* to *dst*, creating parent directories.

    Returns:
        Number of bytes copied.
    """
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dst)
    st = os.stat(src)
    if preserve_timestamps:
        os.utime(dst, ns=(st.st_atime_ns, st.st_mtime_ns))
    return st.st_size


def delete_file(path: Path) -> None:
    path.unlink()


def backup_file(path: Path) -> Path:
    """Copy *path* to ``<path>.backup.<epoch ms>`` and return the copy."""
    backup = path.with_name(f"{path.name}.backup.{int(time.time() * 1000)}")
    shutil.copy2(path, backup)
    return backup


def write_json_atomic(path: Path, data: Any) -> None:
    """Serialise *data* to *path* atomically.

    Creates the parent directory if needed.  The temp file is removed if
    anything fails before the final rename.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)
