"""Filesystem primitives shared by the sync engine and the version manager."""

from .identity import FileIdentity, hash_file, identify, stat_file
from .locks import KeyedLock
from .patterns import GlobMatcher, compile_glob
from .walker import TreeWalker, WalkResult
from .workers import CancelToken, run_bounded

__all__ = [
    "CancelToken",
    "FileIdentity",
    "GlobMatcher",
    "KeyedLock",
    "TreeWalker",
    "WalkResult",
    "compile_glob",
    "hash_file",
    "identify",
    "run_bounded",
    "stat_file",
]
