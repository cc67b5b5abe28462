"""Tests for content identity helpers (hashing, stat, MIME guessing)."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest
import xxhash

from treevault.core.identity import (
    HASH_ALGORITHMS,
    guess_mime_type,
    hash_file,
    identify,
    new_hasher,
    stat_file,
)


class TestHashFile:
    """Tests for hash_file()."""

    def test_default_is_sha256(self, tmp_path: Path):
        path = tmp_path / "a.txt"
        path.write_bytes(b"hello")
        assert hash_file(path) == hashlib.sha256(b"hello").hexdigest()

    def test_xxh64_algorithm(self, tmp_path: Path):
        path = tmp_path / "a.bin"
        path.write_bytes(b"payload")
        assert hash_file(path, "xxh64") == xxhash.xxh64(b"payload").hexdigest()

    def test_chunked_read_matches_whole(self, tmp_path: Path):
        data = os.urandom(10_000)
        path = tmp_path / "big.bin"
        path.write_bytes(data)
        assert hash_file(path, "md5", chunk_size=97) == hashlib.md5(data).hexdigest()

    def test_identical_content_identical_hash(self, tmp_path: Path):
        (tmp_path / "x").write_text("same")
        (tmp_path / "y").write_text("same")
        assert hash_file(tmp_path / "x") == hash_file(tmp_path / "y")

    def test_unknown_algorithm_rejected(self):
        with pytest.raises(ValueError, match="Unknown hash algorithm"):
            new_hasher("crc32")

    def test_algorithm_names_case_insensitive(self, tmp_path: Path):
        path = tmp_path / "x"
        path.write_bytes(b"x")
        assert hash_file(path, "SHA1") == hashlib.sha1(b"x").hexdigest()

    def test_supported_algorithms(self):
        assert set(HASH_ALGORITHMS) == {"md5", "sha1", "sha256", "sha512", "xxh64"}


class TestStatAndIdentify:
    """Tests for stat_file(), identify() and guess_mime_type()."""

    def test_stat_file(self, tmp_path: Path):
        path = tmp_path / "a.txt"
        path.write_text("12345")
        os.utime(path, (1_000_000, 2_000_000))
        st = stat_file(path)
        assert st.size == 5
        assert st.mtime == 2_000_000
        assert st.atime == 1_000_000

    def test_identify_relative_path_and_hash(self, tmp_path: Path):
        path = tmp_path / "sub" / "f.txt"
        path.parent.mkdir()
        path.write_text("content")
        ident = identify(path, tmp_path)
        assert ident.relative_path == "sub/f.txt"
        assert ident.content_hash == hashlib.sha256(b"content").hexdigest()
        assert ident.stat.size == 7

    def test_identify_without_hash(self, tmp_path: Path):
        path = tmp_path / "f.txt"
        path.write_text("content")
        assert identify(path, tmp_path, algorithm=None).content_hash is None

    def test_guess_mime_type(self):
        assert guess_mime_type("notes.txt") == "text/plain"
        assert guess_mime_type("blob.unknownext") == "application/octet-stream"
