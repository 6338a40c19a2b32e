"""Unit tests for content hashing."""

import hashlib
from pathlib import Path

import pytest
from packsync.core.hashing import HashingError, directory_file_hashes, sha256_file, sha256_text


class TestSha256:
    """Tests for sha256_text and sha256_file."""

    def test_text_and_file_agree(self, tmp_path: Path) -> None:
        """Hashing a file equals hashing its text."""
        path = tmp_path / "a.txt"
        path.write_text("Hello World")

        assert sha256_file(path) == sha256_text("Hello World")
        assert sha256_text("Hello World") == hashlib.sha256(b"Hello World").hexdigest()

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Hashing a missing file raises OSError."""
        with pytest.raises(OSError):
            sha256_file(tmp_path / "missing")


class TestDirectoryFileHashes:
    """Tests for directory_file_hashes."""

    def test_walks_sorted_and_skips_hidden(self, tmp_path: Path) -> None:
        """Files are listed sorted by relative path; hidden entries are skipped."""
        (tmp_path / "b.md").write_text("b")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "a.md").write_text("a")
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "HEAD").write_text("ref")
        (tmp_path / ".hidden").write_text("h")

        result = directory_file_hashes(tmp_path)

        assert result == [("b.md", sha256_text("b")), ("sub/a.md", sha256_text("a"))]

    def test_not_a_directory(self, tmp_path: Path) -> None:
        """A file path raises HashingError."""
        path = tmp_path / "file"
        path.write_text("x")

        with pytest.raises(HashingError, match="Not a directory"):
            directory_file_hashes(path)
