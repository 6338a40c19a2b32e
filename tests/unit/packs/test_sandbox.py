"""Unit tests for pack path containment."""

from pathlib import Path

import pytest
from packsync.packs.sandbox import (
    PathEscapeError,
    is_contained,
    relative_path,
    require_safe_path,
    safe_path,
)


@pytest.fixture
def pack(tmp_path: Path) -> Path:
    path = tmp_path / "pack"
    (path / "docs").mkdir(parents=True)
    (path / "docs" / "guide.md").write_text("guide")
    (tmp_path / "secret.md").write_text("secret")
    return path


class TestSafePath:
    """Tests for safe_path and require_safe_path."""

    def test_contained_reference(self, pack: Path) -> None:
        """A reference inside the pack resolves to an absolute path."""
        assert safe_path("docs/guide.md", pack) == (pack / "docs" / "guide.md").resolve()

    def test_nonexistent_reference_still_resolves(self, pack: Path) -> None:
        """Containment does not require the file to exist."""
        assert safe_path("docs/new.md", pack) == (pack / "docs" / "new.md").resolve()

    @pytest.mark.parametrize(
        "reference", ["../secret.md", "docs/../../secret.md", "/etc/passwd", ""]
    )
    def test_escaping_references(self, pack: Path, reference: str) -> None:
        """Parent traversal, absolute paths and empty references are rejected."""
        assert safe_path(reference, pack) is None

    def test_symlink_escape(self, pack: Path, tmp_path: Path) -> None:
        """A symlink pointing outside the pack is rejected."""
        (pack / "link").symlink_to(tmp_path)

        assert safe_path("link/secret.md", pack) is None

    def test_sibling_with_common_prefix(self, pack: Path, tmp_path: Path) -> None:
        """A sibling directory sharing the pack's name prefix is outside."""
        (tmp_path / "pack-evil").mkdir()

        assert safe_path("../pack-evil/x", pack) is None
        assert not is_contained(tmp_path / "pack-evil", pack)

    def test_require_raises(self, pack: Path) -> None:
        """require_safe_path raises with the offending reference."""
        with pytest.raises(PathEscapeError) as exc_info:
            require_safe_path("../secret.md", pack)

        assert exc_info.value.reference == "../secret.md"
        assert "escapes pack directory" in str(exc_info.value)


class TestIsContained:
    """Tests for is_contained."""

    def test_base_contains_itself(self, pack: Path) -> None:
        """The base directory counts as contained."""
        assert is_contained(pack, pack)
        assert is_contained(pack / "docs", pack)


class TestRelativePath:
    """Tests for relative_path."""

    def test_below_base(self, pack: Path) -> None:
        """Paths below the base are made relative."""
        assert relative_path(pack / "docs" / "guide.md", pack) == "docs/guide.md"

    def test_outside_base(self, pack: Path, tmp_path: Path) -> None:
        """Paths outside the base are returned unchanged."""
        assert relative_path(tmp_path / "secret.md", pack) == str(tmp_path / "secret.md")
