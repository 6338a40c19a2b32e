"""Unit tests for pack models."""

from packsync.models.pack import Pack, PackSource


class TestPack:
    """Tests for Pack declaration lookups."""

    def test_defaults(self) -> None:
        """A minimal pack is built-in with no content."""
        pack = Pack(identifier="empty", display_name="Empty")

        assert pack.source == PackSource.BUILTIN
        assert pack.components == ()
        assert pack.section_identifiers() == []

    def test_declares_package(self, web_pack: Pack) -> None:
        """Packages are matched by exact name."""
        assert web_pack.declares_package("eslint")
        assert not web_pack.declares_package("prettier")

    def test_declares_plugin_by_bare_name(self, web_pack: Pack) -> None:
        """Plugins match regardless of the marketplace suffix."""
        assert web_pack.declares_plugin("prettier")
        assert web_pack.declares_plugin("prettier@other/repo")
        assert not web_pack.declares_plugin("eslint")

    def test_declares_service_entry(self, web_pack: Pack) -> None:
        """Service entries are matched by name."""
        assert web_pack.declares_service_entry("browser")
        assert not web_pack.declares_service_entry("docs")

    def test_section_identifiers(self, web_pack: Pack) -> None:
        """Template sections are listed in declaration order."""
        assert web_pack.section_identifiers() == ["web"]
