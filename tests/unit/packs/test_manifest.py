"""Unit tests for pack.toml loading and validation."""

from pathlib import Path
from typing import Any

import pytest
from packsync.packs.manifest import (
    PackManifest,
    PackManifestNotFoundError,
    PackManifestParseError,
    PackManifestValidationError,
    load_pack_manifest,
)
from pydantic import ValidationError


def _manifest(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "schema_version": 1,
        "identifier": "web",
        "display_name": "Web",
        "version": "1.0.0",
    }
    data.update(overrides)
    return data


def _component(cid: str, **action: Any) -> dict[str, Any]:
    return {
        "id": cid,
        "display_name": cid,
        "install_action": action or {"type": "package", "package": "node"},
    }


class TestLoadPackManifest:
    """Tests for load_pack_manifest."""

    def test_loads_and_normalizes(self, external_pack_dir: Path) -> None:
        """Short IDs and dependencies are prefixed with the pack identifier."""
        manifest = load_pack_manifest(external_pack_dir)

        assert manifest.identifier == "tools"
        assert [c.id for c in manifest.components] == ["tools.lint", "tools.setup", "tools.guide"]
        assert manifest.components[1].dependencies == ["tools.lint"]
        assert manifest.templates[0].section_identifier == "tools"
        assert manifest.components[2].install_action.type == "copy_pack_file"

    def test_missing_file(self, tmp_path: Path) -> None:
        """A directory without pack.toml raises PackManifestNotFoundError."""
        with pytest.raises(PackManifestNotFoundError):
            load_pack_manifest(tmp_path)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Broken TOML raises PackManifestParseError."""
        (tmp_path / "pack.toml").write_text("identifier = [")

        with pytest.raises(PackManifestParseError):
            load_pack_manifest(tmp_path)

    def test_not_utf8(self, tmp_path: Path) -> None:
        """A manifest that is not UTF-8 raises PackManifestParseError."""
        (tmp_path / "pack.toml").write_bytes(b'identifier = "\xff"\n')

        with pytest.raises(PackManifestParseError, match="not valid UTF-8"):
            load_pack_manifest(tmp_path)

    def test_invalid_content(self, tmp_path: Path) -> None:
        """Schema violations raise PackManifestValidationError."""
        (tmp_path / "pack.toml").write_text('schema_version = 1\nidentifier = "web"\n')

        with pytest.raises(PackManifestValidationError):
            load_pack_manifest(tmp_path)


class TestPackManifest:
    """Tests for PackManifest validation."""

    def test_section_prefixing(self) -> None:
        """Sections other than the pack identifier are prefixed."""
        manifest = PackManifest.model_validate(
            _manifest(
                templates=[
                    {"section_identifier": "web", "content_file": "a.md"},
                    {"section_identifier": "extra", "content_file": "b.md"},
                ]
            )
        )

        assert [t.section_identifier for t in manifest.templates] == ["web", "web.extra"]

    def test_unsupported_schema_version(self) -> None:
        """Only schema version 1 is accepted."""
        with pytest.raises(ValidationError, match="Unsupported schema version"):
            PackManifest.model_validate(_manifest(schema_version=2))

    @pytest.mark.parametrize("identifier", ["Web", "web tools", "-web", "web_tools"])
    def test_invalid_identifier(self, identifier: str) -> None:
        """Identifiers are lowercase alphanumerics and hyphens."""
        with pytest.raises(ValidationError, match="Invalid pack identifier"):
            PackManifest.model_validate(_manifest(identifier=identifier))

    def test_foreign_component_prefix(self) -> None:
        """An already qualified ID of another pack is rejected."""
        with pytest.raises(ValidationError, match="must start with 'web.'"):
            PackManifest.model_validate(_manifest(components=[_component("docs.x")]))

    def test_duplicate_component(self) -> None:
        """The same component ID may appear once."""
        with pytest.raises(ValidationError, match="Duplicate component ID"):
            PackManifest.model_validate(
                _manifest(components=[_component("lint"), _component("web.lint")])
            )

    def test_duplicate_prompt_key(self) -> None:
        """Prompt keys must be unique."""
        prompt = {"key": "TEAM", "type": "input"}

        with pytest.raises(ValidationError, match="Duplicate prompt key"):
            PackManifest.model_validate(_manifest(prompts=[prompt, prompt]))

    def test_unknown_action_type(self) -> None:
        """Install actions are a closed set."""
        with pytest.raises(ValidationError):
            PackManifest.model_validate(
                _manifest(components=[_component("x", type="download", url="http://x")])
            )

    def test_http_service_entry_requires_url(self) -> None:
        """HTTP service entries need a URL, stdio entries a command."""
        http = _component("x", type="service_entry", name="s", transport="http")
        stdio = _component("x", type="service_entry", name="s")

        with pytest.raises(ValidationError, match="requires 'url'"):
            PackManifest.model_validate(_manifest(components=[http]))
        with pytest.raises(ValidationError, match="requires 'command'"):
            PackManifest.model_validate(_manifest(components=[stdio]))

    def test_doctor_check_required_fields(self) -> None:
        """A file_contains check needs a pattern."""
        check = {"type": "file_contains", "name": "has rules", "path": "RULES.md"}

        with pytest.raises(ValidationError, match="requires non-empty 'pattern'"):
            PackManifest.model_validate(_manifest(supplementary_doctor_checks=[check]))

    def test_all_doctor_checks_order(self) -> None:
        """Component checks come before supplementary checks."""
        component = _component("lint")
        component["doctor_checks"] = [{"type": "command_exists", "name": "a", "command": "node"}]
        manifest = PackManifest.model_validate(
            _manifest(
                components=[component],
                supplementary_doctor_checks=[{"type": "file_exists", "name": "b", "path": "x"}],
            )
        )

        assert [c.name for c in manifest.all_doctor_checks()] == ["a", "b"]
