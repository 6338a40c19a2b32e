"""Unit tests for the external pack adapter."""

from pathlib import Path
from typing import Any

from packsync.models.component import (
    CopyFileAction,
    CopyFileKind,
    PackageInstallAction,
    ServiceEntryAction,
    SettingsMergeAction,
)
from packsync.models.pack import PackSource
from packsync.packs.adapter import ExternalPackAdapter
from packsync.packs.checks import ShellScriptCheck
from packsync.packs.manifest import PackManifest, load_pack_manifest


def _component(cid: str, action: dict[str, Any]) -> dict[str, Any]:
    return {"id": cid, "display_name": cid, "install_action": action}


class TestExternalPackAdapter:
    """Tests for ExternalPackAdapter.to_pack."""

    def test_converts_manifest(self, external_pack_dir: Path) -> None:
        """Every manifest part ends up in the Pack."""
        adapter = ExternalPackAdapter(load_pack_manifest(external_pack_dir), external_pack_dir)

        pack = adapter.to_pack()

        assert pack.identifier == "tools"
        assert pack.version == "2.0.0"
        assert pack.source == PackSource.EXTERNAL
        assert pack.path == external_pack_dir
        assert pack.gitignore_entries == (".tools-cache/",)
        assert [c.id for c in pack.components] == ["tools.lint", "tools.setup", "tools.guide"]
        assert pack.components[0].install_action == PackageInstallAction("ruff")
        assert pack.components[1].dependencies == ("tools.lint",)
        assert pack.components[2].install_action == CopyFileAction(
            source=(external_pack_dir / "files" / "guide.md").resolve(),
            destination="guide.md",
            kind=CopyFileKind.SKILL,
        )
        assert pack.templates[0].template_content == "## Tools\n\nRun ruff in __REPO_NAME__.\n"
        assert pack.templates[0].placeholders == ("__REPO_NAME__",)
        assert isinstance(pack.supplementary_checks[0], ShellScriptCheck)
        assert adapter.rejected == []

    def test_escaping_references_are_dropped(self, tmp_path: Path) -> None:
        """Escaping templates and components are dropped, the rest loads."""
        pack_dir = tmp_path / "pack"
        pack_dir.mkdir()
        (tmp_path / "outside.md").write_text("stolen")
        manifest = PackManifest.model_validate(
            {
                "schema_version": 1,
                "identifier": "web",
                "display_name": "Web",
                "version": "1.0.0",
                "components": [
                    _component("node", {"type": "package", "package": "node"}),
                    _component(
                        "steal",
                        {
                            "type": "copy_pack_file",
                            "source": "../outside.md",
                            "destination": "x.md",
                        },
                    ),
                ],
                "templates": [{"section_identifier": "web", "content_file": "../outside.md"}],
            }
        )
        adapter = ExternalPackAdapter(manifest, pack_dir)

        pack = adapter.to_pack()

        assert [c.id for c in pack.components] == ["web.node"]
        assert pack.templates == ()
        assert len(adapter.rejected) == 2
        assert adapter.rejected[0].reference == "../outside.md"

    def test_service_entries_and_settings(self, tmp_path: Path) -> None:
        """HTTP entries keep only the URL; settings files resolve in the pack."""
        (tmp_path / "settings.json").write_text("{}")
        manifest = PackManifest.model_validate(
            {
                "schema_version": 1,
                "identifier": "web",
                "display_name": "Web",
                "version": "1.0.0",
                "components": [
                    _component(
                        "docs",
                        {
                            "type": "service_entry",
                            "name": "docs",
                            "transport": "http",
                            "url": "https://docs.example.com/mcp",
                            "command": "ignored",
                            "scope": "user",
                        },
                    ),
                    _component("cfg", {"type": "settings_file", "source": "settings.json"}),
                    _component("derived", {"type": "settings_merge"}),
                ],
            }
        )

        pack = ExternalPackAdapter(manifest, tmp_path).to_pack()

        entry, settings, derived = (c.install_action for c in pack.components)
        assert entry == ServiceEntryAction(
            name="docs", url="https://docs.example.com/mcp", scope="user"
        )
        assert entry.resolved_scope == "user"
        assert settings == SettingsMergeAction((tmp_path / "settings.json").resolve())
        assert derived == SettingsMergeAction()

    def test_symlinked_template_escaping_pack_is_dropped(self, tmp_path: Path) -> None:
        """A template file that links outside the pack is rejected, others load."""
        pack_dir = tmp_path / "pack"
        (pack_dir / "templates").mkdir(parents=True)
        (tmp_path / "outside.md").write_text("stolen")
        (pack_dir / "templates" / "link.md").symlink_to(tmp_path / "outside.md")
        (pack_dir / "templates" / "web.md").write_text("## Web\n")
        manifest = PackManifest.model_validate(
            {
                "schema_version": 1,
                "identifier": "web",
                "display_name": "Web",
                "version": "1.0.0",
                "templates": [
                    {"section_identifier": "link", "content_file": "templates/link.md"},
                    {"section_identifier": "web", "content_file": "templates/web.md"},
                ],
            }
        )
        adapter = ExternalPackAdapter(manifest, pack_dir)

        pack = adapter.to_pack()

        assert [t.section_identifier for t in pack.templates] == ["web"]
        assert [e.reference for e in adapter.rejected] == ["templates/link.md"]

    def test_undecodable_files_drop_only_their_entry(self, tmp_path: Path) -> None:
        """A template or hook fragment that is not UTF-8 is skipped, the rest loads."""
        (tmp_path / "bad.md").write_bytes(b"## \xff\xfe broken\n")
        (tmp_path / "good.md").write_text("## Good\n")
        (tmp_path / "bad.sh").write_bytes(b"echo \xff\n")
        (tmp_path / "good.sh").write_text("echo ok\n")
        manifest = PackManifest.model_validate(
            {
                "schema_version": 1,
                "identifier": "web",
                "display_name": "Web",
                "version": "1.0.0",
                "components": [_component("node", {"type": "package", "package": "node"})],
                "templates": [
                    {"section_identifier": "bad", "content_file": "bad.md"},
                    {"section_identifier": "web", "content_file": "good.md"},
                ],
                "hook_contributions": [
                    {"hook_name": "session_start", "fragment_file": "bad.sh"},
                    {"hook_name": "pre_commit", "fragment_file": "good.sh"},
                ],
            }
        )

        pack = ExternalPackAdapter(manifest, tmp_path).to_pack()

        assert [c.id for c in pack.components] == ["web.node"]
        assert [t.section_identifier for t in pack.templates] == ["web"]
        assert [(h.hook_name, h.script_fragment) for h in pack.hooks] == [
            ("pre_commit", "echo ok\n")
        ]

    def test_hook_event_carried_to_component(self, tmp_path: Path) -> None:
        """A copied hook keeps the settings event it registers under."""
        (tmp_path / "guard.sh").write_text("exit 0\n")
        component = _component(
            "guard",
            {
                "type": "copy_pack_file",
                "source": "guard.sh",
                "destination": "guard.sh",
                "file_type": "hook",
            },
        )
        component.update(hook_event="PreToolUse")
        manifest = PackManifest.model_validate(
            {
                "schema_version": 1,
                "identifier": "web",
                "display_name": "Web",
                "version": "1.0.0",
                "components": [component],
            }
        )

        pack = ExternalPackAdapter(manifest, tmp_path).to_pack()

        assert pack.components[0].hook_event == "PreToolUse"
