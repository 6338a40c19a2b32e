"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from pathlib import Path

import pytest
from packsync.models.component import (
    Component,
    PackageInstallAction,
    PluginAction,
    ServiceEntryAction,
)
from packsync.models.pack import Pack, TemplateContribution


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the XDG config and state directories into the test's tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))
    return tmp_path


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """The packsync state directory inside the isolated XDG state home."""
    return tmp_path / "xdg-state" / "packsync"


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """An existing, empty project directory."""
    path = tmp_path / "projects" / "demo"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def web_pack() -> Pack:
    """A pack with a package, a plugin, a service entry and a template."""
    return Pack(
        identifier="web",
        display_name="Web",
        version="1.2.0",
        components=(
            Component(
                id="web.eslint",
                install_action=PackageInstallAction("eslint"),
                pack_identifier="web",
                display_name="ESLint",
            ),
            Component(
                id="web.format",
                install_action=PluginAction("prettier@acme/plugins"),
                pack_identifier="web",
                display_name="Prettier plugin",
            ),
            Component(
                id="web.browser",
                install_action=ServiceEntryAction(name="browser", command="npx", args=("pw",)),
                pack_identifier="web",
                display_name="Browser service",
            ),
        ),
        templates=(
            TemplateContribution(
                section_identifier="web",
                template_content="## Web\n\nLint __REPO_NAME__ before committing.\n",
            ),
        ),
    )


@pytest.fixture
def docs_pack() -> Pack:
    """A pack that shares the eslint package with the web pack."""
    return Pack(
        identifier="docs",
        display_name="Docs",
        version="0.3.0",
        components=(
            Component(
                id="docs.eslint",
                install_action=PackageInstallAction("eslint"),
                pack_identifier="docs",
                display_name="ESLint for docs",
            ),
        ),
        templates=(
            TemplateContribution(section_identifier="docs", template_content="## Docs\n"),
        ),
    )


EXTERNAL_MANIFEST = """\
schema_version = 1
identifier = "tools"
display_name = "Tools"
description = "Team tooling"
version = "2.0.0"
gitignore_entries = [".tools-cache/"]

[[components]]
id = "lint"
display_name = "Linter"
install_action = { type = "package", package = "ruff" }

[[components]]
id = "setup"
display_name = "Setup"
dependencies = ["lint"]
install_action = { type = "shell_command", command = "make setup" }

[[components]]
id = "guide"
display_name = "Guide"

[components.install_action]
type = "copy_pack_file"
source = "files/guide.md"
destination = "guide.md"
file_type = "skill"

[[templates]]
section_identifier = "tools"
content_file = "templates/tools.md"
placeholders = ["__REPO_NAME__"]

[[supplementary_doctor_checks]]
type = "shell_script"
name = "Tools healthy"
command = "scripts/check.sh"
fix_command = "make fix"
"""


@pytest.fixture
def external_pack_dir(state_dir: Path) -> Path:
    """Checkout of the "tools" pack inside the packs directory."""
    path = state_dir / "packs" / "tools"
    (path / "files").mkdir(parents=True)
    (path / "templates").mkdir()
    (path / "scripts").mkdir()
    (path / "pack.toml").write_text(EXTERNAL_MANIFEST)
    (path / "files" / "guide.md").write_text("# Guide\n")
    (path / "templates" / "tools.md").write_text("## Tools\n\nRun ruff in __REPO_NAME__.\n")
    (path / "scripts" / "check.sh").write_text("#!/bin/sh\necho healthy\n")
    return path
