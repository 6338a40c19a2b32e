"""Unit tests for the status command."""

from pathlib import Path

from packsync.cli.main import app
from packsync.core.index import GLOBAL_SENTINEL, ScopeIndex
from typer.testing import CliRunner

runner = CliRunner()


def _index(*scopes: tuple[str, list[str]]) -> None:
    index = ScopeIndex()
    for scope, packs in scopes:
        index.upsert(scope, packs)
    index.save()


class TestStatusCommand:
    """Tests for packsync status."""

    def test_empty_index(self) -> None:
        """Without an index there is nothing to show."""
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "No scopes configured yet." in result.output

    def test_lists_scopes(self) -> None:
        """Configured scopes are listed with their packs."""
        _index((GLOBAL_SENTINEL, ["docs", "web"]))

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "global" in result.output
        assert "docs, web" in result.output

    def test_prunes_stale_scopes(self, project_dir: Path, tmp_path: Path) -> None:
        """Projects that no longer exist are removed from the index."""
        gone = tmp_path / "gone"
        _index((str(project_dir), ["web"]), (str(gone), ["docs"]))

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Removed stale scope" in result.output
        assert list(ScopeIndex.load().entries) == [str(project_dir)]

    def test_pruning_disabled(self, isolated_dirs: Path, tmp_path: Path) -> None:
        """Stale scopes are kept when pruning is turned off."""
        config_file = isolated_dirs / "xdg-config" / "packsync" / "config.toml"
        config_file.parent.mkdir(parents=True)
        config_file.write_text("prune_stale_scopes = false\n")
        gone = tmp_path / "gone"
        _index((str(gone), ["docs"]))

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Removed stale scope" not in result.output
        assert list(ScopeIndex.load().entries) == [str(gone)]

    def test_invalid_config(self, isolated_dirs: Path) -> None:
        """A malformed config file ends the command with an error."""
        config_file = isolated_dirs / "xdg-config" / "packsync" / "config.toml"
        config_file.parent.mkdir(parents=True)
        config_file.write_text("not valid [ toml")

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Invalid TOML syntax" in result.output
