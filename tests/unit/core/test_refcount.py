"""Unit tests for cross-scope resource reference counting.

Any doubt about another owner must answer "still needed".
"""

from pathlib import Path

import pytest
from packsync.core.index import GLOBAL_SENTINEL, PACK_REMOVE_SENTINEL, ScopeIndex
from packsync.core.refcount import Resource, ResourceKind, ResourceRefCounter
from packsync.core.state import ScopeState
from packsync.models.pack import Pack
from packsync.models.state import ArtifactRecord, ServiceEntryRef
from packsync.packs.catalog import PackCatalog

ESLINT = Resource(ResourceKind.PACKAGE, "eslint")


@pytest.fixture
def catalog(web_pack: Pack, docs_pack: Pack) -> PackCatalog:
    return PackCatalog(builtin=[web_pack, docs_pack])


@pytest.fixture
def paths(tmp_path: Path) -> tuple[Path, Path]:
    return tmp_path / "global-state.json", tmp_path / "index.toml"


def _project(tmp_path: Path, name: str) -> str:
    path = tmp_path / name
    path.mkdir()
    return str(path)


def _index(path: Path, scopes: dict[str, list[str]]) -> None:
    index = ScopeIndex(path)
    for scope, packs in scopes.items():
        index.upsert(scope, packs)
    index.save()


def _counter(catalog: PackCatalog, paths: tuple[Path, Path]) -> ResourceRefCounter:
    global_state, index = paths
    return ResourceRefCounter(catalog, global_state_path=global_state, index_path=index)


class TestResource:
    """Tests for Resource ownership and declaration checks."""

    def test_plugin_matches_on_bare_name(self, web_pack: Pack) -> None:
        """Plugin references with different marketplaces denote one plugin."""
        resource = Resource(ResourceKind.PLUGIN, "prettier")

        assert resource.declared_by(web_pack)
        assert resource.owned_by(ArtifactRecord(plugins=["prettier@other/repo"]))
        assert resource.display_name == "plugin 'prettier'"

    def test_service_entry_ownership(self) -> None:
        """Service entries are matched by name."""
        resource = Resource(ResourceKind.SERVICE_ENTRY, "browser")

        assert resource.owned_by(ArtifactRecord(service_entries=[ServiceEntryRef(name="browser")]))
        assert not resource.owned_by(ArtifactRecord())


class TestIsStillNeeded:
    """Tests for ResourceRefCounter.is_still_needed."""

    def test_single_owner_is_removable(
        self, tmp_path: Path, catalog: PackCatalog, paths: tuple[Path, Path]
    ) -> None:
        """The only declaring (scope, pack) pair being removed frees the resource."""
        project = _project(tmp_path, "one")
        _index(paths[1], {project: ["web"]})

        assert not _counter(catalog, paths).is_still_needed(ESLINT, project, "web")

    def test_second_declaring_scope_keeps_it(
        self, tmp_path: Path, catalog: PackCatalog, paths: tuple[Path, Path]
    ) -> None:
        """Another scope whose pack declares the resource keeps it."""
        one = _project(tmp_path, "one")
        two = _project(tmp_path, "two")
        _index(paths[1], {one: ["web"], two: ["docs"]})

        assert _counter(catalog, paths).is_still_needed(ESLINT, one, "web")

    def test_unloadable_pack_keeps_it(
        self, tmp_path: Path, catalog: PackCatalog, paths: tuple[Path, Path]
    ) -> None:
        """A pack that cannot be loaded counts as needing the resource."""
        one = _project(tmp_path, "one")
        three = _project(tmp_path, "three")
        _index(paths[1], {one: ["web"], three: ["ghost"]})

        assert _counter(catalog, paths).is_still_needed(ESLINT, one, "web")

    def test_monotonic_as_owners_are_added(
        self, tmp_path: Path, catalog: PackCatalog, paths: tuple[Path, Path]
    ) -> None:
        """Adding owners never turns "needed" back into "removable"."""
        one = _project(tmp_path, "one")
        two = _project(tmp_path, "two")
        three = _project(tmp_path, "three")
        counter = _counter(catalog, paths)

        _index(paths[1], {one: ["web"]})
        first = counter.is_still_needed(ESLINT, one, "web")
        _index(paths[1], {one: ["web"], two: ["docs"]})
        second = counter.is_still_needed(ESLINT, one, "web")
        _index(paths[1], {one: ["web"], two: ["docs"], three: ["ghost"]})
        third = counter.is_still_needed(ESLINT, one, "web")

        assert (first, second, third) == (False, True, True)

    def test_global_record_keeps_it(self, catalog: PackCatalog, paths: tuple[Path, Path]) -> None:
        """A global pack whose record lists the resource keeps it."""
        state = ScopeState(paths[0])
        state.record_pack("docs")
        state.set_artifacts("docs", ArtifactRecord(packages=["eslint"]))
        state.save()

        assert _counter(catalog, paths).is_still_needed(ESLINT, "/some/project", "web")

    def test_global_removal_skips_own_record(
        self, catalog: PackCatalog, paths: tuple[Path, Path]
    ) -> None:
        """Removing a global pack ignores that pack's own global record."""
        state = ScopeState(paths[0])
        state.record_pack("web")
        state.set_artifacts("web", ArtifactRecord(packages=["eslint"]))
        state.save()
        _index(paths[1], {GLOBAL_SENTINEL: ["web"]})

        assert not _counter(catalog, paths).is_still_needed(ESLINT, GLOBAL_SENTINEL, "web")

    def test_pack_removal_ignores_same_pack_everywhere(
        self, tmp_path: Path, catalog: PackCatalog, paths: tuple[Path, Path]
    ) -> None:
        """With the pack-removal sentinel, the pack's own scopes do not count."""
        one = _project(tmp_path, "one")
        two = _project(tmp_path, "two")
        _index(paths[1], {one: ["web"], two: ["web"]})

        counter = _counter(catalog, paths)

        assert counter.is_still_needed(ESLINT, one, "web")
        assert not counter.is_still_needed(ESLINT, PACK_REMOVE_SENTINEL, "web")

    def test_corrupt_global_state_keeps_it(
        self, catalog: PackCatalog, paths: tuple[Path, Path]
    ) -> None:
        """An unreadable global state answers "still needed"."""
        paths[0].write_text("{broken")

        assert _counter(catalog, paths).is_still_needed(ESLINT, "/p", "web")

    def test_corrupt_index_keeps_it(self, catalog: PackCatalog, paths: tuple[Path, Path]) -> None:
        """An unreadable index answers "still needed"."""
        paths[1].write_text("not = [valid")

        assert _counter(catalog, paths).is_still_needed(ESLINT, "/p", "web")

    def test_stale_scopes_are_pruned(
        self, tmp_path: Path, catalog: PackCatalog, paths: tuple[Path, Path]
    ) -> None:
        """Scopes whose directory is gone are skipped and pruned from the index."""
        one = _project(tmp_path, "one")
        gone = str(tmp_path / "gone")
        _index(paths[1], {one: ["web"], gone: ["docs"]})

        assert not _counter(catalog, paths).is_still_needed(ESLINT, one, "web")
        assert gone not in ScopeIndex.load(paths[1]).entries
