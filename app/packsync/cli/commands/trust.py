"""Trust commands for registered external packs.

Scripts of an external pack are trusted by content hash when the pack is
registered. These commands show and re-verify those hashes, and record
new hashes once the user has reviewed changed scripts.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from packsync.core.errors import PacksyncError
from packsync.packs.manifest import load_pack_manifest
from packsync.packs.registry import PackRegistry, PackRegistryEntry
from packsync.packs.trust import PackTrustManager
from packsync.utils.formatting import (
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Manage trusted pack scripts.",
    invoke_without_command=True,
    no_args_is_help=True,
)


def _load_registry() -> PackRegistry:
    try:
        return PackRegistry.load()
    except PacksyncError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def _checkout(registry: PackRegistry, pack: str) -> tuple[PackRegistryEntry, Path]:
    entry = registry.pack(pack)
    if entry is None:
        print_error(f"Pack '{pack}' is not registered.")
        raise typer.Exit(code=1)

    checkout = entry.checkout_path()
    if not checkout.is_dir():
        print_error(f"Checkout of pack '{pack}' not found: {checkout}")
        raise typer.Exit(code=1)
    return entry, checkout


@app.command("list")
def list_packs() -> None:
    """List registered packs and how many scripts each one trusts."""
    registry = _load_registry()
    if not registry.entries:
        print_info("No external packs registered.")
        return

    table = Table(title="Registered Packs", show_header=True, header_style="bold_header")
    table.add_column("Pack", style="pack.external", no_wrap=True)
    table.add_column("Version", style="muted")
    table.add_column("Commit", style="muted")
    table.add_column("Trusted", justify="right")
    for entry in sorted(registry.entries, key=lambda e: e.identifier):
        table.add_row(
            entry.identifier,
            entry.version,
            entry.commit_sha[:12] or "-",
            str(len(entry.trusted_script_hashes)),
        )
    console.print(table)


@app.command()
def verify(
    pack: Annotated[
        str,
        typer.Argument(help="Identifier of the registered pack.", show_default=False),
    ],
) -> None:
    """Verify that a pack's trusted scripts are unchanged on disk.

    Exits with code 1 if any trusted script is missing or modified.

    Examples:
        packsync trust verify web
    """
    entry, checkout = _checkout(_load_registry(), pack)
    modified = PackTrustManager().verify_trust(entry.trusted_script_hashes, checkout)
    if modified:
        print_error(f"Pack '{pack}' has modified trusted scripts:")
        for relative in modified:
            console.print(f"  [removed]{relative}[/]")
        raise typer.Exit(code=1)

    print_success(f"All trusted scripts of '{pack}' are unchanged.")


@app.command()
def accept(
    pack: Annotated[
        str,
        typer.Argument(help="Identifier of the registered pack.", show_default=False),
    ],
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt and proceed.",
        ),
    ] = False,
) -> None:
    """Trust the current scripts of a pack after reviewing what changed.

    New or changed scripts are listed first. Accepting replaces the pack's
    trusted hashes with hashes of everything it can currently run.

    Examples:
        packsync trust accept web
        packsync trust accept web --yes
    """
    registry = _load_registry()
    entry, checkout = _checkout(registry, pack)

    manager = PackTrustManager()
    try:
        manifest = load_pack_manifest(checkout)
        untrusted = manager.detect_new_scripts(entry.trusted_script_hashes, checkout, manifest)
        hashes = manager.compute_script_hashes(
            manager.analyze_scripts(manifest, checkout), checkout
        )
    except (PacksyncError, OSError) as e:
        print_error(f"Cannot analyze pack '{pack}': {e}")
        raise typer.Exit(code=1) from e

    if not untrusted and hashes == entry.trusted_script_hashes:
        print_info(f"All scripts of '{pack}' are already trusted.")
        return

    if untrusted:
        print_warning(f"Pack '{pack}' has {len(untrusted)} untrusted script(s):")
        for item in untrusted:
            location = item.relative_path or "inline"
            console.print(
                f"  [added]{location}[/] [muted]({item.type.value})[/] {item.description}"
            )

    if not yes and not typer.confirm(f"\nTrust all scripts of '{pack}'?", default=False):
        print_info("Aborted.")
        raise typer.Exit(code=0)

    registry.register(entry.model_copy(update={"trusted_script_hashes": hashes}))
    try:
        registry.save()
    except PacksyncError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_success(f"Trusted {len(hashes)} script(s) of '{pack}'.")
