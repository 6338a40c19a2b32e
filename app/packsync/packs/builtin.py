"""Built-in packs shipped with packsync."""

from packsync.models.component import Component, GitignoreEntriesAction
from packsync.models.pack import Pack

CORE_PACK_ID = "core"

# Rendered into the "core" section at the top of every generated file
CORE_TEMPLATE = """\
# __REPO_NAME__

This file is maintained by packsync. Content between packsync markers is
regenerated on every sync; anything outside the markers is left untouched.
<!-- EDIT: add your own notes below the managed sections -->
"""

CORE_GITIGNORE_ENTRIES = (".packsync/", "*.packsync-tmp")


def core_pack() -> Pack:
    """The core pack, available in every catalog."""
    return Pack(
        identifier=CORE_PACK_ID,
        display_name="Core",
        description="Baseline setup that works with any project",
        version="1.0.0",
        components=(
            Component(
                id=f"{CORE_PACK_ID}.gitignore",
                install_action=GitignoreEntriesAction(CORE_GITIGNORE_ENTRIES),
                pack_identifier=CORE_PACK_ID,
                is_required=True,
                display_name="Gitignore entries",
                description="Keep packsync working files out of version control",
            ),
        ),
    )


def builtin_packs() -> list[Pack]:
    return [core_pack()]
