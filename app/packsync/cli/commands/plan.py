"""Plan command implementation.

Resolves a pack selection into its installation order without changing
anything.
"""

from typing import Annotated

import typer

from packsync.cli.types import get_catalog, get_config
from packsync.core.resolver import ResolverError, resolve
from packsync.packs.catalog import UnknownPackError
from packsync.utils.formatting import console, create_plan_table, print_error, print_info


def plan_packs(
    packs: Annotated[
        list[str],
        typer.Argument(help="Packs to select.", show_default=False),
    ],
) -> None:
    """Show the order in which the selected packs' components are installed.

    Components pulled in only as dependencies of another pack are marked.

    Examples:
        packsync plan web            # Plan a single pack
        packsync plan web docs       # Plan several packs together
    """
    config = get_config()
    catalog = get_catalog(config)

    try:
        selected = catalog.components_for(packs)
        plan = resolve(selected, catalog.all_components())
    except (UnknownPackError, ResolverError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if not plan.ordered_components:
        print_info("The selected packs have no components.")
        return

    added = set(plan.added_ids)
    table = create_plan_table()
    for position, component in enumerate(plan.ordered_components, start=1):
        table.add_row(
            str(position),
            component.id,
            component.pack_identifier or "-",
            "dependency" if component.id in added else "",
        )
    console.print(table)

    if added:
        print_info(f"{len(added)} component(s) added as dependencies.")
