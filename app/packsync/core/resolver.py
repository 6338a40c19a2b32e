"""Component dependency resolution.

Orders a selected set of components so that every dependency comes before
its dependents. The traversal is a depth-first walk from each selected id
in sorted order, so the resulting order is deterministic for a given
selection regardless of how the selection was passed in.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from packsync.core.errors import PacksyncError
from packsync.models.component import Component

logger = logging.getLogger(__name__)


class ResolverError(PacksyncError):
    """Base exception for dependency resolution errors."""


class DependencyCycleError(ResolverError):
    """Raised when the dependency graph contains a cycle.

    Attributes:
        component_id: ID of the component that was re-entered.
    """

    def __init__(self, component_id: str) -> None:
        self.component_id = component_id
        super().__init__(f"Dependency cycle detected involving '{component_id}'")


class UnknownComponentError(ResolverError):
    """Raised when a selected or depended-on component is not in the catalog.

    Attributes:
        component_id: ID that could not be found.
    """

    def __init__(self, component_id: str) -> None:
        self.component_id = component_id
        super().__init__(f"Unknown component '{component_id}'")


@dataclass(frozen=True, slots=True)
class ResolvedPlan:
    """Installation order for a selection.

    Attributes:
        ordered_components: Components in installation order, each once.
        added_dependencies: Components pulled in transitively that were not
            part of the selection, in resolution order.
    """

    ordered_components: tuple[Component, ...]
    added_dependencies: tuple[Component, ...]

    @property
    def ordered_ids(self) -> list[str]:
        """IDs of the ordered components."""
        return [c.id for c in self.ordered_components]

    @property
    def added_ids(self) -> list[str]:
        """IDs of the added dependencies."""
        return [c.id for c in self.added_dependencies]


def resolve(selected_ids: Iterable[str], all_components: Iterable[Component]) -> ResolvedPlan:
    """Resolve a selection into a dependency-ordered installation plan.

    Args:
        selected_ids: IDs of the components the user selected.
        all_components: Every component known to the catalog.

    Returns:
        ResolvedPlan with dependencies before dependents.

    Raises:
        DependencyCycleError: If a component is re-entered while it is still
            being visited, including a component depending on itself.
        UnknownComponentError: If an ID cannot be found among all_components.
    """
    by_id = {c.id: c for c in all_components}
    selected = set(selected_ids)

    ordered: list[Component] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    def visit(component_id: str) -> None:
        if component_id in visited:
            return
        if component_id in visiting:
            raise DependencyCycleError(component_id)
        component = by_id.get(component_id)
        if component is None:
            raise UnknownComponentError(component_id)

        visiting.add(component_id)
        for dep_id in component.dependencies:
            visit(dep_id)
        visiting.discard(component_id)

        visited.add(component_id)
        ordered.append(component)

    for component_id in sorted(selected):
        visit(component_id)

    added = tuple(c for c in ordered if c.id not in selected)
    if added:
        logger.debug("Added dependencies: %s", ", ".join(c.id for c in added))

    return ResolvedPlan(ordered_components=tuple(ordered), added_dependencies=added)
