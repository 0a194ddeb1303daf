"""Expands directly changed components to every component whose requirements may be stale."""

from __future__ import annotations

from typing import Dict, Iterable, List, Set

from .logging import get_logger
from .models import Component, ComponentIndex

_LOGGER = get_logger("affected")


def identify_affected(
    index: ComponentIndex,
    changed_ids: Iterable[str],
    *,
    single_pass: bool = False,
) -> Set[str]:
    """Return the ids whose requirements must be recomputed.

    A component is affected when it changed, when one of its direct
    dependencies is affected, when its parent is affected, or when one of its
    direct children is affected. The reduction repeats until the set stops
    growing so chains of any length are covered; `single_pass` stops after
    one sweep over the components.
    """
    changed = set(changed_ids)
    affected = {component_id for component_id in changed if component_id in index}
    unknown = changed - affected
    if unknown:
        _LOGGER.debug("Ignoring %d changed ids outside the project", len(unknown))

    children = _children_by_parent(index)
    sweeps = 0
    while True:
        sweeps += 1
        grown = False
        for component in index:
            if component.id in affected:
                continue
            if _is_affected(component, affected, children):
                affected.add(component.id)
                grown = True
        if single_pass or not grown:
            break
    _LOGGER.debug("Affected set has %d components after %d sweeps", len(affected), sweeps)
    return affected


def _is_affected(component: Component, affected: Set[str], children: Dict[str, List[str]]) -> bool:
    if any(dependency_id in affected for dependency_id in component.dependency_ids or []):
        return True
    if component.parent_id is not None and component.parent_id in affected:
        return True
    child_ids = component.child_ids
    if child_ids is None:
        # Hierarchy not built yet; fall back to parent links.
        child_ids = children.get(component.id, [])
    return any(child_id in affected for child_id in child_ids)


def _children_by_parent(index: ComponentIndex) -> Dict[str, List[str]]:
    children: Dict[str, List[str]] = {}
    for component in index:
        if component.parent_id is not None:
            children.setdefault(component.parent_id, []).append(component.id)
    return children


__all__ = ["identify_affected"]
