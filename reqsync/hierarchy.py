"""Parent/child hierarchy over components."""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Set

from .logging import get_logger
from .models import Component, ComponentIndex

_LOGGER = get_logger("hierarchy")


def build_hierarchy(index: ComponentIndex) -> ComponentIndex:
    """Return a new index whose components carry `child_ids` from `parent_id` links.

    Parents missing from the project leave the child as a root.
    """
    children: dict[str, List[str]] = {component.id: [] for component in index}
    for component in index:
        parent_id = component.parent_id
        if parent_id is None:
            continue
        if parent_id == component.id:
            _LOGGER.warning("Component %s lists itself as parent; treating it as a root", component.id)
            continue
        if parent_id not in children:
            _LOGGER.warning("Parent %s of component %s is not in the project", parent_id, component.id)
            continue
        children[parent_id].append(component.id)
    return ComponentIndex(replace(component, child_ids=children[component.id]) for component in index)


def roots(index: ComponentIndex) -> List[Component]:
    return [
        component
        for component in index
        if component.parent_id is None or component.parent_id not in index
    ]


def descendants(index: ComponentIndex, component_id: str) -> List[Component]:
    """Return every descendant (children, grandchildren, ...) depth-first, each once."""
    result: List[Component] = []
    visited: Set[str] = {component_id}
    pending = list(reversed(_children_of(index, component_id)))
    while pending:
        current_id = pending.pop()
        if current_id in visited:
            _LOGGER.warning("Hierarchy cycle detected at component %s, skipping", current_id)
            continue
        visited.add(current_id)
        current = index.get(current_id)
        if current is None:
            continue
        result.append(current)
        pending.extend(reversed(_children_of(index, current_id)))
    return result


def path_to_root(index: ComponentIndex, component_id: str) -> List[Component]:
    """Return the chain from the root down to `component_id` inclusive."""
    path: List[Component] = []
    seen: Set[str] = set()
    current: Optional[Component] = index.get(component_id)
    while current is not None and current.id not in seen:
        seen.add(current.id)
        path.append(current)
        current = index.get(current.parent_id)
    path.reverse()
    return path


def is_ancestor(index: ComponentIndex, ancestor_id: str, component_id: str) -> bool:
    if ancestor_id == component_id:
        return False
    return any(component.id == ancestor_id for component in path_to_root(index, component_id)[:-1])


def _children_of(index: ComponentIndex, component_id: str) -> List[str]:
    component = index.get(component_id)
    if component is None or component.child_ids is None:
        return []
    return list(component.child_ids)


__all__ = ["build_hierarchy", "descendants", "is_ancestor", "path_to_root", "roots"]
