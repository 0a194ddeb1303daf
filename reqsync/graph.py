"""Dependency graph construction, ordering and cycle detection."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from .logging import get_logger
from .models import Component, ComponentIndex, Dependency

_LOGGER = get_logger("graph")

_WHITE, _GREY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class Cycle:
    """A dependency cycle: component ids in traversal order plus the offending edges."""

    component_ids: Tuple[str, ...]

    @property
    def edges(self) -> List[Dependency]:
        ids = self.component_ids
        return [Dependency(ids[i], ids[(i + 1) % len(ids)]) for i in range(len(ids))]

    def describe(self, index: ComponentIndex | None = None) -> str:
        def label(component_id: str) -> str:
            component = index.get(component_id) if index is not None else None
            return component.name if component is not None else component_id

        path = [label(component_id) for component_id in self.component_ids]
        path.append(path[0])
        return " -> ".join(path)


class DependencyCycleError(RuntimeError):
    """Raised by graph validation when one or more cycles exist."""

    def __init__(self, message: str, cycles: Sequence[Cycle]) -> None:
        super().__init__(message)
        self.cycles = list(cycles)


def build_dependency_graph(
    components: Iterable[Component], dependencies: Iterable[Dependency]
) -> ComponentIndex:
    """Attach dependency and dependent ids to copies of `components`."""
    copies = [replace(component, dependency_ids=[], dependent_ids=[]) for component in components]
    index = ComponentIndex(copies)
    seen: Set[Tuple[str, str]] = set()
    for edge in dependencies:
        key = (edge.source_id, edge.target_id)
        if key in seen:
            continue
        seen.add(key)
        source = index.get(edge.source_id)
        target = index.get(edge.target_id)
        if source is None or target is None:
            _LOGGER.warning(
                "Dropping dependency %s -> %s: component not in project", edge.source_id, edge.target_id
            )
            continue
        source.dependency_ids.append(target.id)  # type: ignore[union-attr]
        target.dependent_ids.append(source.id)  # type: ignore[union-attr]
    return index


def find_cycles(index: ComponentIndex) -> List[Cycle]:
    """Return every distinct cycle using a three-colour depth-first search.

    A back edge to a grey node closes a cycle; cycles are normalised by
    rotation so one found from different entry points is reported once.
    """
    colour: Dict[str, int] = {component_id: _WHITE for component_id in index.ids()}
    stack: List[str] = []
    found: Dict[Tuple[str, ...], Cycle] = {}

    def visit(component_id: str) -> None:
        colour[component_id] = _GREY
        stack.append(component_id)
        component = index.require(component_id)
        for target_id in component.dependency_ids or []:
            state = colour.get(target_id)
            if state is None:
                continue
            if state == _GREY:
                members = tuple(stack[stack.index(target_id):])
                key = _normalise(members)
                found.setdefault(key, Cycle(key))
            elif state == _WHITE:
                visit(target_id)
            else:
                close_through_finished(target_id)
        stack.pop()
        colour[component_id] = _BLACK

    def close_through_finished(target_id: str) -> None:
        # A finished node can still lead back onto the current path.
        on_path = set(stack)
        if not _reaches(index, target_id, on_path):
            return
        for cycle in _simple_paths_back(index, target_id, on_path):
            key = _normalise(tuple(stack[stack.index(cycle[-1]):]) + tuple(cycle[:-1]))
            found.setdefault(key, Cycle(key))

    for component_id in index.ids():
        if colour[component_id] == _WHITE:
            visit(component_id)
    return list(found.values())


def _simple_paths_back(index: ComponentIndex, start: str, targets: Set[str]) -> List[List[str]]:
    """Paths from `start` that reach a node in `targets`, ending with that node."""
    paths: List[List[str]] = []
    path: List[str] = [start]
    visited: Set[str] = {start}

    def walk(node_id: str) -> None:
        for next_id in index.require(node_id).dependency_ids or []:
            if next_id in targets:
                paths.append(path + [next_id])
            elif next_id not in visited and next_id in index:
                visited.add(next_id)
                path.append(next_id)
                walk(next_id)
                path.pop()
                visited.discard(next_id)

    walk(start)
    return paths


def _reaches(index: ComponentIndex, start: str, targets: Set[str]) -> bool:
    pending = [start]
    seen: Set[str] = {start}
    while pending:
        node = index.get(pending.pop())
        if node is None:
            continue
        for next_id in node.dependency_ids or []:
            if next_id in targets:
                return True
            if next_id not in seen:
                seen.add(next_id)
                pending.append(next_id)
    return False


def _normalise(members: Tuple[str, ...]) -> Tuple[str, ...]:
    pivot = members.index(min(members))
    return members[pivot:] + members[:pivot]


def validate_dependency_graph(index: ComponentIndex) -> None:
    cycles = find_cycles(index)
    if cycles:
        described = "; ".join(cycle.describe(index) for cycle in cycles)
        raise DependencyCycleError(f"Dependency cycles detected: {described}", cycles)


def topological_order(index: ComponentIndex) -> List[Component]:
    """Return components with dependencies before dependents.

    Components stuck in cycles are appended in their original order.
    """
    in_degree = {component.id: len(component.dependency_ids or []) for component in index}
    queue = [component_id for component_id, degree in in_degree.items() if degree == 0]
    ordered: List[Component] = []
    done: Set[str] = set()
    while queue:
        current_id = queue.pop(0)
        if current_id in done:
            continue
        done.add(current_id)
        current = index.require(current_id)
        ordered.append(current)
        for dependent_id in current.dependent_ids or []:
            if dependent_id not in in_degree:
                continue
            in_degree[dependent_id] = max(0, in_degree[dependent_id] - 1)
            if in_degree[dependent_id] == 0 and dependent_id not in done:
                queue.append(dependent_id)

    remaining = [component for component in index if component.id not in done]
    if remaining:
        _LOGGER.warning(
            "Dependency cycle detected, processing %d remaining components in input order",
            len(remaining),
        )
    return ordered + remaining


__all__ = [
    "Cycle",
    "DependencyCycleError",
    "build_dependency_graph",
    "find_cycles",
    "topological_order",
    "validate_dependency_graph",
]
