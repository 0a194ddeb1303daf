"""Core data models shared across reqsync components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional


@dataclass(frozen=True)
class Scope:
    """Tenant/project context every store and sync call is bound to."""

    project_id: str
    account_id: Optional[str] = None


@dataclass(frozen=True)
class Project:
    """Project owning all components; `module_name` is the root namespace."""

    name: str
    module_name: str


class TestStatus(str, Enum):
    """Outcome of the most recent test run for a component."""

    __test__ = False

    NOT_RUN = "not_run"
    PASSING = "passing"
    FAILING = "failing"


@dataclass(frozen=True)
class TestFailure:
    """A failing test attributed to the test file that holds it."""

    __test__ = False

    file: str
    title: str


@dataclass
class ComponentStatus:
    """Derived, non-authoritative cache of file and test signals."""

    spec_exists: bool = False
    code_exists: bool = False
    test_exists: bool = False
    design_exists: bool = False
    review_exists: bool = False
    test_status: TestStatus = TestStatus.NOT_RUN
    expected_files: Dict[str, str] = field(default_factory=dict)
    actual_files: List[str] = field(default_factory=list)
    failing_tests: List[str] = field(default_factory=list)
    computed_at: Optional[datetime] = None


@dataclass
class Requirement:
    """Persisted result of checking one requirement for one component."""

    name: str
    artifact_type: str
    description: str
    checker: str
    score: float
    satisfied: bool
    details: Dict[str, Any] = field(default_factory=dict)
    checked_at: Optional[datetime] = None
    component_id: Optional[str] = None
    threshold: float = 1.0


@dataclass(frozen=True)
class Dependency:
    """Directed `source depends on target` edge."""

    source_id: str
    target_id: str


@dataclass
class Component:
    """A named unit of the designed system.

    Relations are stored as identifier lists and resolved through a
    :class:`ComponentIndex`. ``None`` means the association was never loaded.
    """

    id: str
    name: str
    type: str
    module_name: str
    parent_id: Optional[str] = None
    priority: Optional[int] = None
    description: Optional[str] = None
    dependency_ids: Optional[List[str]] = None
    dependent_ids: Optional[List[str]] = None
    child_ids: Optional[List[str]] = None
    requirements: Optional[List[Requirement]] = None
    status: Optional[ComponentStatus] = None

    def requirement(self, name: str) -> Optional[Requirement]:
        for requirement in self.requirements or []:
            if requirement.name == name:
                return requirement
        return None

    @property
    def fully_satisfied(self) -> bool:
        if self.requirements is None:
            return False
        return all(requirement.satisfied for requirement in self.requirements)


class ComponentIndex:
    """Arena of components keyed by identifier, iterated in insertion order."""

    def __init__(self, components: Iterable[Component] = ()) -> None:
        self._components: Dict[str, Component] = {}
        for component in components:
            self.add(component)

    def add(self, component: Component) -> None:
        self._components[component.id] = component

    def get(self, component_id: Optional[str]) -> Optional[Component]:
        if component_id is None:
            return None
        return self._components.get(component_id)

    def require(self, component_id: str) -> Component:
        try:
            return self._components[component_id]
        except KeyError:
            raise KeyError(f"Unknown component id: {component_id}") from None

    def resolve(self, component_ids: Optional[Iterable[str]]) -> List[Component]:
        """Return the components for `component_ids`, skipping unknown ids."""
        if component_ids is None:
            return []
        resolved: List[Component] = []
        for component_id in component_ids:
            component = self._components.get(component_id)
            if component is not None:
                resolved.append(component)
        return resolved

    def ids(self) -> List[str]:
        return list(self._components)

    def components(self) -> List[Component]:
        return list(self._components.values())

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._components

    def __iter__(self) -> Iterator[Component]:
        return iter(list(self._components.values()))

    def __len__(self) -> int:
        return len(self._components)


__all__ = [
    "Component",
    "ComponentIndex",
    "ComponentStatus",
    "Dependency",
    "Project",
    "Requirement",
    "Scope",
    "TestFailure",
    "TestStatus",
]
