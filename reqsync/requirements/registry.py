"""Per component type catalogue of requirement definitions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Collection, Dict, List, Mapping, Optional, Sequence, Tuple

from . import definitions as defs
from .definitions import RELATIONAL_REQUIREMENTS, RequirementDefinition, RequirementDefinitionError
from ..models import Requirement

UNKNOWN_ORDER = 999


@dataclass(frozen=True)
class TypeDefinition:
    """Display metadata and the ordered requirements for one component type."""

    display_name: str
    description: str
    requirements: Tuple[RequirementDefinition, ...]
    document_type: Optional[str] = None


def _default_requirements() -> Tuple[RequirementDefinition, ...]:
    return (
        defs.spec_file(),
        defs.spec_valid(),
        defs.test_file(),
        defs.implementation_file(),
        defs.tests_passing(),
    )


def _context_requirements() -> Tuple[RequirementDefinition, ...]:
    return (
        defs.spec_file("Context specification file exists"),
        defs.spec_valid("context_spec", "Context specification is valid"),
        defs.children_designs(),
        defs.review_file(),
        defs.children_implementations(),
        defs.dependencies_satisfied(),
        defs.implementation_file(),
        defs.test_file(),
        defs.tests_passing(),
        defs.children_tests(),
        defs.children_complete(),
    )


def _module_requirements() -> Tuple[RequirementDefinition, ...]:
    return _default_requirements() + (defs.dependencies_satisfied(),)


def _spec_only_requirements(document_type: str, description: str) -> Tuple[RequirementDefinition, ...]:
    return (
        defs.spec_file(),
        defs.spec_valid(document_type, description),
        defs.implementation_file(),
    )


def _builtin_types() -> Dict[str, TypeDefinition]:
    context = _context_requirements()
    module = _module_requirements()
    return {
        "context": TypeDefinition(
            "Context", "Application domain boundary providing a public API", context, "context_spec"
        ),
        "coordination_context": TypeDefinition(
            "Coordination Context", "Context that coordinates between multiple domains", context, "context_spec"
        ),
        "coordinator": TypeDefinition(
            "Coordinator", "Orchestrates work across several contexts", context, "context_spec"
        ),
        "schema": TypeDefinition(
            "Schema",
            "Data structure definition with validation rules",
            _spec_only_requirements("schema", "Schema specification is valid"),
            "schema",
        ),
        "behaviour": TypeDefinition(
            "Behaviour",
            "Contract that defines callbacks for other modules",
            _spec_only_requirements("spec", "Component specification is valid"),
            "spec",
        ),
        "module": TypeDefinition("Module", "General purpose module", module, "spec"),
        "repository": TypeDefinition("Repository", "Data access layer abstracting persistence", module, "spec"),
        "controller": TypeDefinition("Controller", "Request handler exposing an HTTP surface", module, "spec"),
        "liveview": TypeDefinition("LiveView", "Interactive server-rendered view", module, "spec"),
        "cli": TypeDefinition("CLI", "Command-line entry point", module, "spec"),
        "worker": TypeDefinition("Worker", "Background job processor", module, "spec"),
        "genserver": TypeDefinition("GenServer", "Stateful process that handles requests", module, "spec"),
        "task": TypeDefinition("Task", "Background job or one-time operation", module, "spec"),
        "registry": TypeDefinition("Registry", "Lookup table for dynamically started processes", module, "spec"),
        "other": TypeDefinition("Other", "Custom component type", _default_requirements(), "spec"),
    }


_UNKNOWN_TYPE = TypeDefinition(
    "Unknown", "Component type not yet defined", _default_requirements(), "spec"
)


class Registry:
    """Resolves the ordered requirement definitions that apply to a component type."""

    def __init__(self, types: Mapping[str, TypeDefinition] | None = None) -> None:
        self._types: Dict[str, TypeDefinition] = dict(types) if types is not None else _builtin_types()
        self._unknown = _UNKNOWN_TYPE
        for key, type_def in self._types.items():
            names = [definition.name for definition in type_def.requirements]
            if len(names) != len(set(names)):
                raise RequirementDefinitionError(f"Duplicate requirement names declared for type '{key}'")

    def types(self) -> List[str]:
        return list(self._types)

    def get_type(self, component_type: str | None) -> TypeDefinition:
        if component_type is None:
            return self._unknown
        return self._types.get(component_type.lower(), self._unknown)

    def requirements_for_type(
        self,
        component_type: str | None,
        *,
        include: Collection[str] | None = None,
        exclude: Collection[str] | None = None,
    ) -> List[RequirementDefinition]:
        """Return definitions for a type, optionally filtered, in declared order."""
        if include is not None and exclude is not None:
            raise ValueError("Pass either include or exclude, not both")
        requirements = list(self.get_type(component_type).requirements)
        if include is not None:
            wanted = set(include)
            return [definition for definition in requirements if definition.name in wanted]
        if exclude is not None:
            unwanted = set(exclude)
            return [definition for definition in requirements if definition.name not in unwanted]
        return requirements

    def local_requirements(self, component_type: str | None) -> List[RequirementDefinition]:
        return self.requirements_for_type(component_type, exclude=RELATIONAL_REQUIREMENTS)

    def relational_requirements(self, component_type: str | None) -> List[RequirementDefinition]:
        return self.requirements_for_type(component_type, include=RELATIONAL_REQUIREMENTS)

    def document_type(self, component_type: str | None) -> Optional[str]:
        return self.get_type(component_type).document_type

    def order_index(self, component_type: str | None) -> Dict[str, int]:
        return {
            definition.name: index
            for index, definition in enumerate(self.get_type(component_type).requirements)
        }

    def sort_requirements(
        self, requirements: Sequence[Requirement], component_type: str | None
    ) -> List[Requirement]:
        """Order requirements by registry declaration; unknown names sort last."""
        order = self.order_index(component_type)
        return sorted(requirements, key=lambda requirement: order.get(requirement.name, UNKNOWN_ORDER))

    def with_overrides(self, thresholds: Mapping[str, float]) -> "Registry":
        """Return a registry whose definitions carry the configured thresholds."""
        if not thresholds:
            return self
        types: Dict[str, TypeDefinition] = {}
        for key, type_def in self._types.items():
            types[key] = _override_type(type_def, thresholds)
        registry = Registry(types)
        registry._unknown = _override_type(self._unknown, thresholds)
        return registry


def _override_type(type_def: TypeDefinition, thresholds: Mapping[str, float]) -> TypeDefinition:
    requirements = tuple(
        definition.with_threshold(thresholds[definition.name]) if definition.name in thresholds else definition
        for definition in type_def.requirements
    )
    return replace(type_def, requirements=requirements)


__all__ = ["Registry", "TypeDefinition", "UNKNOWN_ORDER"]
