"""Requirement definitions, checkers and persistence."""

from .checkers import CheckContext, CheckResult, Checker, dispatch, evaluate
from .definitions import (
    ArtifactType,
    CheckerKind,
    RELATIONAL_REQUIREMENTS,
    RequirementDefinition,
    RequirementDefinitionError,
)
from .registry import Registry, TypeDefinition
from .store import InMemoryRequirementStore, JsonRequirementStore, RequirementStore, StoreError

__all__ = [
    "ArtifactType",
    "CheckContext",
    "CheckResult",
    "Checker",
    "CheckerKind",
    "InMemoryRequirementStore",
    "JsonRequirementStore",
    "RELATIONAL_REQUIREMENTS",
    "Registry",
    "RequirementDefinition",
    "RequirementDefinitionError",
    "RequirementStore",
    "StoreError",
    "TypeDefinition",
    "dispatch",
    "evaluate",
]
