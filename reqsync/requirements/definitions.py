"""Requirement definitions: immutable templates describing what to check."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from types import MappingProxyType
from typing import Any, Mapping


class RequirementDefinitionError(ValueError):
    """Raised when a requirement definition is misconfigured."""


class ArtifactType(str, Enum):
    """What a requirement pertains to; used for grouping results."""

    SPECIFICATION = "specification"
    REVIEW = "review"
    CODE = "code"
    TESTS = "tests"
    DEPENDENCIES = "dependencies"
    HIERARCHY = "hierarchy"


class CheckerKind(str, Enum):
    """Closed set of checker implementations a definition may reference."""

    FILE_EXISTENCE = "file_existence"
    DOCUMENT_VALIDITY = "document_validity"
    TEST_STATUS = "test_status"
    DEPENDENCY = "dependency"
    HIERARCHICAL = "hierarchical"


HIERARCHICAL_REQUIREMENTS = (
    "children_designs",
    "children_implementations",
    "children_tests",
    "children_complete",
)
DEPENDENCY_REQUIREMENTS = ("dependencies_satisfied",)
RELATIONAL_REQUIREMENTS = DEPENDENCY_REQUIREMENTS + HIERARCHICAL_REQUIREMENTS


@dataclass(frozen=True)
class RequirementDefinition:
    """Template for a requirement instance.

    Construction validates every field and raises RequirementDefinitionError.
    """

    name: str
    checker: CheckerKind
    artifact_type: ArtifactType
    description: str
    threshold: float = 1.0
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise RequirementDefinitionError("Requirement name must be a non-empty string")
        object.__setattr__(self, "checker", _coerce_enum(CheckerKind, self.checker, "checker", self.name))
        object.__setattr__(
            self,
            "artifact_type",
            _coerce_enum(ArtifactType, self.artifact_type, "artifact type", self.name),
        )
        if not isinstance(self.description, str) or not self.description.strip():
            raise RequirementDefinitionError(f"Requirement '{self.name}' needs a description")
        threshold = self.threshold
        if isinstance(threshold, bool) or not isinstance(threshold, Real):
            raise RequirementDefinitionError(
                f"Threshold for '{self.name}' must be a number, got {threshold!r}"
            )
        if not 0.0 <= float(threshold) <= 1.0:
            raise RequirementDefinitionError(
                f"Threshold for '{self.name}' must be between 0.0 and 1.0, got {threshold}"
            )
        object.__setattr__(self, "threshold", float(threshold))
        if not isinstance(self.config, Mapping):
            raise RequirementDefinitionError(f"Config for '{self.name}' must be a mapping")
        object.__setattr__(self, "config", MappingProxyType(dict(self.config)))
        if self.checker is CheckerKind.HIERARCHICAL and self.name not in HIERARCHICAL_REQUIREMENTS:
            allowed = ", ".join(HIERARCHICAL_REQUIREMENTS)
            raise RequirementDefinitionError(
                f"Hierarchical requirement '{self.name}' must be one of: {allowed}"
            )

    @property
    def is_relational(self) -> bool:
        return self.checker in (CheckerKind.DEPENDENCY, CheckerKind.HIERARCHICAL)

    def with_threshold(self, threshold: float) -> "RequirementDefinition":
        return RequirementDefinition(
            name=self.name,
            checker=self.checker,
            artifact_type=self.artifact_type,
            description=self.description,
            threshold=threshold,
            config=dict(self.config),
        )


def _coerce_enum(enum_type: type[Enum], value: object, label: str, name: str) -> Any:
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        try:
            return enum_type(value.strip().lower())
        except ValueError:
            pass
    choices = ", ".join(member.value for member in enum_type)  # type: ignore[attr-defined]
    raise RequirementDefinitionError(
        f"Unknown {label} {value!r} for requirement '{name}' (expected one of: {choices})"
    )


# ----------------------------------------------------------------------
# Catalogue


def spec_file(description: str = "Component specification file exists") -> RequirementDefinition:
    return RequirementDefinition(
        name="spec_file",
        checker=CheckerKind.FILE_EXISTENCE,
        artifact_type=ArtifactType.SPECIFICATION,
        description=description,
    )


def spec_valid(
    document_type: str | None = None,
    description: str = "Component specification is valid",
) -> RequirementDefinition:
    config = {"document_type": document_type} if document_type else {}
    return RequirementDefinition(
        name="spec_valid",
        checker=CheckerKind.DOCUMENT_VALIDITY,
        artifact_type=ArtifactType.SPECIFICATION,
        description=description,
        config=config,
    )


def implementation_file() -> RequirementDefinition:
    return RequirementDefinition(
        name="implementation_file",
        checker=CheckerKind.FILE_EXISTENCE,
        artifact_type=ArtifactType.CODE,
        description="Component implementation file exists",
    )


def test_file() -> RequirementDefinition:
    return RequirementDefinition(
        name="test_file",
        checker=CheckerKind.FILE_EXISTENCE,
        artifact_type=ArtifactType.TESTS,
        description="Component test file exists",
    )


def tests_passing() -> RequirementDefinition:
    return RequirementDefinition(
        name="tests_passing",
        checker=CheckerKind.TEST_STATUS,
        artifact_type=ArtifactType.TESTS,
        description="Component tests are passing",
    )


def review_file() -> RequirementDefinition:
    return RequirementDefinition(
        name="review_file",
        checker=CheckerKind.FILE_EXISTENCE,
        artifact_type=ArtifactType.REVIEW,
        description="Context design review file exists",
    )


def dependencies_satisfied() -> RequirementDefinition:
    return RequirementDefinition(
        name="dependencies_satisfied",
        checker=CheckerKind.DEPENDENCY,
        artifact_type=ArtifactType.DEPENDENCIES,
        description="Component dependencies are satisfied",
    )


def children_designs() -> RequirementDefinition:
    return RequirementDefinition(
        name="children_designs",
        checker=CheckerKind.HIERARCHICAL,
        artifact_type=ArtifactType.HIERARCHY,
        description="Child component designs are complete",
    )


def children_implementations() -> RequirementDefinition:
    return RequirementDefinition(
        name="children_implementations",
        checker=CheckerKind.HIERARCHICAL,
        artifact_type=ArtifactType.HIERARCHY,
        description="Child component implementations are complete",
    )


def children_tests() -> RequirementDefinition:
    return RequirementDefinition(
        name="children_tests",
        checker=CheckerKind.HIERARCHICAL,
        artifact_type=ArtifactType.HIERARCHY,
        description="Child component tests exist",
    )


def children_complete() -> RequirementDefinition:
    return RequirementDefinition(
        name="children_complete",
        checker=CheckerKind.HIERARCHICAL,
        artifact_type=ArtifactType.HIERARCHY,
        description="All child components are fully complete",
    )


# Keep pytest from collecting the catalogue factories as tests.
test_file.__test__ = False  # type: ignore[attr-defined]
tests_passing.__test__ = False  # type: ignore[attr-defined]


__all__ = [
    "ArtifactType",
    "CheckerKind",
    "DEPENDENCY_REQUIREMENTS",
    "HIERARCHICAL_REQUIREMENTS",
    "RELATIONAL_REQUIREMENTS",
    "RequirementDefinition",
    "RequirementDefinitionError",
    "children_complete",
    "children_designs",
    "children_implementations",
    "children_tests",
    "dependencies_satisfied",
    "implementation_file",
    "review_file",
    "spec_file",
    "spec_valid",
    "test_file",
    "tests_passing",
]
