"""Checker implementations and the dispatch table keyed by checker kind."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Optional

from ..documents import DocumentValidator
from ..environment import Environment, EnvironmentReadError
from ..hierarchy import descendants
from ..layout import FileLayout
from ..logging import get_logger
from ..models import Component, ComponentIndex, Project, Requirement, Scope, TestStatus
from .definitions import CheckerKind, RequirementDefinition

_LOGGER = get_logger("checkers")

# Hierarchical variant -> requirement every descendant must satisfy.
_CHILD_REQUIREMENTS: Dict[str, str] = {
    "children_designs": "spec_file",
    "children_implementations": "implementation_file",
    "children_tests": "test_file",
}


@dataclass
class CheckResult:
    """Raw checker outcome before the definition threshold is applied."""

    satisfied: bool
    score: float
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **details: Any) -> "CheckResult":
        return cls(satisfied=True, score=1.0, details=dict(details))

    @classmethod
    def fail(cls, reason: str, **details: Any) -> "CheckResult":
        return cls(satisfied=False, score=0.0, details={"reason": reason, **details})


@dataclass
class CheckContext:
    """Collaborators and project-wide state shared by every checker call."""

    scope: Scope
    project: Project
    index: ComponentIndex
    layout: FileLayout
    environment: Environment
    validator: DocumentValidator
    document_types: Mapping[str, Optional[str]] = field(default_factory=dict)


class Checker(ABC):
    """Contract for requirement checkers."""

    kind: CheckerKind

    @abstractmethod
    def check(
        self,
        context: CheckContext,
        definition: RequirementDefinition,
        component: Component,
        options: Mapping[str, Any],
    ) -> CheckResult:
        """Evaluate one requirement for one component without mutating it."""


class FileExistenceChecker(Checker):
    kind = CheckerKind.FILE_EXISTENCE

    def check(self, context, definition, component, options) -> CheckResult:
        path = context.layout.file_for_artifact(
            component, context.project, definition.artifact_type.value
        )
        if path is None:
            return CheckResult.fail(
                f"No file layout for artifact type {definition.artifact_type.value}"
            )
        if context.environment.file_exists(path):
            return CheckResult.ok(status="File exists", path=path)
        return CheckResult.fail("File missing", path=path)


class DocumentValidityChecker(Checker):
    kind = CheckerKind.DOCUMENT_VALIDITY

    def check(self, context, definition, component, options) -> CheckResult:
        document_type = definition.config.get("document_type") or context.document_types.get(component.type)
        if not document_type:
            return CheckResult.fail("document_type not specified in requirement")

        path = context.layout.component_files(component, context.project)["spec_file"]
        try:
            content = context.environment.read_file(path)
        except EnvironmentReadError as exc:
            return CheckResult.fail(f"Failed to read spec file: {exc}", path=path)

        outcome = context.validator.validate(content, document_type)
        if outcome.valid:
            return CheckResult(
                satisfied=True,
                score=outcome.score,
                details={"status": "Document is valid", "document_type": document_type, "path": path},
            )
        details: Dict[str, Any] = {
            "reason": "Document validation failed",
            "error": outcome.error,
            "document_type": document_type,
            "path": path,
        }
        if outcome.missing_sections:
            details["missing_sections"] = list(outcome.missing_sections)
        return CheckResult(satisfied=False, score=outcome.score, details=details)


class TestStatusChecker(Checker):
    __test__ = False

    kind = CheckerKind.TEST_STATUS

    def check(self, context, definition, component, options) -> CheckResult:
        status = component.status
        if status is None:
            _LOGGER.warning("Component %s has no computed status", component.id)
            return CheckResult.fail("Component status not computed")
        if not status.test_exists:
            return CheckResult.fail("Test file missing")
        if status.test_status is TestStatus.PASSING:
            return CheckResult.ok(status="Tests passing")
        if status.test_status is TestStatus.FAILING:
            return CheckResult.fail("Tests failing", failing_tests=list(status.failing_tests))
        return CheckResult.fail("Tests not run")


class DependencyChecker(Checker):
    kind = CheckerKind.DEPENDENCY

    def check(self, context, definition, component, options) -> CheckResult:
        if component.dependency_ids is None:
            _LOGGER.warning("Dependencies not loaded for component %s", component.id)
            return CheckResult.fail("Dependencies not loaded")
        count = len(component.dependency_ids)
        if count == 0:
            return CheckResult.ok(status="No dependencies", count=0)

        unsatisfied: List[str] = []
        for dependency_id in component.dependency_ids:
            dependency = context.index.get(dependency_id)
            if dependency is None or not dependency.fully_satisfied:
                unsatisfied.append(dependency.name if dependency is not None else dependency_id)
        if unsatisfied:
            return CheckResult.fail(
                "Unsatisfied dependencies", unsatisfied=unsatisfied, count=count
            )
        return CheckResult.ok(status="All dependencies satisfied", count=count)


class HierarchicalChecker(Checker):
    kind = CheckerKind.HIERARCHICAL

    def check(self, context, definition, component, options) -> CheckResult:
        if component.child_ids is None:
            _LOGGER.warning("Child components not loaded for component %s", component.id)
            return CheckResult.fail("Child components not loaded")

        subtree = descendants(context.index, component.id)
        if not subtree:
            return CheckResult.ok(status="No child components to check", count=0)

        if definition.name == "children_complete":
            incomplete = [child.name for child in subtree if not child.fully_satisfied]
            if incomplete:
                return CheckResult.fail(
                    f"Child components not fully complete: {', '.join(incomplete)}",
                    missing=incomplete,
                    count=len(subtree),
                )
            return CheckResult.ok(status="All child components fully complete", count=len(subtree))

        required = _CHILD_REQUIREMENTS.get(definition.name)
        if required is None:
            _LOGGER.error("Invalid hierarchical requirement %s", definition.name)
            return CheckResult.fail("Invalid hierarchical requirement type")

        missing = [child.name for child in subtree if not _has_satisfied(child, required)]
        if missing:
            return CheckResult.fail(
                f"Child components missing {required}: {', '.join(missing)}",
                missing=missing,
                count=len(subtree),
            )
        return CheckResult.ok(
            status=f"All child components have required {required}", count=len(subtree)
        )


def _has_satisfied(component: Component, requirement_name: str) -> bool:
    requirement = component.requirement(requirement_name)
    return requirement is not None and requirement.satisfied


_CHECKERS: Dict[CheckerKind, Checker] = {
    checker.kind: checker
    for checker in (
        FileExistenceChecker(),
        DocumentValidityChecker(),
        TestStatusChecker(),
        DependencyChecker(),
        HierarchicalChecker(),
    )
}


def checker_for(kind: CheckerKind) -> Checker:
    return _CHECKERS[kind]


def dispatch(
    context: CheckContext,
    definition: RequirementDefinition,
    component: Component,
    options: Mapping[str, Any] | None = None,
) -> CheckResult:
    """Route a definition to its checker by checker kind."""
    return checker_for(definition.checker).check(context, definition, component, options or {})


def evaluate(
    context: CheckContext,
    definition: RequirementDefinition,
    component: Component,
    options: Mapping[str, Any] | None = None,
) -> Requirement:
    """Run the definition's checker and judge the score against its threshold."""
    result = dispatch(context, definition, component, options)
    score = float(result.score)
    if not 0.0 <= score <= 1.0:
        _LOGGER.warning(
            "Checker %s returned out-of-range score %s for %s; clamping",
            definition.checker.value,
            score,
            component.id,
        )
        score = min(max(score, 0.0), 1.0)
    return Requirement(
        name=definition.name,
        artifact_type=definition.artifact_type.value,
        description=definition.description,
        checker=definition.checker.value,
        score=score,
        satisfied=score >= definition.threshold,
        details=dict(result.details),
        checked_at=datetime.now(UTC),
        component_id=component.id,
        threshold=definition.threshold,
    )


__all__ = [
    "CheckContext",
    "CheckResult",
    "Checker",
    "DependencyChecker",
    "DocumentValidityChecker",
    "FileExistenceChecker",
    "HierarchicalChecker",
    "TestStatusChecker",
    "checker_for",
    "dispatch",
    "evaluate",
]
