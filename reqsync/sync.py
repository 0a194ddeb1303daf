"""Two-pass requirement synchronisation for a project's components."""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass, field, replace
import threading
from typing import Collection, Dict, Iterable, List, Sequence, Set

from .affected import identify_affected
from .documents import DocumentValidator, MarkdownDocumentValidator
from .environment import Environment
from .graph import build_dependency_graph
from .hierarchy import build_hierarchy
from .layout import FileLayout
from .logging import get_logger
from .models import (
    Component,
    ComponentIndex,
    Dependency,
    Project,
    Requirement,
    Scope,
    TestFailure,
)
from .requirements.checkers import CheckContext, evaluate
from .requirements.definitions import RELATIONAL_REQUIREMENTS, RequirementDefinition
from .requirements.registry import Registry
from .requirements.store import InMemoryRequirementStore, RequirementStore, StoreError
from .status import analyze_status

_LOGGER = get_logger("sync")

_LOCKS: Dict[str, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def _project_lock(project_id: str) -> threading.Lock:
    with _LOCKS_GUARD:
        return _LOCKS.setdefault(project_id, threading.Lock())


@dataclass
class SyncRequest:
    """Inputs for one synchronisation pass."""

    scope: Scope
    project: Project
    components: Sequence[Component]
    dependencies: Sequence[Dependency] = ()
    changed_ids: Collection[str] = ()
    file_list: Collection[str] = ()
    failing_tests: Sequence[TestFailure] = ()
    force: bool = False
    persist: bool = True
    options: Dict[str, object] = field(default_factory=dict)


class RequirementSync:
    """Recomputes requirements with local checks first and relational checks second.

    Relational checks read the already merged requirements of neighbouring
    components, so they only start once every local result is in place.
    """

    def __init__(
        self,
        *,
        environment: Environment,
        registry: Registry | None = None,
        store: RequirementStore | None = None,
        layout: FileLayout | None = None,
        validator: DocumentValidator | None = None,
    ) -> None:
        self.environment = environment
        self.registry = registry or Registry()
        self.store = store if store is not None else InMemoryRequirementStore()
        self.layout = layout or FileLayout()
        self.validator = validator or MarkdownDocumentValidator()

    def sync(self, request: SyncRequest) -> List[Component]:
        """Run a full or incremental pass and return components ordered by priority."""
        with _project_lock(request.scope.project_id):
            transaction = (
                self.store.transaction(request.scope) if request.persist else nullcontext()
            )
            with transaction:
                if request.force:
                    index = self._full_sync(request)
                else:
                    index = self._incremental_sync(request)
        return _ordered(index)

    # ------------------------------------------------------------------
    # Modes

    def _full_sync(self, request: SyncRequest) -> ComponentIndex:
        _LOGGER.info(
            "Full sync of %d components for project %s", len(request.components), request.scope.project_id
        )
        index = build_dependency_graph(self._refresh_statuses(request), request.dependencies)
        if request.persist:
            for component in index:
                self.store.clear_for_component(request.scope, component.id)

        context = self._context(request, index)
        for component in index:
            component.requirements = self._check_local(context, request, component)

        index = build_hierarchy(index)
        self._run_relational(request, index)
        return index

    def _incremental_sync(self, request: SyncRequest) -> ComponentIndex:
        index = build_dependency_graph(self._refresh_statuses(request), request.dependencies)
        kept = {component.id: self._kept_local(request, component) for component in index}
        # Components never checked before (e.g. newly configured) count as changed.
        unchecked = {component_id for component_id, requirements in kept.items() if not requirements}
        if unchecked:
            _LOGGER.info("%d components have no recorded local requirements", len(unchecked))
        affected = identify_affected(index, set(request.changed_ids) | unchecked)
        _LOGGER.info(
            "Incremental sync for project %s: %d changed, %d of %d components affected",
            request.scope.project_id,
            len(set(request.changed_ids)),
            len(affected),
            len(index),
        )

        context = self._context(request, index)
        for component in index:
            if component.id in affected:
                if request.persist:
                    self.store.clear_for_component(request.scope, component.id)
                component.requirements = self._check_local(context, request, component)
            else:
                component.requirements = kept[component.id]

        index = build_hierarchy(index)
        if request.persist:
            self.store.clear_by_names(request.scope, index.ids(), RELATIONAL_REQUIREMENTS)
        self._run_relational(request, index)
        return index

    # ------------------------------------------------------------------
    # Passes

    def _refresh_statuses(self, request: SyncRequest) -> List[Component]:
        present = set(request.file_list)
        refreshed: List[Component] = []
        for component in request.components:
            expected = self.layout.component_files(component, request.project)
            status = analyze_status(expected, present, request.failing_tests)
            refreshed.append(replace(component, status=status, child_ids=None))
        return refreshed

    def _check_local(
        self, context: CheckContext, request: SyncRequest, component: Component
    ) -> List[Requirement]:
        definitions = self.registry.local_requirements(component.type)
        _LOGGER.debug("Running %d local checks for %s", len(definitions), component.id)
        return self._evaluate_all(context, request, component, definitions)

    def _kept_local(self, request: SyncRequest, component: Component) -> List[Requirement]:
        if component.requirements is not None:
            existing = list(component.requirements)
        else:
            existing = self.store.list_for_component(request.scope, component.id)
        return [requirement for requirement in existing if requirement.name not in RELATIONAL_REQUIREMENTS]

    def _run_relational(self, request: SyncRequest, index: ComponentIndex) -> None:
        context = self._context(request, index)
        for component in evaluation_order(index):
            definitions = self.registry.relational_requirements(component.type)
            relational = self._evaluate_all(context, request, component, definitions)
            merged = list(component.requirements or []) + relational
            component.requirements = self.registry.sort_requirements(merged, component.type)

    def _evaluate_all(
        self,
        context: CheckContext,
        request: SyncRequest,
        component: Component,
        definitions: Iterable[RequirementDefinition],
    ) -> List[Requirement]:
        results: List[Requirement] = []
        for definition in definitions:
            requirement = evaluate(context, definition, component, request.options)
            if not request.persist:
                results.append(requirement)
                continue
            try:
                results.append(self.store.create(request.scope, component, requirement))
            except (StoreError, OSError) as exc:
                _LOGGER.error(
                    "Failed to persist requirement %s for component %s: %s",
                    definition.name,
                    component.id,
                    exc,
                )
        return results

    def _context(self, request: SyncRequest, index: ComponentIndex) -> CheckContext:
        document_types = {
            component.type: self.registry.document_type(component.type) for component in index
        }
        return CheckContext(
            scope=request.scope,
            project=request.project,
            index=index,
            layout=self.layout,
            environment=self.environment,
            validator=self.validator,
            document_types=document_types,
        )


def evaluation_order(index: ComponentIndex) -> List[Component]:
    """Order components so dependencies and children precede their readers.

    Components caught in a dependency or parent cycle are appended in input
    order once nothing else can be scheduled.
    """
    prerequisites: Dict[str, Set[str]] = {}
    readers: Dict[str, List[str]] = {component.id: [] for component in index}
    for component in index:
        needed = {
            other_id
            for other_id in list(component.dependency_ids or []) + list(component.child_ids or [])
            if other_id in index and other_id != component.id
        }
        prerequisites[component.id] = needed
        for other_id in needed:
            readers[other_id].append(component.id)

    ready = [component.id for component in index if not prerequisites[component.id]]
    ordered: List[Component] = []
    done: Set[str] = set()
    while ready:
        current_id = ready.pop(0)
        if current_id in done:
            continue
        done.add(current_id)
        ordered.append(index.require(current_id))
        for reader_id in readers[current_id]:
            pending = prerequisites[reader_id]
            pending.discard(current_id)
            if not pending and reader_id not in done:
                ready.append(reader_id)

    remaining = [component for component in index if component.id not in done]
    if remaining:
        _LOGGER.warning(
            "Cycle among %d components; relational checks read partially computed neighbours",
            len(remaining),
        )
    return ordered + remaining


def _ordered(index: ComponentIndex) -> List[Component]:
    return sorted(
        index,
        key=lambda component: (
            component.priority is None,
            component.priority if component.priority is not None else 0,
            component.name,
        ),
    )


__all__ = ["RequirementSync", "SyncRequest", "evaluation_order"]
