"""Persistence for computed requirement rows."""

from __future__ import annotations

from contextlib import contextmanager
import copy
from dataclasses import replace
from datetime import datetime
import json
import math
from pathlib import Path
from typing import Collection, Dict, Iterator, List, Optional, Protocol

from ..logging import get_logger
from ..models import Component, Requirement, Scope

_LOGGER = get_logger("store")

_STORE_VERSION = 1


class StoreError(RuntimeError):
    """Raised when a requirement row cannot be written or the store cannot be saved."""


class RequirementStore(Protocol):
    def create(self, scope: Scope, component: Component, requirement: Requirement) -> Requirement:
        ...

    def clear_for_component(self, scope: Scope, component_id: str) -> int:
        ...

    def clear_by_names(self, scope: Scope, component_ids: Collection[str], names: Collection[str]) -> int:
        ...

    def list_for_component(self, scope: Scope, component_id: str) -> List[Requirement]:
        ...

    def transaction(self, scope: Scope):  # pragma: no cover - protocol signature
        ...


class InMemoryRequirementStore:
    """Requirement rows keyed by project id then component id."""

    def __init__(self) -> None:
        self._rows: Dict[str, Dict[str, List[Requirement]]] = {}

    def create(self, scope: Scope, component: Component, requirement: Requirement) -> Requirement:
        _validate(requirement)
        stored = replace(
            requirement,
            component_id=component.id,
            details=copy.deepcopy(requirement.details),
        )
        rows = self._project(scope).setdefault(component.id, [])
        rows[:] = [row for row in rows if row.name != stored.name]
        rows.append(stored)
        self._touched()
        return replace(stored, details=copy.deepcopy(stored.details))

    def clear_for_component(self, scope: Scope, component_id: str) -> int:
        removed = self._project(scope).pop(component_id, [])
        if removed:
            self._touched()
        return len(removed)

    def clear_by_names(self, scope: Scope, component_ids: Collection[str], names: Collection[str]) -> int:
        wanted = set(names)
        project = self._project(scope)
        removed = 0
        for component_id in set(component_ids):
            rows = project.get(component_id)
            if not rows:
                continue
            kept = [row for row in rows if row.name not in wanted]
            removed += len(rows) - len(kept)
            project[component_id] = kept
        if removed:
            self._touched()
        return removed

    def list_for_component(self, scope: Scope, component_id: str) -> List[Requirement]:
        rows = self._rows.get(scope.project_id, {}).get(component_id, [])
        return [replace(row, details=copy.deepcopy(row.details)) for row in rows]

    def has_project(self, scope: Scope) -> bool:
        return bool(self._rows.get(scope.project_id))

    @contextmanager
    def transaction(self, scope: Scope) -> Iterator[None]:
        """Restore the project's rows if the block raises."""
        snapshot = copy.deepcopy(self._rows.get(scope.project_id))
        try:
            yield
        except BaseException:
            if snapshot is None:
                self._rows.pop(scope.project_id, None)
            else:
                self._rows[scope.project_id] = snapshot
            _LOGGER.warning("Rolled back requirement changes for project %s", scope.project_id)
            raise

    # ------------------------------------------------------------------
    # Internal helpers

    def _project(self, scope: Scope) -> Dict[str, List[Requirement]]:
        return self._rows.setdefault(scope.project_id, {})

    def _touched(self) -> None:
        """Hook for subclasses that track unsaved changes."""


class JsonRequirementStore(InMemoryRequirementStore):
    """File-backed store; a versioned JSON document rewritten by :meth:`persist`."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = path
        self._dirty = False
        self._load(path)

    @property
    def path(self) -> Path:
        return self._path

    def create(self, scope: Scope, component: Component, requirement: Requirement) -> Requirement:
        try:
            json.dumps(requirement.details)
        except (TypeError, ValueError) as exc:
            raise StoreError(
                f"Details for requirement '{requirement.name}' are not JSON serialisable: {exc}"
            ) from exc
        return super().create(scope, component, requirement)

    @contextmanager
    def transaction(self, scope: Scope) -> Iterator[None]:
        with super().transaction(scope):
            yield
        self.persist()

    def persist(self) -> None:
        if not self._dirty:
            return
        payload = {
            "version": _STORE_VERSION,
            "projects": {
                project_id: {
                    component_id: [_requirement_to_dict(row) for row in rows]
                    for component_id, rows in components.items()
                }
                for project_id, components in self._rows.items()
            },
        }
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise StoreError(f"Unable to write requirement store {self._path}: {exc}") from exc
        self._dirty = False
        _LOGGER.debug("Persisted requirement store to %s", self._path)

    def _touched(self) -> None:
        self._dirty = True

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Unable to read requirement store {path}: {exc}") from exc
        if not isinstance(data, dict) or data.get("version") != _STORE_VERSION:
            _LOGGER.warning("Ignoring requirement store %s with unsupported version", path)
            return
        projects = data.get("projects")
        if not isinstance(projects, dict):
            return
        for project_id, components in projects.items():
            if not isinstance(project_id, str) or not isinstance(components, dict):
                continue
            project_rows: Dict[str, List[Requirement]] = {}
            for component_id, rows in components.items():
                if not isinstance(rows, list):
                    continue
                parsed = [_requirement_from_dict(row, component_id) for row in rows]
                project_rows[component_id] = [row for row in parsed if row is not None]
            self._rows[project_id] = project_rows
        self._dirty = False


def _validate(requirement: Requirement) -> None:
    if not requirement.name:
        raise StoreError("Requirement name must not be empty")
    score = requirement.score
    if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
        raise StoreError(f"Requirement '{requirement.name}' has a non-numeric score")
    if not 0.0 <= score <= 1.0:
        raise StoreError(f"Requirement '{requirement.name}' score {score} is outside [0, 1]")


def _requirement_to_dict(requirement: Requirement) -> Dict[str, object]:
    checked_at = requirement.checked_at
    return {
        "name": requirement.name,
        "artifact_type": requirement.artifact_type,
        "description": requirement.description,
        "checker": requirement.checker,
        "score": requirement.score,
        "satisfied": requirement.satisfied,
        "details": requirement.details,
        "threshold": requirement.threshold,
        "checked_at": checked_at.isoformat() if checked_at is not None else None,
    }


def _requirement_from_dict(payload: object, component_id: str) -> Optional[Requirement]:
    if not isinstance(payload, dict):
        return None
    name = payload.get("name")
    score = payload.get("score")
    satisfied = payload.get("satisfied")
    if not isinstance(name, str) or not isinstance(satisfied, bool):
        return None
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    details = payload.get("details")
    checked_at_raw = payload.get("checked_at")
    checked_at: Optional[datetime] = None
    if isinstance(checked_at_raw, str):
        try:
            checked_at = datetime.fromisoformat(checked_at_raw)
        except ValueError:
            checked_at = None
    threshold = payload.get("threshold", 1.0)
    return Requirement(
        name=name,
        artifact_type=str(payload.get("artifact_type", "")),
        description=str(payload.get("description", "")),
        checker=str(payload.get("checker", "")),
        score=float(score),
        satisfied=satisfied,
        details=details if isinstance(details, dict) else {},
        checked_at=checked_at,
        component_id=component_id,
        threshold=float(threshold) if isinstance(threshold, (int, float)) else 1.0,
    )


__all__ = [
    "InMemoryRequirementStore",
    "JsonRequirementStore",
    "RequirementStore",
    "StoreError",
]
