"""Tests for reqsync.requirements.store."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from reqsync.models import Requirement, Scope
from reqsync.requirements.store import InMemoryRequirementStore, JsonRequirementStore, StoreError
from tests._fixtures.components import SCOPE, make_component


def _requirement(name: str = "spec_valid", **overrides: object) -> Requirement:
    fields: dict[str, object] = {
        "name": name,
        "artifact_type": "specification",
        "description": "Specification is valid",
        "checker": "document_validity",
        "score": 0.75,
        "satisfied": True,
        "details": {"missing_sections": ["Fields"], "nested": {"count": 2}},
        "checked_at": datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        "threshold": 0.7,
    }
    fields.update(overrides)
    return Requirement(**fields)  # type: ignore[arg-type]


def test_json_store_round_trip_preserves_requirement(tmp_path: Path) -> None:
    path = tmp_path / ".reqsync" / "requirements.json"
    cart = make_component("cart")
    store = JsonRequirementStore(path)
    with store.transaction(SCOPE):
        store.create(SCOPE, cart, _requirement())

    reloaded = JsonRequirementStore(path).list_for_component(SCOPE, "cart")

    assert len(reloaded) == 1
    row = reloaded[0]
    original = _requirement()
    assert row.name == original.name
    assert row.score == original.score
    assert row.satisfied == original.satisfied
    assert row.details == original.details
    assert row.checked_at == original.checked_at
    assert row.threshold == 0.7
    assert row.component_id == "cart"


def test_persisted_document_is_versioned(tmp_path: Path) -> None:
    path = tmp_path / "requirements.json"
    store = JsonRequirementStore(path)
    store.create(SCOPE, make_component("cart"), _requirement())
    store.persist()

    payload = json.loads(path.read_text(encoding="utf-8"))

    assert payload["version"] == 1
    assert list(payload["projects"]["shop"]["cart"][0]) == sorted(payload["projects"]["shop"]["cart"][0])


def test_persist_without_changes_writes_nothing(tmp_path: Path) -> None:
    path = tmp_path / "requirements.json"
    JsonRequirementStore(path).persist()

    assert not path.exists()


def test_create_replaces_row_with_same_name() -> None:
    store = InMemoryRequirementStore()
    cart = make_component("cart")
    store.create(SCOPE, cart, _requirement(score=0.2, satisfied=False))
    store.create(SCOPE, cart, _requirement(score=0.9))

    rows = store.list_for_component(SCOPE, "cart")

    assert [row.score for row in rows] == [0.9]


@pytest.mark.parametrize("overrides", [{"name": ""}, {"score": 1.2}, {"score": -0.5}, {"score": float("nan")}])
def test_create_validates_rows(overrides: dict[str, object]) -> None:
    store = InMemoryRequirementStore()

    with pytest.raises(StoreError):
        store.create(SCOPE, make_component("cart"), _requirement(**overrides))


def test_json_store_rejects_unserialisable_details(tmp_path: Path) -> None:
    store = JsonRequirementStore(tmp_path / "requirements.json")

    with pytest.raises(StoreError, match="JSON"):
        store.create(SCOPE, make_component("cart"), _requirement(details={"when": object()}))


def test_clear_operations_are_scoped_by_project() -> None:
    store = InMemoryRequirementStore()
    other = Scope(project_id="other")
    cart = make_component("cart")
    for scope in (SCOPE, other):
        store.create(scope, cart, _requirement("spec_file"))
        store.create(scope, cart, _requirement("dependencies_satisfied"))

    assert store.clear_by_names(SCOPE, ["cart"], ["dependencies_satisfied"]) == 1
    assert [row.name for row in store.list_for_component(SCOPE, "cart")] == ["spec_file"]
    assert store.clear_for_component(SCOPE, "cart") == 1
    assert store.list_for_component(SCOPE, "cart") == []
    assert len(store.list_for_component(other, "cart")) == 2


def test_returned_rows_are_copies() -> None:
    store = InMemoryRequirementStore()
    store.create(SCOPE, make_component("cart"), _requirement())

    store.list_for_component(SCOPE, "cart")[0].details["nested"]["count"] = 99

    assert store.list_for_component(SCOPE, "cart")[0].details["nested"]["count"] == 2


def test_failed_transaction_rolls_back(tmp_path: Path) -> None:
    path = tmp_path / "requirements.json"
    cart = make_component("cart")
    store = JsonRequirementStore(path)
    with store.transaction(SCOPE):
        store.create(SCOPE, cart, _requirement("spec_file"))

    with pytest.raises(RuntimeError, match="boom"):
        with store.transaction(SCOPE):
            store.clear_for_component(SCOPE, "cart")
            raise RuntimeError("boom")

    assert [row.name for row in store.list_for_component(SCOPE, "cart")] == ["spec_file"]
    assert [row.name for row in JsonRequirementStore(path).list_for_component(SCOPE, "cart")] == ["spec_file"]


def test_corrupt_store_file_raises(tmp_path: Path) -> None:
    path = tmp_path / "requirements.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        JsonRequirementStore(path)


def test_store_with_other_version_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "requirements.json"
    path.write_text(json.dumps({"version": 99, "projects": {"shop": {"cart": []}}}), encoding="utf-8")

    store = JsonRequirementStore(path)

    assert store.has_project(SCOPE) is False
