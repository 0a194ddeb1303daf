"""Tests for the two-pass requirement sync."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

import pytest

from reqsync.models import Component, Dependency, TestFailure
from reqsync.requirements.store import InMemoryRequirementStore
from reqsync.sync import RequirementSync, SyncRequest, evaluation_order
from reqsync.graph import build_dependency_graph
from reqsync.hierarchy import build_hierarchy
from tests._fixtures.components import (
    PROJECT,
    SCOPE,
    FailingStore,
    MemoryEnvironment,
    artifact_files,
    make_component,
)

_ALL = ("spec", "code", "test")


def _sync(
    environment: MemoryEnvironment,
    components: Sequence[Component],
    *,
    store: InMemoryRequirementStore | None = None,
    dependencies: Sequence[Dependency] = (),
    **options: object,
) -> Dict[str, Component]:
    engine = RequirementSync(environment=environment, store=store or InMemoryRequirementStore())
    request = SyncRequest(
        scope=SCOPE,
        project=PROJECT,
        components=components,
        dependencies=dependencies,
        file_list=environment.paths(),
        **options,  # type: ignore[arg-type]
    )
    return {component.id: component for component in engine.sync(request)}


def _snapshot(component: Component) -> List[Tuple[str, bool, float]]:
    return [(req.name, req.satisfied, req.score) for req in component.requirements or []]


def test_context_with_spec_but_no_implementation(environment: MemoryEnvironment) -> None:
    shop = make_component("shop", "context", module_name="Shop")
    environment.add(artifact_files(shop, "spec"))

    result = _sync(environment, [shop], force=True)["shop"]

    assert result.requirement("spec_file").satisfied is True
    implementation = result.requirement("implementation_file")
    assert implementation.satisfied is False
    assert implementation.details["reason"] == "File missing"
    assert [req.name for req in result.requirements] == [
        "spec_file",
        "spec_valid",
        "children_designs",
        "review_file",
        "children_implementations",
        "dependencies_satisfied",
        "implementation_file",
        "test_file",
        "tests_passing",
        "children_tests",
        "children_complete",
    ]


def test_dependency_on_fully_satisfied_component(environment: MemoryEnvironment) -> None:
    a = make_component("a")
    b = make_component("b")
    environment.add(artifact_files(a, *_ALL))

    result = _sync(environment, [b, a], dependencies=[Dependency("b", "a")], force=True)

    assert result["a"].fully_satisfied
    dependencies = result["b"].requirement("dependencies_satisfied")
    assert dependencies.satisfied is True
    assert dependencies.details == {"status": "All dependencies satisfied", "count": 1}


def test_unsatisfied_dependencies_propagate_along_chains(environment: MemoryEnvironment) -> None:
    a, b, c = make_component("a"), make_component("b"), make_component("c")
    environment.add(artifact_files(b, *_ALL))
    environment.add(artifact_files(c, *_ALL))

    result = _sync(
        environment,
        [c, b, a],
        dependencies=[Dependency("c", "b"), Dependency("b", "a")],
        force=True,
    )

    assert result["b"].requirement("dependencies_satisfied").details["unsatisfied"] == ["A"]
    assert result["c"].requirement("dependencies_satisfied").satisfied is False


def test_children_tests_names_the_child_missing_tests(environment: MemoryEnvironment) -> None:
    shop = make_component("shop", "context", module_name="Shop")
    cart = make_component("cart", parent_id="shop")
    orders = make_component("orders", parent_id="shop")
    environment.add(artifact_files(cart, *_ALL))
    environment.add(artifact_files(orders, "spec", "code"))

    result = _sync(environment, [shop, cart, orders], force=True)["shop"]

    children_tests = result.requirement("children_tests")
    assert children_tests.satisfied is False
    assert "Orders" in children_tests.details["reason"]
    assert "Cart" not in children_tests.details["reason"]
    assert result.requirement("children_designs").satisfied is True


def test_children_complete_reads_descendants_final_results(environment: MemoryEnvironment) -> None:
    shop = make_component("shop", "context", module_name="Shop")
    cart = make_component("cart", parent_id="shop")
    line = make_component("line", parent_id="cart")
    for component in (cart, line):
        environment.add(artifact_files(component, *_ALL))

    result = _sync(environment, [shop, cart, line], force=True)

    assert result["cart"].fully_satisfied
    assert result["shop"].requirement("children_complete").satisfied is True


def test_failing_tests_are_attributed_to_component_test_file(environment: MemoryEnvironment) -> None:
    cart = make_component("cart")
    orders = make_component("orders")
    environment.add(artifact_files(cart, *_ALL))
    environment.add(artifact_files(orders, *_ALL))
    failures = [TestFailure(file="tests/shop/cart_test.py", title="test_total")]

    result = _sync(environment, [cart, orders], force=True, failing_tests=failures)

    assert result["cart"].requirement("tests_passing").details["failing_tests"] == ["test_total"]
    assert result["orders"].requirement("tests_passing").satisfied is True


def test_incremental_sync_keeps_unaffected_components(environment: MemoryEnvironment) -> None:
    store = InMemoryRequirementStore()
    shop = make_component("shop", "context", module_name="Shop")
    cart = make_component("cart", parent_id="shop")
    billing = make_component("billing")
    invoice = make_component("invoice")
    components = [shop, cart, billing, invoice]
    dependencies = [Dependency("invoice", "billing")]
    environment.add(artifact_files(billing, *_ALL))
    environment.add(artifact_files(invoice, *_ALL))

    before = _sync(environment, components, store=store, dependencies=dependencies, force=True)
    # billing loses its code but is not reported as changed; cart gains code.
    del environment.files["lib/shop/billing.py"]
    environment.add(artifact_files(cart, "code"))
    after = _sync(
        environment,
        [replace(component) for component in components],
        store=store,
        dependencies=dependencies,
        changed_ids={"cart"},
    )

    for component_id in ("billing", "invoice"):
        assert _snapshot(after[component_id]) == _snapshot(before[component_id])
    assert after["cart"].requirement("implementation_file").satisfied is True
    assert before["cart"].requirement("implementation_file").satisfied is False


def test_incremental_sync_never_duplicates_relational_rows(environment: MemoryEnvironment) -> None:
    store = InMemoryRequirementStore()
    a, b = make_component("a"), make_component("b")
    dependencies = [Dependency("b", "a")]
    first = _sync(environment, [a, b], store=store, dependencies=dependencies, force=True)

    second = _sync(
        environment,
        list(first.values()),
        store=store,
        dependencies=dependencies,
        changed_ids=set(),
    )

    for component in second.values():
        names = [req.name for req in component.requirements]
        assert len(names) == len(set(names))
        stored = [req.name for req in store.list_for_component(SCOPE, component.id)]
        assert sorted(stored) == sorted(names)


def test_incremental_sync_recomputes_dependents_of_changed(environment: MemoryEnvironment) -> None:
    store = InMemoryRequirementStore()
    a, b = make_component("a"), make_component("b")
    dependencies = [Dependency("b", "a")]
    _sync(environment, [a, b], store=store, dependencies=dependencies, force=True)
    environment.add(artifact_files(a, *_ALL))
    environment.add(artifact_files(b, *_ALL))

    result = _sync(environment, [a, b], store=store, dependencies=dependencies, changed_ids={"a"})

    assert result["a"].fully_satisfied
    assert result["b"].fully_satisfied


def test_incremental_sync_checks_components_without_recorded_requirements(
    environment: MemoryEnvironment,
) -> None:
    store = InMemoryRequirementStore()
    cart = make_component("cart")
    environment.add(artifact_files(cart, *_ALL))
    _sync(environment, [cart], store=store, force=True)
    orders = make_component("orders")

    result = _sync(environment, [cart, orders], store=store, changed_ids={"cart"})

    assert result["orders"].requirement("spec_file").satisfied is False
    assert not result["orders"].fully_satisfied
    assert [req.name for req in store.list_for_component(SCOPE, "orders")][:2] == ["spec_file", "spec_valid"]


def test_dry_run_writes_nothing(environment: MemoryEnvironment) -> None:
    store = InMemoryRequirementStore()
    cart = make_component("cart")
    environment.add(artifact_files(cart, "spec"))

    result = _sync(environment, [cart], store=store, force=True, persist=False)

    assert result["cart"].requirement("spec_file").satisfied is True
    assert store.has_project(SCOPE) is False


def test_dry_run_does_not_clear_existing_rows(environment: MemoryEnvironment) -> None:
    store = InMemoryRequirementStore()
    cart = make_component("cart")
    _sync(environment, [cart], store=store, force=True)
    before = store.list_for_component(SCOPE, "cart")

    environment.add(artifact_files(cart, *_ALL))
    _sync(environment, [cart], store=store, force=True, persist=False)

    assert [(req.name, req.satisfied) for req in store.list_for_component(SCOPE, "cart")] == [
        (req.name, req.satisfied) for req in before
    ]


def test_persistence_failure_drops_only_that_requirement(
    environment: MemoryEnvironment, caplog: pytest.LogCaptureFixture
) -> None:
    store = FailingStore({("a", "test_file")})
    a, b = make_component("a"), make_component("b")

    with caplog.at_level(logging.ERROR, logger="reqsync.sync"):
        result = _sync(environment, [a, b], store=store, force=True)

    names_a = [req.name for req in result["a"].requirements]
    assert "test_file" not in names_a
    assert "tests_passing" in names_a
    assert "test_file" in [req.name for req in result["b"].requirements]
    assert "test_file" in caplog.text and "a" in caplog.text


def test_output_is_ordered_by_priority_then_name(environment: MemoryEnvironment) -> None:
    components = [
        make_component("zeta"),
        make_component("beta", priority=2),
        make_component("alpha"),
        make_component("gamma", priority=1),
    ]
    engine = RequirementSync(environment=environment)

    ordered = engine.sync(SyncRequest(scope=SCOPE, project=PROJECT, components=components, force=True))

    assert [component.id for component in ordered] == ["gamma", "beta", "alpha", "zeta"]


def test_sync_does_not_mutate_input_components(environment: MemoryEnvironment) -> None:
    cart = make_component("cart")

    _sync(environment, [cart], force=True)

    assert cart.requirements is None
    assert cart.status is None


def test_evaluation_order_puts_children_and_dependencies_first() -> None:
    components = [
        make_component("shop", "context"),
        make_component("cart", parent_id="shop"),
        make_component("billing"),
    ]
    index = build_hierarchy(build_dependency_graph(components, [Dependency("cart", "billing")]))

    order = [component.id for component in evaluation_order(index)]

    assert order.index("billing") < order.index("cart") < order.index("shop")
