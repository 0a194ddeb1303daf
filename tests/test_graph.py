"""Tests for reqsync.graph."""

from __future__ import annotations

import logging

import pytest

from reqsync.graph import (
    Cycle,
    DependencyCycleError,
    build_dependency_graph,
    find_cycles,
    topological_order,
    validate_dependency_graph,
)
from reqsync.models import Dependency
from tests._fixtures.components import make_component


def _index(ids: list[str], edges: list[tuple[str, str]]):  # type: ignore[no-untyped-def]
    return build_dependency_graph(
        [make_component(component_id) for component_id in ids],
        [Dependency(source, target) for source, target in edges],
    )


def test_build_attaches_dependencies_and_dependents() -> None:
    index = _index(["a", "b", "c"], [("b", "a"), ("c", "a"), ("c", "b"), ("c", "b")])

    assert index.require("a").dependent_ids == ["b", "c"]
    assert index.require("c").dependency_ids == ["a", "b"]
    assert index.require("a").dependency_ids == []


def test_build_does_not_mutate_inputs() -> None:
    original = make_component("a")
    build_dependency_graph([original], [])

    assert original.dependency_ids is None


def test_build_drops_edges_to_unknown_components(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="reqsync.graph"):
        index = _index(["a"], [("a", "ghost")])

    assert index.require("a").dependency_ids == []
    assert "ghost" in caplog.text


def test_two_node_cycle_is_reported_once_with_both_edges() -> None:
    index = _index(["a", "b"], [("a", "b"), ("b", "a")])

    cycles = find_cycles(index)

    assert cycles == [Cycle(("a", "b"))]
    assert set(cycles[0].edges) == {Dependency("a", "b"), Dependency("b", "a")}


def test_acyclic_graph_has_no_cycles() -> None:
    index = _index(["a", "b", "c", "d"], [("b", "a"), ("c", "a"), ("d", "b"), ("d", "c")])

    assert find_cycles(index) == []
    validate_dependency_graph(index)


def test_distinct_cycles_sharing_a_node_are_all_found() -> None:
    index = _index(["a", "b", "c"], [("a", "b"), ("b", "a"), ("b", "c"), ("c", "b")])

    cycles = {cycle.component_ids for cycle in find_cycles(index)}

    assert cycles == {("a", "b"), ("b", "c")}


def test_cycle_reached_through_finished_node_is_found() -> None:
    index = _index(["a", "b", "c", "d"], [("a", "b"), ("b", "c"), ("c", "b"), ("a", "d"), ("d", "c")])

    cycles = {cycle.component_ids for cycle in find_cycles(index)}

    assert cycles == {("b", "c")}


def test_self_dependency_is_a_cycle() -> None:
    index = _index(["a"], [("a", "a")])

    assert find_cycles(index) == [Cycle(("a",))]


def test_validate_raises_with_readable_message() -> None:
    index = _index(["a", "b"], [("a", "b"), ("b", "a")])

    with pytest.raises(DependencyCycleError) as excinfo:
        validate_dependency_graph(index)

    assert "A -> B -> A" in str(excinfo.value)
    assert len(excinfo.value.cycles) == 1


def test_topological_order_puts_dependencies_first() -> None:
    index = _index(["c", "b", "a"], [("c", "b"), ("b", "a")])

    assert [component.id for component in topological_order(index)] == ["a", "b", "c"]


def test_topological_order_appends_cyclic_components() -> None:
    index = _index(["a", "b", "c"], [("a", "b"), ("b", "a")])

    assert [component.id for component in topological_order(index)] == ["c", "a", "b"]
