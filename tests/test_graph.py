# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for dependency graph construction."""

from __future__ import annotations

from pathlib import Path

import pytest

from snipbuild.core.errors import ConfigurationError
from snipbuild.core.models import Target
from snipbuild.graph import build_graph


def make_target(target_id: str, inputs: list[str], output: str) -> Target:
    return Target(id=target_id, inputs=tuple(inputs), output=output)


def test_edges_follow_produced_inputs() -> None:
    targets = [
        make_target("c", ["c.ml", "b.json"], "c.json"),
        make_target("a", ["a.ml"], "a.json"),
        make_target("b", ["b.ml", "a.json"], "b.json"),
    ]

    graph = build_graph(targets)

    assert graph.dependencies("a") == ()
    assert graph.dependencies("b") == ("a",)
    assert graph.dependencies("c") == ("b",)
    assert graph.dependents("a") == ("b",)
    assert graph.leaf_inputs("b") == ("b.ml",)
    assert graph.producer_of("b.json") == "b"
    order = graph.topological_order()
    assert order.index("a") < order.index("b") < order.index("c")


def test_transitive_queries_and_subgraph() -> None:
    targets = [
        make_target("a", ["a.ml"], "a.json"),
        make_target("b", ["b.ml", "a.json"], "b.json"),
        make_target("c", ["c.ml", "b.json"], "c.json"),
        make_target("d", ["d.ml"], "d.json"),
    ]
    graph = build_graph(targets)

    assert graph.transitive_dependents("a") == {"b", "c"}
    assert graph.transitive_dependencies(["c"]) == {"a", "b", "c"}

    sub = graph.subgraph(["b"])
    assert set(sub.targets) == {"a", "b"}
    assert "d" not in sub
    assert sub.dependents("b") == ()


def test_subgraph_rejects_unknown_selection() -> None:
    graph = build_graph([make_target("a", ["a.ml"], "a.json")])

    with pytest.raises(ConfigurationError, match="unknown target 'nope'") as excinfo:
        graph.subgraph(["a", "nope"])
    assert excinfo.value.problems == ("unknown target 'nope'",)


def test_shared_leaf_input_creates_no_edge() -> None:
    targets = [
        make_target("x", ["shared.ml"], "x.json"),
        make_target("y", ["shared.ml"], "y.json"),
    ]

    graph = build_graph(targets)

    assert graph.dependencies("x") == ()
    assert graph.dependencies("y") == ()


def test_duplicate_ids_and_output_collisions_are_reported_together() -> None:
    targets = [
        make_target("a", ["a.ml"], "out.json"),
        make_target("a", ["b.ml"], "other.json"),
        make_target("c", ["c.ml"], "out.json"),
    ]

    with pytest.raises(ConfigurationError) as excinfo:
        build_graph(targets)

    problems = excinfo.value.problems
    assert any("duplicate target identifier 'a'" in problem for problem in problems)
    assert any("'out.json'" in problem for problem in problems)


def test_self_loop_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="its own output"):
        build_graph([make_target("a", ["a.ml", "a.json"], "a.json")])


def test_cycle_is_reported_with_chain() -> None:
    targets = [
        make_target("a", ["a.ml", "b.json"], "a.json"),
        make_target("b", ["b.ml", "a.json"], "b.json"),
    ]

    with pytest.raises(ConfigurationError) as excinfo:
        build_graph(targets)

    message = str(excinfo.value)
    assert message.startswith("dependency cycle: ")
    chain = message.removeprefix("dependency cycle: ").split(" -> ")
    assert chain[0] == chain[-1]
    assert set(chain) == {"a", "b"}


def test_missing_leaf_input_is_reported_when_root_given(tmp_path: Path) -> None:
    (tmp_path / "a.ml").write_text("1;;\n", encoding="utf-8")
    targets = [
        make_target("a", ["a.ml"], "a.json"),
        make_target("b", ["missing.ml", "a.json"], "b.json"),
    ]

    with pytest.raises(ConfigurationError, match="'missing.ml' does not exist"):
        build_graph(targets, root=tmp_path)

    # produced inputs never need to exist up front
    assert len(build_graph(targets[:1], root=tmp_path)) == 1
