# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Dependency graph construction and validation for build targets."""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import Iterable, Mapping, Sequence
from graphlib import CycleError, TopologicalSorter
from pathlib import Path

from .core.errors import ConfigurationError
from .core.models import Target


class BuildGraph:
    """Validated, acyclic graph of targets.

    Edges point from a target to the targets producing its inputs. Inputs that
    no target produces are leaf files: they contribute to fingerprints but not
    to scheduling order.
    """

    def __init__(self, targets: Mapping[str, Target], dependencies: Mapping[str, tuple[str, ...]]) -> None:
        self._targets = dict(targets)
        self._dependencies = dict(dependencies)
        self._dependents: dict[str, list[str]] = {target_id: [] for target_id in self._targets}
        for target_id, deps in self._dependencies.items():
            for dep in deps:
                self._dependents[dep].append(target_id)
        self._producers = {target.output: target.id for target in self._targets.values()}

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._targets

    def __len__(self) -> int:
        return len(self._targets)

    @property
    def targets(self) -> dict[str, Target]:
        """Return the targets keyed by identifier in declaration order."""

        return dict(self._targets)

    def target(self, target_id: str) -> Target:
        """Return the target registered under ``target_id``."""

        return self._targets[target_id]

    def dependencies(self, target_id: str) -> tuple[str, ...]:
        """Return identifiers of targets producing inputs of ``target_id``."""

        return self._dependencies[target_id]

    def dependents(self, target_id: str) -> tuple[str, ...]:
        """Return identifiers of targets consuming the output of ``target_id``."""

        return tuple(self._dependents[target_id])

    def producer_of(self, path: str) -> str | None:
        """Return the identifier of the target whose output is ``path``."""

        return self._producers.get(path)

    def leaf_inputs(self, target_id: str) -> tuple[str, ...]:
        """Return the inputs of ``target_id`` that no target produces."""

        return tuple(path for path in self._targets[target_id].inputs if path not in self._producers)

    def transitive_dependents(self, target_id: str) -> set[str]:
        """Return every target that directly or indirectly consumes ``target_id``."""

        seen: set[str] = set()
        queue = deque(self._dependents[target_id])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._dependents[current])
        return seen

    def transitive_dependencies(self, target_ids: Iterable[str]) -> set[str]:
        """Return ``target_ids`` plus everything they depend on."""

        seen: set[str] = set()
        queue = deque(target_ids)
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._dependencies[current])
        return seen

    def topological_order(self) -> list[str]:
        """Return identifiers ordered so every target follows its dependencies."""

        sorter: TopologicalSorter[str] = TopologicalSorter()
        for target_id, deps in self._dependencies.items():
            sorter.add(target_id, *deps)
        return list(sorter.static_order())

    def subgraph(self, target_ids: Iterable[str]) -> BuildGraph:
        """Return the graph restricted to ``target_ids`` and their dependencies.

        Raises:
            ConfigurationError: If any of ``target_ids`` is not part of the graph.
        """

        selected = list(target_ids)
        unknown = [target_id for target_id in selected if target_id not in self._targets]
        if unknown:
            raise ConfigurationError([f"unknown target {target_id!r}" for target_id in unknown])
        keep = self.transitive_dependencies(selected)
        return BuildGraph(
            {target_id: target for target_id, target in self._targets.items() if target_id in keep},
            {target_id: deps for target_id, deps in self._dependencies.items() if target_id in keep},
        )


def _duplicate_problems(targets: Sequence[Target]) -> list[str]:
    """Return a problem for every identifier declared more than once."""

    counts = Counter(target.id for target in targets)
    return [f"duplicate target identifier {target_id!r}" for target_id, count in counts.items() if count > 1]


def _collision_problems(targets: Sequence[Target]) -> list[str]:
    """Return a problem for every output path claimed by several targets."""

    owners: dict[str, list[str]] = {}
    for target in targets:
        owners.setdefault(target.output, []).append(target.id)
    return [
        f"output {output!r} is declared by more than one target: {', '.join(ids)}"
        for output, ids in owners.items()
        if len(ids) > 1
    ]


def _self_loop_problems(targets: Sequence[Target]) -> list[str]:
    """Return a problem for every target consuming its own output."""

    return [
        f"target {target.id!r} lists its own output {target.output!r} as an input"
        for target in targets
        if target.output in target.inputs
    ]


def _format_cycle(cycle: Sequence[str]) -> str:
    """Render a ``graphlib`` cycle as ``a -> b -> a``.

    Args:
        cycle: Node list reported by :class:`graphlib.CycleError`.

    Returns:
        str: Human readable description of the cycle.
    """

    # graphlib lists each node before the node that depends on it
    chain = list(reversed(cycle))
    return "dependency cycle: " + " -> ".join(chain)


def build_graph(targets: Sequence[Target], *, root: Path | None = None) -> BuildGraph:
    """Validate ``targets`` and assemble them into a :class:`BuildGraph`.

    Every structural problem is collected before failing so a single run
    reports all of them.

    Args:
        targets: Declared targets of the build unit.
        root: Optional project root; when supplied, leaf inputs must exist
            beneath it.

    Returns:
        BuildGraph: Validated acyclic graph.

    Raises:
        ConfigurationError: On duplicate identifiers, output collisions,
            self-loops, missing leaf inputs or dependency cycles.
    """

    problems = _duplicate_problems(targets) + _collision_problems(targets) + _self_loop_problems(targets)
    if problems:
        raise ConfigurationError(problems)

    producers = {target.output: target.id for target in targets}
    by_id = {target.id: target for target in targets}
    dependencies: dict[str, tuple[str, ...]] = {}
    for target in targets:
        deps: list[str] = []
        for path in target.inputs:
            producer = producers.get(path)
            if producer is not None:
                if producer not in deps:
                    deps.append(producer)
            elif root is not None and not (root / path).is_file():
                problems.append(f"target {target.id!r} input {path!r} does not exist and no target produces it")
        dependencies[target.id] = tuple(deps)
    if problems:
        raise ConfigurationError(problems)

    sorter: TopologicalSorter[str] = TopologicalSorter(dependencies)
    try:
        sorter.prepare()
    except CycleError as exc:
        raise ConfigurationError(_format_cycle(exc.args[1])) from exc

    return BuildGraph(by_id, dependencies)


__all__ = ["BuildGraph", "build_graph"]
