# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Dependency-ordered, bounded-parallel execution of build targets."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from ..core.models import BuildReport, EvaluationFailure, FailureKind, TargetResult, TargetState
from ..graph import BuildGraph
from .singleflight import SingleFlight

LOGGER = logging.getLogger(__name__)

TargetProcessor = Callable[[str], TargetResult]


class Scheduler:
    """Run every target of a graph once its dependencies are ``DONE``.

    Each target moves through ``PENDING -> READY -> RUNNING -> DONE | FAILED``.
    A failed dependency fails its dependents without running them. Failures
    are aggregated; the run always ends with every target in a terminal state.
    """

    def __init__(
        self,
        graph: BuildGraph,
        process: TargetProcessor,
        *,
        jobs: int = 1,
        bail: bool = False,
        on_result: Callable[[TargetResult], None] | None = None,
    ) -> None:
        """Initialise the scheduler.

        Args:
            graph: Validated dependency graph.
            process: Callable building a single target.
            jobs: Maximum number of targets evaluated concurrently.
            bail: Cancel every pending dependent of a failed target as soon as
                the failure is observed.
            on_result: Hook invoked on the scheduling thread for each result.
        """

        if jobs < 1:
            raise ValueError("jobs must be at least 1")
        self._graph = graph
        self._process = process
        self._jobs = jobs
        self._bail = bail
        self._on_result = on_result
        self._flight: SingleFlight[TargetResult] = SingleFlight()
        self._states: dict[str, TargetState] = {}
        self._waiting: dict[str, set[str]] = {}
        self._results: dict[str, TargetResult] = {}
        self._ready: deque[str] = deque()

    @property
    def states(self) -> dict[str, TargetState]:
        """Return a snapshot of every target's current state."""

        return dict(self._states)

    def run(self) -> BuildReport:
        """Execute the graph and return the aggregated report."""

        order = self._graph.topological_order()
        for target_id in order:
            self._states[target_id] = TargetState.PENDING
            self._waiting[target_id] = set(self._graph.dependencies(target_id))
        for target_id in order:
            if not self._waiting[target_id]:
                self._mark_ready(target_id)

        running: dict[Future[TargetResult], str] = {}
        with ThreadPoolExecutor(max_workers=self._jobs, thread_name_prefix="snipbuild") as executor:
            while self._ready or running:
                while self._ready:
                    target_id = self._ready.popleft()
                    if self._states[target_id] is not TargetState.READY:
                        continue
                    self._states[target_id] = TargetState.RUNNING
                    running[executor.submit(self.run_target, target_id)] = target_id
                if not running:
                    break
                finished, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in finished:
                    target_id = running.pop(future)
                    self._complete(target_id, future.result())

        unfinished = [target_id for target_id, state in self._states.items() if not state.terminal]
        if unfinished:  # pragma: no cover - unreachable for an acyclic graph
            raise RuntimeError(f"targets never became ready: {', '.join(unfinished)}")
        return BuildReport(results={target_id: self._results[target_id] for target_id in order})

    def run_target(self, target_id: str) -> TargetResult:
        """Build ``target_id`` through the single-flight guard.

        Exceptions escaping the processor are converted into an
        ``INTERNAL_ERROR`` failure so one target never aborts the build.
        """

        try:
            result, shared = self._flight.do(target_id, lambda: self._process(target_id))
        except Exception as exc:
            LOGGER.debug("unexpected error while building %s", target_id, exc_info=True)
            return TargetResult(
                target_id=target_id,
                state=TargetState.FAILED,
                failure=EvaluationFailure(kind=FailureKind.INTERNAL_ERROR, message=f"{type(exc).__name__}: {exc}"),
            )
        if shared:
            LOGGER.debug("joined in-flight evaluation of %s", target_id)
        return result

    def _mark_ready(self, target_id: str) -> None:
        self._states[target_id] = TargetState.READY
        self._ready.append(target_id)

    def _complete(self, target_id: str, result: TargetResult) -> None:
        self._record(result)
        if result.state is TargetState.DONE:
            for dependent in self._graph.dependents(target_id):
                waiting = self._waiting[dependent]
                waiting.discard(target_id)
                if not waiting and self._states[dependent] is TargetState.PENDING:
                    self._mark_ready(dependent)
            return
        if self._bail:
            self._cancel_dependents(target_id)
        else:
            self._fail_dependents(target_id)

    def _fail_dependents(self, failed_id: str) -> None:
        for dependent in self._graph.dependents(failed_id):
            if self._states[dependent] is not TargetState.PENDING:
                continue
            self._record(
                TargetResult(
                    target_id=dependent,
                    state=TargetState.FAILED,
                    failure=EvaluationFailure(
                        kind=FailureKind.DEPENDENCY_FAILED,
                        message=f"dependency {failed_id} failed",
                    ),
                ),
            )
            self._fail_dependents(dependent)

    def _cancel_dependents(self, failed_id: str) -> None:
        for dependent in sorted(self._graph.transitive_dependents(failed_id)):
            if self._states[dependent] not in (TargetState.PENDING, TargetState.READY):
                continue
            self._record(
                TargetResult(
                    target_id=dependent,
                    state=TargetState.FAILED,
                    failure=EvaluationFailure(
                        kind=FailureKind.CANCELLED,
                        message=f"cancelled after {failed_id} failed",
                    ),
                ),
            )

    def _record(self, result: TargetResult) -> None:
        self._states[result.target_id] = result.state
        self._results[result.target_id] = result
        if self._on_result is not None:
            self._on_result(result)


__all__ = ["Scheduler", "TargetProcessor"]
