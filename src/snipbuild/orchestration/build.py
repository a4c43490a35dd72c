# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Entry points wiring discovery, caching, evaluation and scheduling together."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from ..cache.fingerprint import fingerprint
from ..cache.store import FingerprintStore
from ..config.models import Config
from ..core.models import BuildReport, Target, TargetResult
from ..evaluation.evaluator import Evaluator
from ..evaluation.toolchain import SubprocessToolchain, Toolchain
from ..extract import SnippetExtractor
from ..graph import BuildGraph, build_graph
from ..normalize import TranscriptNormalizer
from .pipeline import TargetPipeline, fingerprint_context
from .scheduler import Scheduler

LOGGER = logging.getLogger(__name__)


def open_store(root: Path, config: Config) -> FingerprintStore:
    """Return a loaded fingerprint store for ``root``.

    A memory-only store is used when caching is disabled so results are still
    shared between targets of the same invocation.
    """

    directory = config.cache_path(root) if config.execution.cache_enabled else None
    store = FingerprintStore(directory, persist_incrementally=config.execution.persist_incrementally)
    store.load()
    return store


def run_build(
    targets: Sequence[Target],
    *,
    root: Path,
    config: Config | None = None,
    toolchain: Toolchain | None = None,
    selected: Sequence[str] | None = None,
    store: FingerprintStore | None = None,
    use_cache: bool = True,
    on_result: Callable[[TargetResult], None] | None = None,
) -> BuildReport:
    """Bring every output of ``targets`` up to date.

    Args:
        targets: Targets declared by the project.
        root: Project root every path is relative to.
        config: Effective configuration; defaults apply when omitted.
        toolchain: Toolchain capability; the configured subprocess toolchain
            is used when omitted.
        selected: Identifiers to build together with their dependencies;
            every target is built when omitted or empty.
        store: Pre-opened fingerprint store, mainly for tests.
        use_cache: When ``False`` cached transcripts are ignored, although
            fresh results are still recorded.
        on_result: Hook receiving each target result as it is decided.

    Returns:
        BuildReport: Per-target results and the number of evaluations run.

    Raises:
        ConfigurationError: If the graph is invalid.
    """

    settings = config or Config()
    graph = build_graph(targets, root=root)
    if selected:
        graph = graph.subgraph(selected)

    active_store = store if store is not None else open_store(root, settings)
    pipeline = TargetPipeline(
        graph=graph,
        root=root,
        config=settings,
        store=active_store,
        evaluator=Evaluator(
            toolchain or SubprocessToolchain(settings.toolchain),
            extractor=SnippetExtractor(settings.extract),
            timeout=settings.execution.timeout,
        ),
        normalizer=TranscriptNormalizer(
            settings.normalize,
            root=root,
            segment_delimiter=settings.toolchain.segment_delimiter,
        ),
        use_cache=use_cache,
    )
    scheduler = Scheduler(
        graph,
        pipeline.process,
        jobs=settings.execution.jobs,
        bail=settings.execution.bail,
        on_result=on_result,
    )
    LOGGER.debug("building %d target(s) with %d job(s)", len(graph), settings.execution.jobs)
    try:
        report = scheduler.run()
    finally:
        written = active_store.flush()
        LOGGER.debug("persisted %d new cache entries", written)
    report.evaluations = pipeline.evaluations
    return report


def reachable_fingerprints(graph: BuildGraph, *, root: Path, config: Config) -> set[str]:
    """Return the fingerprints of targets whose inputs currently exist.

    Targets whose inputs have not been produced yet have no current
    fingerprint and contribute nothing.
    """

    reachable: set[str] = set()
    for target_id in graph.topological_order():
        target = graph.target(target_id)
        try:
            reachable.add(fingerprint(target, root, context=fingerprint_context(target, config)))
        except FileNotFoundError:
            LOGGER.debug("skipping %s: inputs not materialized", target_id)
    return reachable


def collect_garbage(targets: Sequence[Target], *, root: Path, config: Config | None = None) -> list[str]:
    """Remove cache entries that no current target can hit.

    Returns:
        list[str]: Fingerprints that were removed.
    """

    settings = config or Config()
    graph = build_graph(targets, root=root)
    store = FingerprintStore(settings.cache_path(root))
    store.load()
    return store.prune(reachable_fingerprints(graph, root=root, config=settings))


__all__ = ["collect_garbage", "open_store", "reachable_fingerprints", "run_build"]
