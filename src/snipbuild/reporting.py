# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Console rendering of build reports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config.models import OutputConfig
from .core.models import BuildReport, FailureKind, TargetResult, TargetState
from .logging import fail, get_console_manager, ok

_DIAGNOSTIC_LINES: Final[int] = 12
_KNOCK_ON_FAILURES: Final[frozenset[FailureKind]] = frozenset({FailureKind.DEPENDENCY_FAILED, FailureKind.CANCELLED})


@dataclass(slots=True)
class BuildSummary:
    """Counts displayed in the summary panel."""

    total: int
    evaluated: int
    cached: int
    failed: int


def summarize(report: BuildReport) -> BuildSummary:
    """Return the counts shown for ``report``."""

    return BuildSummary(
        total=len(report.results),
        evaluated=report.evaluations,
        cached=report.cache_hits,
        failed=len(report.failed),
    )


def status_label(result: TargetResult) -> str:
    """Return the short status word shown for ``result``."""

    if result.state is TargetState.DONE:
        return "cached" if result.cached else "built"
    if result.failure is not None:
        return result.failure.kind.value.replace("_", " ")
    return result.state.value


def create_results_table(report: BuildReport, cfg: OutputConfig) -> Table:
    """Create a table listing every target and how it finished.

    Args:
        report: Completed build report.
        cfg: Output preferences controlling colour.

    Returns:
        Table: Rich table with one row per target.
    """

    table = Table(box=box.SIMPLE, expand=False, pad_edge=False)
    table.add_column("Target", style="bold" if cfg.color else None, overflow="fold")
    table.add_column("Status", no_wrap=True)
    table.add_column("Fingerprint", no_wrap=True)
    for result in report.results.values():
        label = status_label(result)
        style = None
        if cfg.color:
            style = "green" if result.state is TargetState.DONE else "red"
            if result.cached:
                style = "cyan"
        table.add_row(
            result.target_id,
            Text(label, style=style) if style else Text(label),
            (result.fingerprint or "-")[:12],
        )
    return table


def create_failure_panel(result: TargetResult, cfg: OutputConfig) -> Panel:
    """Return a panel describing why ``result`` failed, with its output tail."""

    failure = result.failure
    body = Text(failure.message if failure else "failed")
    transcript = failure.transcript if failure else None
    if transcript is not None and transcript.output_text:
        lines = transcript.output_text.splitlines()
        tail = lines[-_DIAGNOSTIC_LINES:]
        if len(lines) > len(tail):
            tail.insert(0, "...")
        body.append("\n\n")
        body.append("\n".join(tail), style="dim" if cfg.color else None)
    panel = Panel(body, title=result.target_id, title_align="left", expand=False)
    if cfg.color:
        panel.border_style = "red"
    return panel


def render_report(report: BuildReport, cfg: OutputConfig, *, console: Console | None = None) -> None:
    """Print the result table, failure details and a summary line.

    Quiet mode prints only failures and the summary; verbose mode also lists
    targets satisfied from the cache.
    """

    out = console or get_console_manager().get(color=cfg.color, emoji=cfg.emoji)
    if not cfg.quiet and report.results:
        shown = report if cfg.verbose else _without_cached(report)
        if shown.results:
            out.print(create_results_table(shown, cfg))
    for result in report.failed:
        if cfg.quiet and result.failure is not None and result.failure.kind in _KNOCK_ON_FAILURES:
            continue
        out.print(create_failure_panel(result, cfg))

    summary = summarize(report)
    message = (
        f"{summary.total} target(s): {summary.evaluated} evaluated, "
        f"{summary.cached} cached, {summary.failed} failed"
    )
    if report.succeeded:
        ok(message, use_emoji=cfg.emoji, use_color=cfg.color)
    else:
        fail(message, use_emoji=cfg.emoji, use_color=cfg.color)


def _without_cached(report: BuildReport) -> BuildReport:
    return BuildReport(
        results={key: result for key, result in report.results.items() if not result.cached},
        evaluations=report.evaluations,
    )


__all__ = [
    "BuildSummary",
    "create_failure_panel",
    "create_results_table",
    "render_report",
    "status_label",
    "summarize",
]
