# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for build report rendering."""

from __future__ import annotations

from rich.console import Console

from snipbuild.config.models import OutputConfig
from snipbuild.core.models import (
    BuildReport,
    EvaluationFailure,
    FailureKind,
    Segment,
    TargetResult,
    TargetState,
    Transcript,
)
from snipbuild.reporting import render_report, status_label, summarize


def make_report() -> BuildReport:
    transcript = Transcript(segments=(Segment(input="x;;", output="Error: Unbound value x"),), exit_status=2)
    return BuildReport(
        results={
            "fresh": TargetResult(target_id="fresh", state=TargetState.DONE, fingerprint="f" * 64),
            "reused": TargetResult(target_id="reused", state=TargetState.DONE, fingerprint="e" * 64, cached=True),
            "broken": TargetResult(
                target_id="broken",
                state=TargetState.FAILED,
                failure=EvaluationFailure(kind=FailureKind.NON_ZERO_EXIT, message="broken exited 2", transcript=transcript),
            ),
            "downstream": TargetResult(
                target_id="downstream",
                state=TargetState.FAILED,
                failure=EvaluationFailure(kind=FailureKind.DEPENDENCY_FAILED, message="dependency broken failed"),
            ),
        },
        evaluations=2,
    )


def test_status_labels() -> None:
    report = make_report()

    assert [status_label(result) for result in report.results.values()] == [
        "built",
        "cached",
        "non zero exit",
        "dependency failed",
    ]


def test_summary_counts() -> None:
    summary = summarize(make_report())

    assert (summary.total, summary.evaluated, summary.cached, summary.failed) == (4, 2, 1, 2)


def test_render_hides_cached_rows_unless_verbose() -> None:
    console = Console(record=True, width=120, color_system=None)

    render_report(make_report(), OutputConfig(emoji=False, color=False), console=console)

    text = console.export_text()
    assert "fresh" in text
    assert "reused" not in text
    assert "Error: Unbound value x" in text
    assert "dependency broken failed" in text


def test_quiet_render_skips_table_and_knock_on_failures() -> None:
    console = Console(record=True, width=120, color_system=None)

    render_report(make_report(), OutputConfig(emoji=False, color=False, quiet=True), console=console)

    text = console.export_text()
    assert "fresh" not in text
    assert "broken exited 2" in text
    assert "dependency broken failed" not in text
