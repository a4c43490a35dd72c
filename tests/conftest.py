# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from snipbuild.config.models import Config, ExecutionConfig, OutputConfig
from snipbuild.core.errors import ToolchainTimeout
from snipbuild.core.models import ActionKind
from snipbuild.evaluation.toolchain import ToolchainOutcome

_SUM_RE = re.compile(r"^\s*(\d+(?:\s*\+\s*\d+)*)\s*;;\s*$")


def toplevel_response(snippet: str) -> ToolchainOutcome:
    """Answer integer additions the way the OCaml toplevel would.

    ``fail`` anywhere in the snippet produces a type error with status 2 and
    ``loop`` simulates a runaway evaluation.
    """

    if "fail" in snippet:
        return ToolchainOutcome(stdout="", stderr="Error: Unbound value fail\n", returncode=2)
    lines: list[str] = []
    for phrase in snippet.split(";;"):
        if not phrase.strip():
            continue
        match = _SUM_RE.match(phrase + ";;")
        if match is None:
            lines.append("- : unit = ()")
            continue
        total = sum(int(value) for value in match.group(1).split("+"))
        lines.append(f"- : int = {total}")
    return ToolchainOutcome(stdout="\n".join(lines) + "\n", stderr="", returncode=0)


@dataclass
class FakeToolchain:
    """In-process stand-in for the external interpreter."""

    respond: Callable[[str], ToolchainOutcome] = toplevel_response
    delay: float = 0.0
    calls: list[tuple[str, ActionKind]] = field(default_factory=list)
    workdirs: list[Path] = field(default_factory=list)
    max_concurrency: int = 0
    _active: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def run(
        self,
        snippet: str,
        mode: ActionKind,
        timeout: float,
        *,
        workdir: Path,
        command: Sequence[str] | None = None,
    ) -> ToolchainOutcome:
        with self._lock:
            self.calls.append((snippet, mode))
            self.workdirs.append(workdir)
            self._active += 1
            self.max_concurrency = max(self.max_concurrency, self._active)
        try:
            if "loop" in snippet:
                raise ToolchainTimeout("ocaml", timeout, stdout="val loop : unit -> 'a = <fun>\n")
            if self.delay:
                time.sleep(self.delay)
            return self.respond(snippet)
        finally:
            with self._lock:
                self._active -= 1


@pytest.fixture
def toolchain() -> FakeToolchain:
    """Return a fresh fake toolchain."""

    return FakeToolchain()


@pytest.fixture
def config() -> Config:
    """Return a configuration suited to tests: parallel, quiet output."""

    return Config(
        execution=ExecutionConfig(jobs=4, timeout=5.0),
        output=OutputConfig(emoji=False, color=False),
    )


@pytest.fixture
def write(tmp_path: Path) -> Callable[[str, str], Path]:
    """Return a helper writing text files relative to ``tmp_path``."""

    def _write(relative: str, text: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write
