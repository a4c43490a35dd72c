# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the subprocess toolchain adapter."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path

import pytest

from snipbuild.config.models import ToolchainConfig
from snipbuild.core.errors import ToolchainTimeout, ToolchainUnavailable
from snipbuild.core.models import ActionKind
from snipbuild.core.process import CommandOptions, CommandResult, run_command
from snipbuild.evaluation.toolchain import SubprocessToolchain, Toolchain


class RecordingRunner:
    def __init__(self, result: CommandResult) -> None:
        self.result = result
        self.calls: list[tuple[list[str], CommandOptions]] = []

    def __call__(self, args: Sequence[str], *, options: CommandOptions) -> CommandResult:
        self.calls.append((list(args), options))
        return self.result


def test_placeholders_are_substituted(tmp_path: Path) -> None:
    runner = RecordingRunner(CommandResult(args=(), returncode=0, stdout="val x : int\n", stderr=""))
    toolchain = SubprocessToolchain(ToolchainConfig(env={"OCAMLRUNPARAM": "b"}), runner=runner)

    outcome = toolchain.run("let x = 1", ActionKind.TYPECHECK, 3.0, workdir=tmp_path)

    args, options = runner.calls[0]
    assert args == ["ocamlc", "-i", "-color", "never", str(tmp_path / "snippet.ml")]
    assert (tmp_path / "snippet.ml").read_text(encoding="utf-8") == "let x = 1\n"
    assert options.cwd == tmp_path
    assert options.timeout == 3.0
    assert options.stdin_text == "let x = 1\n"
    assert options.env == {"OCAMLRUNPARAM": "b"}
    assert outcome.stdout == "val x : int\n"
    assert outcome.returncode == 0
    assert isinstance(toolchain, Toolchain)


def test_action_command_overrides_configuration(tmp_path: Path) -> None:
    runner = RecordingRunner(CommandResult(args=(), returncode=0, stdout="", stderr=""))
    toolchain = SubprocessToolchain(runner=runner)

    toolchain.run("1;;", ActionKind.TOPLEVEL, 1.0, workdir=tmp_path, command=("utop", "{workdir}"))

    assert runner.calls[0][0] == ["utop", str(tmp_path)]


def test_timeout_is_raised(tmp_path: Path) -> None:
    runner = RecordingRunner(CommandResult(args=("ocaml",), returncode=124, stdout="partial", stderr="", timed_out=True))
    toolchain = SubprocessToolchain(runner=runner)

    with pytest.raises(ToolchainTimeout) as excinfo:
        toolchain.run("let rec f () = f ();;\nf ();;", ActionKind.TOPLEVEL, 0.5, workdir=tmp_path)

    assert excinfo.value.stdout == "partial"
    assert "timed out after 0.5s" in str(excinfo.value)


def test_unconfigured_mode_is_unavailable(tmp_path: Path) -> None:
    toolchain = SubprocessToolchain(ToolchainConfig(commands={ActionKind.TOPLEVEL: ["ocaml"]}))

    with pytest.raises(ToolchainUnavailable, match="typecheck"):
        toolchain.run("let x = 1", ActionKind.TYPECHECK, 1.0, workdir=tmp_path)


def test_copy_commands_are_rejected() -> None:
    with pytest.raises(ValueError):
        ToolchainConfig(commands={ActionKind.COPY: ["cat"]})


def test_run_command_captures_streams(tmp_path: Path) -> None:
    script = "import sys; data = sys.stdin.read(); print(data.upper()); print('err', file=sys.stderr); sys.exit(3)"

    result = run_command([sys.executable, "-c", script], options=CommandOptions(cwd=tmp_path, stdin_text="abc"))

    assert result.returncode == 3
    assert result.stdout == "ABC\n"
    assert result.stderr == "err\n"
    assert not result.timed_out


def test_run_command_reports_timeout() -> None:
    result = run_command([sys.executable, "-c", "import time; time.sleep(5)"], options=CommandOptions(timeout=0.2))

    assert result.timed_out
    assert result.returncode == 124


def test_missing_executable_is_unavailable() -> None:
    with pytest.raises(ToolchainUnavailable):
        run_command(["definitely-not-a-real-toolchain-binary"])
