# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Capability interface to the external interpreter/compiler."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from ..config.models import ToolchainConfig
from ..core.errors import ToolchainTimeout, ToolchainUnavailable
from ..core.models import ActionKind
from ..core.process import CommandOptions, CommandResult, run_command

SNIPPET_PLACEHOLDER: Final[str] = "{snippet}"
WORKDIR_PLACEHOLDER: Final[str] = "{workdir}"
SNIPPET_STEM: Final[str] = "snippet"

CommandRunner = Callable[..., CommandResult]


@dataclass(frozen=True, slots=True)
class ToolchainOutcome:
    """Raw output of one toolchain invocation."""

    stdout: str
    stderr: str
    returncode: int


@runtime_checkable
class Toolchain(Protocol):
    """Run a snippet through the external toolchain."""

    def run(
        self,
        snippet: str,
        mode: ActionKind,
        timeout: float,
        *,
        workdir: Path,
        command: Sequence[str] | None = None,
    ) -> ToolchainOutcome:
        """Evaluate ``snippet`` in ``mode`` inside ``workdir``.

        Args:
            snippet: Source text to evaluate.
            mode: Action kind selecting the toolchain command.
            timeout: Wall-clock limit in seconds.
            workdir: Working directory holding the target's staged inputs.
            command: Optional command template overriding the configured one.

        Returns:
            ToolchainOutcome: Captured streams and exit status.

        Raises:
            ToolchainTimeout: If the process exceeds ``timeout``.
            ToolchainUnavailable: If the toolchain cannot be started.
        """
        ...


class SubprocessToolchain:
    """Evaluate snippets by spawning the configured command per invocation."""

    def __init__(self, config: ToolchainConfig | None = None, *, runner: CommandRunner = run_command) -> None:
        self._config = config or ToolchainConfig()
        self._runner = runner

    def __repr__(self) -> str:
        return f"SubprocessToolchain(commands={sorted(kind.value for kind in self._config.commands)})"

    def command_template(self, mode: ActionKind, override: Sequence[str] | None = None) -> tuple[str, ...]:
        """Return the command template used for ``mode``.

        Raises:
            ToolchainUnavailable: If no command is configured for ``mode``.
        """

        if override:
            return tuple(override)
        template = self._config.command_for(mode)
        if template is None:
            raise ToolchainUnavailable(f"no toolchain command configured for {mode.value} actions")
        return template

    def run(
        self,
        snippet: str,
        mode: ActionKind,
        timeout: float,
        *,
        workdir: Path,
        command: Sequence[str] | None = None,
    ) -> ToolchainOutcome:
        snippet_path = workdir / f"{SNIPPET_STEM}{self._config.extension}"
        snippet_path.write_text(snippet + "\n", encoding="utf-8")
        args = [
            arg.replace(SNIPPET_PLACEHOLDER, str(snippet_path)).replace(WORKDIR_PLACEHOLDER, str(workdir))
            for arg in self.command_template(mode, command)
        ]
        options = CommandOptions(cwd=workdir, env=self._config.env or None, timeout=timeout, stdin_text=snippet + "\n")
        result = self._runner(args, options=options)
        if result.timed_out:
            raise ToolchainTimeout(args[0], timeout, stdout=result.stdout, stderr=result.stderr)
        return ToolchainOutcome(stdout=result.stdout, stderr=result.stderr, returncode=result.returncode)


__all__ = ["SubprocessToolchain", "Toolchain", "ToolchainOutcome"]
