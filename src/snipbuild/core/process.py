# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Safe wrappers around ``subprocess`` execution."""

from __future__ import annotations

import os
import shutil

# Bandit: subprocess usage is intentional; commands are argument lists built
# from the build configuration and ``shell=True`` is never used.
import subprocess  # nosec B404
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import ToolchainUnavailable
from .models import TIMEOUT_EXIT_STATUS


@dataclass(frozen=True, slots=True)
class CommandOptions:
    """Immutable command execution options."""

    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    timeout: float | None = None
    stdin_text: str | None = None
    inherit_env: bool = True


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured result of a finished or terminated subprocess."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False


def _ensure_text(value: str | bytes | None) -> str:
    """Return ``value`` decoded to text, or an empty string for ``None``."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return value.decode(errors="replace")


def resolve_executable(args: Sequence[str]) -> list[str]:
    """Return ``args`` with the executable resolved to an absolute path.

    Args:
        args: Command and argument sequence.

    Returns:
        list[str]: Argument list suitable for :func:`subprocess.run`.

    Raises:
        ValueError: If ``args`` is empty.
        ToolchainUnavailable: If the executable is not found on ``PATH``.
    """

    if not args:
        raise ValueError("subprocess command requires at least one argument")

    head, *rest = args
    head_path = Path(head)
    if head_path.is_absolute():
        if not head_path.exists():
            raise ToolchainUnavailable(f"Executable '{head}' does not exist")
        return [str(head_path), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        raise ToolchainUnavailable(f"Executable '{head}' was not found on PATH")
    return [resolved, *rest]


def run_command(args: Sequence[str], *, options: CommandOptions | None = None) -> CommandResult:
    """Execute ``args`` capturing output and never raising on exit status.

    A process exceeding ``options.timeout`` is killed by :func:`subprocess.run`
    and reported with ``timed_out`` set and exit status 124.

    Args:
        args: Command and argument sequence to execute.
        options: Execution options; defaults apply when omitted.

    Returns:
        CommandResult: Captured output and exit metadata.

    Raises:
        ToolchainUnavailable: If the executable cannot be resolved.
    """

    resolved_options = options or CommandOptions()
    normalized = resolve_executable(args)
    env: dict[str, str] | None = None
    if resolved_options.env is not None or not resolved_options.inherit_env:
        env = dict(os.environ) if resolved_options.inherit_env else {}
        env.update(resolved_options.env or {})

    try:
        # Bandit: argument lists come from the build configuration, no shell expansion.
        completed = subprocess.run(  # nosec B603
            normalized,
            cwd=str(resolved_options.cwd) if resolved_options.cwd is not None else None,
            env=env,
            check=False,
            capture_output=True,
            text=True,
            timeout=resolved_options.timeout,
            input=resolved_options.stdin_text,
            stdin=subprocess.DEVNULL if resolved_options.stdin_text is None else None,
        )
    except subprocess.TimeoutExpired as exc:
        return CommandResult(
            args=tuple(normalized),
            returncode=TIMEOUT_EXIT_STATUS,
            stdout=_ensure_text(exc.stdout),
            stderr=_ensure_text(exc.stderr),
            timed_out=True,
        )
    except OSError as exc:
        raise ToolchainUnavailable(f"Executable '{normalized[0]}' could not be started: {exc}") from exc

    return CommandResult(
        args=tuple(normalized),
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


__all__ = [
    "CommandOptions",
    "CommandResult",
    "resolve_executable",
    "run_command",
]
