# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy used by the build pipeline."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class SnipbuildError(Exception):
    """Base class for errors raised by snipbuild."""


class ConfigurationError(SnipbuildError):
    """Raised when the build description or settings cannot produce a valid build.

    Every problem found during validation is collected so a single run reports
    all of them instead of stopping at the first one.
    """

    def __init__(self, problems: str | Iterable[str]) -> None:
        """Initialise the error with one or more problem descriptions.

        Args:
            problems: Single message or iterable of messages describing the
                configuration defects.
        """

        self.problems: tuple[str, ...] = (problems,) if isinstance(problems, str) else tuple(problems)
        if len(self.problems) == 1:
            message = self.problems[0]
        else:
            message = f"{len(self.problems)} configuration problems:\n  " + "\n  ".join(self.problems)
        super().__init__(message)


class CacheCorruption(SnipbuildError):
    """Raised when a persisted cache entry cannot be decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        """Record the offending cache file and the decoding failure.

        Args:
            path: Location of the unreadable cache entry.
            reason: Short description of why decoding failed.
        """

        super().__init__(f"corrupt cache entry {path}: {reason}")
        self.path = path
        self.reason = reason


class ToolchainError(SnipbuildError):
    """Base class for failures at the toolchain invocation boundary."""


class ToolchainTimeout(ToolchainError):
    """Raised when a toolchain process exceeds its wall-clock budget."""

    def __init__(self, command: str, timeout: float, *, stdout: str = "", stderr: str = "") -> None:
        super().__init__(f"{command} timed out after {timeout:.1f}s")
        self.timeout = timeout
        self.stdout = stdout
        self.stderr = stderr


class ToolchainUnavailable(ToolchainError):
    """Raised when the toolchain executable cannot be resolved."""


__all__ = [
    "CacheCorruption",
    "ConfigurationError",
    "SnipbuildError",
    "ToolchainError",
    "ToolchainTimeout",
    "ToolchainUnavailable",
]
