# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models for the snipbuild pipeline."""

from __future__ import annotations

import math
import os
import re
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.models import ActionKind

DEFAULT_BUILD_FILENAME: Final[str] = "snipbuild.toml"
DEFAULT_CACHE_DIR: Final[Path] = Path(".snipbuild-cache")
DEFAULT_TIMEOUT_SECONDS: Final[float] = 60.0
DEFAULT_PART_MARKER: Final[str] = r"^\s*\(\*\s*part\s+(\S+)\s*\*\)\s*$"
DEFAULT_LOCATION_HEADERS: Final[tuple[str, ...]] = (r'^File "[^"]*", line \d+',)
DEFAULT_MESSAGE_HEADERS: Final[tuple[str, ...]] = (r"^(Warning|Error|Alert)\b",)
DEFAULT_CONTINUATION: Final[str] = r"^(\s|\d+ \||\^)"
DEFAULT_EXCLUDES: Final[tuple[str, ...]] = (".git", "_build", "node_modules", DEFAULT_CACHE_DIR.name)


def default_parallel_jobs() -> int:
    """Return a CPU count scaled down for concurrent evaluation.

    Returns:
        int: Roughly 75% of available CPU cores, never fewer than one.
    """

    cores = os.cpu_count() or 1
    return max(1, math.floor(cores * 0.75))


def _default_commands() -> dict[ActionKind, list[str]]:
    return {
        ActionKind.TOPLEVEL: ["ocaml", "-no-version", "-noprompt", "-nopromptcont", "-color", "never"],
        ActionKind.TYPECHECK: ["ocamlc", "-i", "-color", "never", "{snippet}"],
    }


def _validate_pattern(value: str) -> str:
    try:
        re.compile(value)
    except re.error as exc:
        raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
    return value


class ExecutionConfig(BaseModel):
    """Scheduling, timeout and cache behaviour."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    jobs: int = Field(default_factory=default_parallel_jobs, ge=1)
    bail: bool = False
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    cache_enabled: bool = True
    cache_dir: Path = DEFAULT_CACHE_DIR
    persist_incrementally: bool = False


class OutputConfig(BaseModel):
    """Console presentation settings."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    emoji: bool = True
    color: bool = True
    verbose: bool = False
    quiet: bool = False


class ToolchainConfig(BaseModel):
    """Commands used to evaluate snippets for each action kind.

    Command arguments may reference ``{snippet}`` (the snippet file inside the
    working directory) and ``{workdir}``. The snippet is also piped to the
    process on standard input.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    commands: dict[ActionKind, list[str]] = Field(default_factory=_default_commands)
    extension: str = ".ml"
    segment_delimiter: str | None = None
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("commands")
    @classmethod
    def _reject_empty_commands(cls, value: dict[ActionKind, list[str]]) -> dict[ActionKind, list[str]]:
        for kind, command in value.items():
            if kind is ActionKind.COPY:
                raise ValueError("copy actions never invoke the toolchain")
            if not command:
                raise ValueError(f"command for {kind.value} must not be empty")
        return value

    def command_for(self, kind: ActionKind) -> tuple[str, ...] | None:
        """Return the configured command template for ``kind`` when present."""

        command = self.commands.get(kind)
        return tuple(command) if command else None


class ExtractConfig(BaseModel):
    """Rules used to locate annotated snippet regions."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    languages: list[str] = Field(default_factory=lambda: ["ocaml"])
    part_marker: str = DEFAULT_PART_MARKER
    phrase_terminator: str = ";;"

    @field_validator("part_marker")
    @classmethod
    def _check_marker(cls, value: str) -> str:
        return _validate_pattern(value)


class Substitution(BaseModel):
    """User supplied regex replacement applied during normalization."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pattern: str
    replacement: str

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        return _validate_pattern(value)


class NormalizeConfig(BaseModel):
    """Transcript normalization switches."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    sort_diagnostics: bool = True
    location_headers: list[str] = Field(default_factory=lambda: list(DEFAULT_LOCATION_HEADERS))
    message_headers: list[str] = Field(default_factory=lambda: list(DEFAULT_MESSAGE_HEADERS))
    continuation: str = DEFAULT_CONTINUATION
    substitutions: list[Substitution] = Field(default_factory=list)

    @field_validator("location_headers", "message_headers")
    @classmethod
    def _check_headers(cls, value: list[str]) -> list[str]:
        return [_validate_pattern(item) for item in value]

    @field_validator("continuation")
    @classmethod
    def _check_continuation(cls, value: str) -> str:
        return _validate_pattern(value)


class DiscoveryConfig(BaseModel):
    """Where build descriptions are searched for."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    filename: str = DEFAULT_BUILD_FILENAME
    excludes: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDES))


class Config(BaseModel):
    """Primary configuration container used by the pipeline."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    extract: ExtractConfig = Field(default_factory=ExtractConfig)
    normalize: NormalizeConfig = Field(default_factory=NormalizeConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-compatible mapping of every configuration value."""

        return dict(self.model_dump(mode="json"))

    def cache_path(self, root: Path) -> Path:
        """Return the cache directory resolved against ``root``."""

        cache_dir = self.execution.cache_dir
        return cache_dir if cache_dir.is_absolute() else root / cache_dir


__all__ = [
    "DEFAULT_BUILD_FILENAME",
    "Config",
    "DiscoveryConfig",
    "ExecutionConfig",
    "ExtractConfig",
    "NormalizeConfig",
    "OutputConfig",
    "Substitution",
    "ToolchainConfig",
    "default_parallel_jobs",
]
