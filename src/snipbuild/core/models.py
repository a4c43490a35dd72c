# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core data models shared across the snipbuild package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath
from typing import Final, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator

JsonScalar: TypeAlias = str | int | float | bool | None
JsonValue: TypeAlias = JsonScalar | list["JsonValue"] | dict[str, "JsonValue"]

TIMEOUT_EXIT_STATUS: Final[int] = 124


class ActionKind(str, Enum):
    """Enumerate the ways a target turns its inputs into output."""

    TOPLEVEL = "toplevel"
    TYPECHECK = "typecheck"
    COPY = "copy"


class Action(BaseModel):
    """Describe how a target is produced.

    ``command`` overrides the toolchain command configured for ``kind`` and
    ``part`` selects an annotated region of the primary input. Whether a
    non-zero exit is the desired result is recorded by ``expect_error``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ActionKind = ActionKind.TOPLEVEL
    command: tuple[str, ...] | None = None
    part: str | None = None
    expect_error: bool = False

    def descriptor(self) -> dict[str, JsonValue]:
        """Return the canonical mapping used when fingerprinting the action.

        Returns:
            dict[str, JsonValue]: JSON-compatible description of the action.
        """

        return {
            "kind": self.kind.value,
            "command": list(self.command) if self.command is not None else None,
            "part": self.part,
            "expect_error": self.expect_error,
        }


def _normalize_relative(value: str) -> str:
    """Return ``value`` as a clean root-relative POSIX path string."""

    path = PurePosixPath(value.replace("\\", "/"))
    if path.is_absolute():
        raise ValueError(f"path must be relative to the project root: {value}")
    parts = [part for part in path.parts if part not in ("", ".")]
    if ".." in parts:
        raise ValueError(f"path must not escape the project root: {value}")
    if not parts:
        raise ValueError("path must not be empty")
    return PurePosixPath(*parts).as_posix()


class Target(BaseModel):
    """Represent a named build node with ordered inputs and a single output."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    inputs: tuple[str, ...]
    output: str
    action: Action = Field(default_factory=Action)

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("target identifier must not be empty")
        return value

    @field_validator("inputs")
    @classmethod
    def _validate_inputs(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("target requires at least one input")
        return tuple(_normalize_relative(item) for item in value)

    @field_validator("output")
    @classmethod
    def _validate_output(cls, value: str) -> str:
        return _normalize_relative(value)

    @property
    def primary_input(self) -> str:
        """Return the input carrying the snippet source."""

        return self.inputs[0]


class Segment(BaseModel):
    """Pair one evaluated phrase with the output it produced."""

    model_config = ConfigDict(frozen=True)

    input: str
    output: str = ""


class Transcript(BaseModel):
    """Normalized, ordered record of evaluating a snippet."""

    model_config = ConfigDict(frozen=True)

    segments: tuple[Segment, ...] = ()
    exit_status: int = 0

    @property
    def output_text(self) -> str:
        """Return every segment output joined by newlines."""

        return "\n".join(segment.output for segment in self.segments if segment.output)


class CacheStatus(str, Enum):
    """Describe how the toolchain exited when a cache entry was created."""

    SUCCESS = "success"
    EXPECTED_FAILURE = "expected_failure"


class CacheEntry(BaseModel):
    """Associate a fingerprint with the transcript it produced."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    transcript: Transcript
    status: CacheStatus
    created_at: datetime
    target: str


@dataclass(frozen=True, slots=True)
class RawEvaluation:
    """Unprocessed capture of a single toolchain invocation."""

    phrases: tuple[str, ...]
    stdout: str
    stderr: str
    returncode: int
    workdir: str | None = None


class FailureKind(str, Enum):
    """Enumerate the reasons a target can end in ``FAILED``."""

    TIMEOUT = "timeout"
    NON_ZERO_EXIT = "non_zero_exit"
    TOOLCHAIN_UNAVAILABLE = "toolchain_unavailable"
    UNEXPECTED_SUCCESS = "unexpected_success"
    MISSING_PART = "missing_part"
    DEPENDENCY_FAILED = "dependency_failed"
    CANCELLED = "cancelled"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True, slots=True)
class EvaluationFailure:
    """Per-target failure value aggregated into the build report."""

    kind: FailureKind
    message: str
    transcript: Transcript | None = None
    # output captured before the failure, awaiting normalization
    raw: RawEvaluation | None = None


class TargetState(str, Enum):
    """Lifecycle states tracked by the scheduler for each target."""

    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        """Return ``True`` for states a target never leaves."""

        return self in (TargetState.DONE, TargetState.FAILED)


@dataclass(slots=True)
class TargetResult:
    """Outcome recorded for one target at the end of a build."""

    target_id: str
    state: TargetState
    fingerprint: str | None = None
    cached: bool = False
    transcript: Transcript | None = None
    failure: EvaluationFailure | None = None


@dataclass(slots=True)
class BuildReport:
    """Aggregate of every target result produced by one build invocation."""

    results: dict[str, TargetResult] = field(default_factory=dict)
    evaluations: int = 0

    @property
    def done(self) -> list[TargetResult]:
        """Return the results of targets that reached ``DONE``."""

        return [result for result in self.results.values() if result.state is TargetState.DONE]

    @property
    def failed(self) -> list[TargetResult]:
        """Return the results of targets that reached ``FAILED``."""

        return [result for result in self.results.values() if result.state is TargetState.FAILED]

    @property
    def cache_hits(self) -> int:
        """Return how many targets were satisfied from the cache."""

        return sum(1 for result in self.results.values() if result.cached)

    @property
    def succeeded(self) -> bool:
        """Return ``True`` when every target reached ``DONE``."""

        return all(result.state is TargetState.DONE for result in self.results.values())

    @property
    def exit_code(self) -> int:
        """Return the process exit status that reflects this report."""

        return 0 if self.succeeded else 1


__all__ = [
    "TIMEOUT_EXIT_STATUS",
    "Action",
    "ActionKind",
    "BuildReport",
    "CacheEntry",
    "CacheStatus",
    "EvaluationFailure",
    "FailureKind",
    "JsonScalar",
    "JsonValue",
    "RawEvaluation",
    "Segment",
    "Target",
    "TargetResult",
    "TargetState",
    "Transcript",
]
