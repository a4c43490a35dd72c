# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Discover per-directory build descriptions and load their targets."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Iterable, Sequence
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config.models import DiscoveryConfig
from .core.errors import ConfigurationError
from .core.models import Action, Target


class TargetSpec(BaseModel):
    """One ``[[target]]`` table as written in a build description."""

    model_config = ConfigDict(extra="forbid")

    name: str
    inputs: list[str]
    output: str
    action: Action = Field(default_factory=Action)


class BuildDescription(BaseModel):
    """Parsed contents of a single build description file."""

    model_config = ConfigDict(extra="forbid")

    target: list[TargetSpec] = Field(default_factory=list)


def find_build_files(root: Path, config: DiscoveryConfig | None = None) -> list[Path]:
    """Return every build description below ``root`` in sorted order.

    Args:
        root: Project root to walk.
        config: Discovery settings naming the description file and excluded
            directory names.

    Returns:
        list[Path]: Absolute paths of discovered description files.
    """

    settings = config or DiscoveryConfig()
    excluded = set(settings.excludes)
    found: list[Path] = []
    for directory, subdirs, files in os.walk(root):
        subdirs[:] = sorted(name for name in subdirs if name not in excluded)
        if settings.filename in files:
            found.append(Path(directory) / settings.filename)
    return sorted(found)


def _qualify(directory: PurePosixPath, value: str) -> str:
    if directory == PurePosixPath("."):
        return value
    return (directory / value).as_posix()


def load_build_file(path: Path, root: Path) -> list[Target]:
    """Return the targets declared by the description at ``path``.

    Target identifiers, inputs and outputs are qualified with the directory
    of the description relative to ``root``.

    Raises:
        ConfigurationError: When the file is not valid TOML or does not match
            the description schema.
    """

    directory = PurePosixPath(path.parent.resolve().relative_to(root.resolve()).as_posix())
    try:
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
        description = BuildDescription.model_validate(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"{path}: invalid TOML: {exc}") from exc
    except ValidationError as exc:
        problems = [f"{path}: {'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()]
        raise ConfigurationError(problems) from exc

    targets: list[Target] = []
    for spec in description.target:
        try:
            targets.append(
                Target(
                    id=_qualify(directory, spec.name),
                    inputs=tuple(_qualify(directory, item) for item in spec.inputs),
                    output=_qualify(directory, spec.output),
                    action=spec.action,
                ),
            )
        except ValidationError as exc:
            messages = "; ".join(error["msg"] for error in exc.errors())
            raise ConfigurationError(f"{path}: target {spec.name!r}: {messages}") from exc
    return targets


def discover_targets(root: Path, config: DiscoveryConfig | None = None) -> list[Target]:
    """Return every target declared below ``root``."""

    return load_targets(find_build_files(root, config), root)


def load_targets(paths: Iterable[Path], root: Path) -> list[Target]:
    """Load the targets of every description in ``paths``, collecting all errors."""

    targets: list[Target] = []
    problems: list[str] = []
    for path in paths:
        try:
            targets.extend(load_build_file(path, root))
        except ConfigurationError as exc:
            problems.extend(exc.problems)
    if problems:
        raise ConfigurationError(problems)
    return targets


def select_targets(targets: Sequence[Target], names: Sequence[str]) -> list[str]:
    """Resolve CLI target names to identifiers, matching ids or output paths.

    Raises:
        ConfigurationError: When a name matches no target.
    """

    by_id = {target.id: target.id for target in targets}
    by_output = {target.output: target.id for target in targets}
    selected: list[str] = []
    unknown: list[str] = []
    for name in names:
        key = PurePosixPath(name).as_posix()
        match = by_id.get(key) or by_output.get(key)
        if match is None:
            unknown.append(name)
        elif match not in selected:
            selected.append(match)
    if unknown:
        raise ConfigurationError([f"unknown target {name!r}" for name in unknown])
    return selected


__all__ = [
    "BuildDescription",
    "TargetSpec",
    "discover_targets",
    "find_build_files",
    "load_build_file",
    "load_targets",
    "select_targets",
]
