# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Layered configuration sources (defaults, pyproject, TOML, overrides)."""

from __future__ import annotations

import logging
import os
import re
import tomllib
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from pathlib import Path
from typing import Any, Final, Protocol

from pydantic import ValidationError

from ..core.errors import ConfigurationError
from .models import Config

LOGGER = logging.getLogger(__name__)

DEFAULT_INCLUDE_KEY: Final[str] = "include"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "snipbuild"
PYPROJECT_FILENAME: Final[str] = "pyproject.toml"

_ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$(\w+)|\$\{([^}]+)\}")


class ConfigSource(Protocol):
    """Contract implemented by every configuration layer."""

    name: str

    def load(self) -> Mapping[str, Any]:
        """Return the raw configuration fragment contributed by the source."""
        ...

    def describe(self) -> str:
        """Return a human readable description of the source."""
        ...


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` recursively updated with ``override``."""

    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def expand_env(value: Any, env: Mapping[str, str]) -> Any:
    """Expand ``$VAR`` and ``${VAR}`` references inside string values."""

    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(lambda match: env.get(match.group(1) or match.group(2), match.group(0)), value)
    if isinstance(value, Mapping):
        return {key: expand_env(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item, env) for item in value]
    return value


class DefaultConfigSource:
    """Return the built-in defaults as a configuration fragment."""

    name = "defaults"

    def load(self) -> Mapping[str, Any]:
        return Config().to_dict()

    def describe(self) -> str:
        return "Built-in defaults"


class TomlConfigSource:
    """Load configuration data from a TOML document with include support."""

    def __init__(
        self,
        path: Path,
        *,
        name: str | None = None,
        include_key: str = DEFAULT_INCLUDE_KEY,
        env: Mapping[str, str] | None = None,
        required: bool = False,
    ) -> None:
        self._root_path = path
        self.name = name or str(path)
        self._include_key = include_key
        self._env = env if env is not None else os.environ
        self._required = required

    def load(self) -> Mapping[str, Any]:
        if self._required and not self._root_path.exists():
            raise ConfigurationError(f"configuration file {self._root_path} does not exist")
        return self._load(self._root_path, ())

    def _load(self, path: Path, stack: tuple[Path, ...]) -> Mapping[str, Any]:
        if not path.exists():
            return {}
        resolved = path.resolve()
        if resolved in stack:
            include_chain = " -> ".join(str(entry) for entry in (*stack, resolved))
            raise ConfigurationError(f"circular include detected: {include_chain}")
        try:
            with resolved.open("rb") as handle:
                data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"invalid TOML in {path}: {exc}") from exc
        document: dict[str, Any] = dict(data)
        includes = document.pop(self._include_key, None)
        merged: dict[str, Any] = {}
        for include_path in self._coerce_includes(includes, resolved.parent):
            merged = deep_merge(merged, self._load(include_path, stack + (resolved,)))
        merged = deep_merge(merged, document)
        return expand_env(merged, self._env)

    @staticmethod
    def _coerce_includes(raw: Any, base_dir: Path) -> Iterable[Path]:
        if raw is None:
            return []
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, list):
            raise ConfigurationError(f"unsupported include declaration: {raw!r}")
        return [path if (path := Path(item)).is_absolute() else base_dir / path for item in raw]

    def describe(self) -> str:
        return f"TOML configuration at {self.name}"


class PyProjectConfigSource(TomlConfigSource):
    """Read configuration from ``[tool.snipbuild]`` within ``pyproject.toml``."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, name=str(path))

    def load(self) -> Mapping[str, Any]:
        data = super().load()
        tool_section = data.get(PYPROJECT_TOOL_KEY)
        if not isinstance(tool_section, Mapping):
            return {}
        section = tool_section.get(PYPROJECT_SECTION_KEY)
        if not isinstance(section, MutableMapping):
            return {}
        return dict(section)

    def describe(self) -> str:
        return f"pyproject.toml ({self.name})"


class ConfigLoader:
    """Apply layered configuration sources with predictable precedence."""

    def __init__(self, sources: Sequence[ConfigSource]) -> None:
        if not sources:
            raise ValueError("at least one configuration source is required")
        self._sources = list(sources)

    def load(self, overrides: Mapping[str, Any] | None = None) -> Config:
        """Merge every source in order, then ``overrides``, into a :class:`Config`.

        Args:
            overrides: Highest-precedence fragment, typically built from CLI flags.

        Returns:
            Config: Validated configuration.

        Raises:
            ConfigurationError: When a source is unreadable or the merged data
                fails validation.
        """

        merged: dict[str, Any] = {}
        for source in self._sources:
            LOGGER.debug("applying %s", source.describe())
            merged = deep_merge(merged, source.load())
        if overrides:
            merged = deep_merge(merged, overrides)
        try:
            return Config.model_validate(merged)
        except ValidationError as exc:
            problems = [
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
            ]
            raise ConfigurationError(problems) from exc


def load_config(
    root: Path,
    *,
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Config:
    """Return the configuration for the project rooted at ``root``.

    Args:
        root: Project root holding an optional ``pyproject.toml``.
        config_path: Explicit TOML file layered over ``pyproject.toml``.
        overrides: Fragment applied last (CLI flags).

    Returns:
        Config: Fully merged configuration.
    """

    sources: list[ConfigSource] = [DefaultConfigSource(), PyProjectConfigSource(root / PYPROJECT_FILENAME)]
    if config_path is not None:
        sources.append(TomlConfigSource(config_path, required=True))
    return ConfigLoader(sources).load(overrides)


__all__ = [
    "ConfigLoader",
    "ConfigSource",
    "DefaultConfigSource",
    "PyProjectConfigSource",
    "TomlConfigSource",
    "deep_merge",
    "expand_env",
    "load_config",
]
