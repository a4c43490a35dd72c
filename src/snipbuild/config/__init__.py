# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models and loaders."""

from __future__ import annotations

from .loaders import ConfigLoader, load_config
from .models import (
    Config,
    DiscoveryConfig,
    ExecutionConfig,
    ExtractConfig,
    NormalizeConfig,
    OutputConfig,
    Substitution,
    ToolchainConfig,
)

__all__ = [
    "Config",
    "ConfigLoader",
    "DiscoveryConfig",
    "ExecutionConfig",
    "ExtractConfig",
    "NormalizeConfig",
    "OutputConfig",
    "Substitution",
    "ToolchainConfig",
    "load_config",
]
