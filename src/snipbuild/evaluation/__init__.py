# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Snippet evaluation through an external toolchain."""

from __future__ import annotations

from .evaluator import Evaluator, stage_inputs
from .toolchain import SubprocessToolchain, Toolchain, ToolchainOutcome

__all__ = ["Evaluator", "SubprocessToolchain", "Toolchain", "ToolchainOutcome", "stage_inputs"]
