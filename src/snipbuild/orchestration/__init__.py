# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Build orchestration: per-target pipeline and dependency scheduling."""

from __future__ import annotations

from .build import collect_garbage, open_store, reachable_fingerprints, run_build
from .pipeline import TargetPipeline, classify, fingerprint_context
from .scheduler import Scheduler
from .singleflight import SingleFlight

__all__ = [
    "Scheduler",
    "SingleFlight",
    "TargetPipeline",
    "classify",
    "collect_garbage",
    "fingerprint_context",
    "open_store",
    "reachable_fingerprints",
    "run_build",
]
