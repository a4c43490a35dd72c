# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Fingerprinting and the persistent transcript cache."""

from __future__ import annotations

from .fingerprint import fingerprint
from .store import FingerprintStore, read_entry

__all__ = ["FingerprintStore", "fingerprint", "read_entry"]
