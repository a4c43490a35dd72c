# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Content fingerprints used as cache keys."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from ..core.models import JsonValue, Target

FINGERPRINT_VERSION: Final[bytes] = b"snipbuild-fingerprint-v1"
FIELD_DELIMITER: Final[bytes] = b"\0"
_CHUNK_SIZE: Final[int] = 1 << 16


def _canonical_json(value: JsonValue | Mapping[str, JsonValue]) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def fingerprint(target: Target, root: Path, *, context: Mapping[str, JsonValue] | None = None) -> str:
    """Return the fingerprint of ``target`` from its action and input bytes.

    The digest covers the action descriptor, ``context`` (settings that shape
    the transcript, such as the resolved toolchain command) and each input's
    root-relative path, length and bytes in declared order. File timestamps
    and process state never contribute.

    Args:
        target: Target whose inputs are fully materialized under ``root``.
        root: Project root the input paths are relative to.
        context: Extra JSON-compatible settings influencing the output.

    Returns:
        str: Hex encoded SHA-256 digest.

    Raises:
        OSError: If an input file cannot be read.
    """

    hasher = hashlib.sha256()
    hasher.update(FINGERPRINT_VERSION)
    hasher.update(FIELD_DELIMITER)
    hasher.update(_canonical_json(target.action.descriptor()))
    hasher.update(FIELD_DELIMITER)
    hasher.update(_canonical_json(dict(context or {})))
    for relative in target.inputs:
        path = root / relative
        hasher.update(FIELD_DELIMITER)
        hasher.update(relative.encode("utf-8"))
        hasher.update(FIELD_DELIMITER)
        hasher.update(str(path.stat().st_size).encode("ascii"))
        hasher.update(FIELD_DELIMITER)
        with path.open("rb") as handle:
            while chunk := handle.read(_CHUNK_SIZE):
                hasher.update(chunk)
    return hasher.hexdigest()


__all__ = ["FINGERPRINT_VERSION", "fingerprint"]
