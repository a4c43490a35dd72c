# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Intermediate record format handed to the external renderer."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from .core.models import ActionKind, JsonValue, Segment, Target, Transcript
from .filesystem import write_if_changed

RECORD_FORMAT: Final[int] = 1


def transcript_record(target: Target, transcript: Transcript) -> dict[str, JsonValue]:
    """Return the JSON-compatible record describing ``transcript``."""

    return {
        "format": RECORD_FORMAT,
        "target": target.id,
        "kind": target.action.kind.value,
        "exit_status": transcript.exit_status,
        "segments": [{"input": segment.input, "output": segment.output} for segment in transcript.segments],
    }


def dumps_record(record: Mapping[str, JsonValue]) -> str:
    """Encode ``record`` as stable, diff-friendly JSON with a trailing newline."""

    return json.dumps(record, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def render(target: Target, transcript: Transcript) -> str:
    """Return the text written to ``target.output``.

    ``copy`` targets reproduce their input verbatim; every other kind emits a
    transcript record.
    """

    if target.action.kind is ActionKind.COPY:
        return "".join(segment.input for segment in transcript.segments)
    return dumps_record(transcript_record(target, transcript))


def write_output(target: Target, transcript: Transcript, root: Path) -> bool:
    """Persist the rendering of ``transcript`` at ``target.output``.

    Returns:
        bool: ``True`` when the file content changed.
    """

    return write_if_changed(root / target.output, render(target, transcript))


def loads_record(text: str) -> tuple[str, Transcript]:
    """Decode a record produced by :func:`dumps_record`.

    Returns:
        tuple[str, Transcript]: Target identifier and transcript.

    Raises:
        ValueError: If ``text`` is not a record of the supported format.
    """

    payload = json.loads(text)
    if not isinstance(payload, dict) or payload.get("format") != RECORD_FORMAT:
        raise ValueError("unsupported transcript record")
    segments = tuple(
        Segment(input=str(item.get("input", "")), output=str(item.get("output", "")))
        for item in payload.get("segments", [])
        if isinstance(item, dict)
    )
    return str(payload.get("target", "")), Transcript(segments=segments, exit_status=int(payload.get("exit_status", 0)))


__all__ = ["RECORD_FORMAT", "dumps_record", "loads_record", "render", "transcript_record", "write_output"]
