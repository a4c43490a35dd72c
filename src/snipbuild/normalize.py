# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Turn raw toolchain output into a canonical, reproducible transcript.

Normalization runs in a fixed order: line endings, path placeholders,
built-in volatile-token placeholders, user substitutions, trailing
whitespace, then diagnostic reordering. Ordinary output keeps its literal
order; only runs of adjacent diagnostic blocks are sorted.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .config.models import NormalizeConfig
from .core.models import RawEvaluation, Segment, Transcript

WORKDIR_PLACEHOLDER: Final[str] = "$WORKDIR"
ROOT_PLACEHOLDER: Final[str] = "$ROOT"

BUILTIN_SUBSTITUTIONS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"(?<![\w.$])/(?:private/)?(?:tmp|var/folders)/[^\s\"':,)]+"), "$TMP"),
    (re.compile(r"\b\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?"), "<timestamp>"),
    (re.compile(r"\b0x[0-9a-fA-F]{4,}\b"), "0x<addr>"),
    (re.compile(r"\b(pid[ =:]\s*)\d+", re.IGNORECASE), r"\1<pid>"),
    (re.compile(r"\b(?:[0-9a-f]{64}|[0-9a-f]{40})\b"), "<hash>"),
)


@dataclass(frozen=True, slots=True)
class _DiagnosticBlock:
    """Location or message header together with its continuation lines."""

    lines: tuple[str, ...]

    @property
    def key(self) -> str:
        """Return the text the block is ordered by."""

        return "\n".join(self.lines)


_Item = str | _DiagnosticBlock


class TranscriptNormalizer:
    """Canonicalize raw evaluations according to :class:`NormalizeConfig`."""

    def __init__(
        self,
        config: NormalizeConfig | None = None,
        *,
        root: Path | None = None,
        segment_delimiter: str | None = None,
    ) -> None:
        """Initialise the normalizer.

        Args:
            config: Normalization settings.
            root: Project root replaced by ``$ROOT`` in output.
            segment_delimiter: Output line separating the responses of
                consecutive phrases, when the toolchain emits one.
        """

        self._config = config or NormalizeConfig()
        self._root = root
        self._segment_delimiter = segment_delimiter
        self._location = [re.compile(pattern) for pattern in self._config.location_headers]
        self._message = [re.compile(pattern) for pattern in self._config.message_headers]
        self._continuation = re.compile(self._config.continuation)
        self._substitutions = [
            (re.compile(item.pattern), item.replacement) for item in self._config.substitutions
        ]

    def normalize(self, raw: RawEvaluation) -> Transcript:
        """Return the canonical transcript for ``raw``.

        Args:
            raw: Captured output of a single evaluation.

        Returns:
            Transcript: Normalized segments and exit status.
        """

        stdout = self.normalize_text(raw.stdout, workdir=raw.workdir)
        stderr = self.normalize_text(raw.stderr, workdir=raw.workdir)
        phrases = tuple(raw.phrases)
        outputs = self._split_segments(stdout, len(phrases))
        if outputs is None:
            combined = _join_nonempty(stdout, stderr)
            segments = (Segment(input="\n".join(phrases), output=combined),)
        else:
            outputs[-1] = _join_nonempty(outputs[-1], stderr)
            segments = tuple(Segment(input=phrase, output=output) for phrase, output in zip(phrases, outputs))
        return Transcript(segments=segments, exit_status=raw.returncode)

    def normalize_text(self, text: str, *, workdir: str | None = None) -> str:
        """Apply every normalization step to a single output stream."""

        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = self._replace_paths(text, workdir)
        for pattern, replacement in BUILTIN_SUBSTITUTIONS:
            text = pattern.sub(replacement, text)
        for pattern, replacement in self._substitutions:
            text = pattern.sub(replacement, text)
        lines = [line.rstrip() for line in text.split("\n")]
        if self._config.sort_diagnostics:
            lines = self.sort_diagnostics(lines)
        while lines and not lines[-1]:
            lines.pop()
        while lines and not lines[0]:
            lines.pop(0)
        return "\n".join(lines)

    def sort_diagnostics(self, lines: Sequence[str]) -> list[str]:
        """Sort each run of adjacent diagnostic blocks by their text.

        Lines that are not part of a diagnostic block keep their position and
        break runs.
        """

        items = self._group(lines)
        result: list[str] = []
        run: list[_DiagnosticBlock] = []
        for item in items:
            if isinstance(item, _DiagnosticBlock):
                run.append(item)
                continue
            result.extend(_flatten(run))
            run = []
            result.append(item)
        result.extend(_flatten(run))
        return result

    def _group(self, lines: Sequence[str]) -> list[_Item]:
        """Partition ``lines`` into diagnostic blocks and ordinary lines.

        A location header may absorb one following message header; indented
        lines continue the open block. Any other line closes it.

        Args:
            lines: Output lines in their original order.

        Returns:
            list[_Item]: Ordinary lines and :class:`_DiagnosticBlock` items.
        """

        items: list[_Item] = []
        current: list[str] | None = None
        located = False
        has_message = False

        def close() -> None:
            nonlocal current
            if current is not None:
                items.append(_DiagnosticBlock(tuple(current)))
                current = None

        for line in lines:
            if any(pattern.match(line) for pattern in self._location):
                close()
                current, located, has_message = [line], True, False
            elif any(pattern.match(line) for pattern in self._message):
                if current is not None and located and not has_message:
                    current.append(line)
                else:
                    close()
                    current, located = [line], False
                has_message = True
            elif current is not None and line.strip() and self._continuation.match(line):
                current.append(line)
            else:
                close()
                items.append(line)
        close()
        return items

    def _replace_paths(self, text: str, workdir: str | None) -> str:
        """Substitute the working directory and project root with placeholders."""

        candidates: list[tuple[str, str]] = []
        if workdir:
            candidates.extend(_path_variants(workdir, WORKDIR_PLACEHOLDER))
        if self._root is not None:
            candidates.extend(_path_variants(str(self._root), ROOT_PLACEHOLDER))
        # longest first so nested paths collapse to the most specific placeholder
        for value, placeholder in sorted(candidates, key=lambda item: len(item[0]), reverse=True):
            text = text.replace(value, placeholder)
        return text

    def _split_segments(self, stdout: str, phrase_count: int) -> list[str] | None:
        """Split ``stdout`` into one chunk per phrase on the delimiter line.

        Returns:
            list[str] | None: Per-phrase outputs, or ``None`` when the chunk
            count does not match ``phrase_count``.
        """

        if phrase_count == 1:
            return [stdout]
        if not self._segment_delimiter:
            return None
        chunks: list[list[str]] = [[]]
        for line in stdout.split("\n"):
            if line.strip() == self._segment_delimiter:
                chunks.append([])
            else:
                chunks[-1].append(line)
        outputs = ["\n".join(chunk).strip("\n") for chunk in chunks]
        if len(outputs) == phrase_count + 1 and not outputs[-1]:
            outputs.pop()
        if len(outputs) != phrase_count:
            return None
        return outputs


def _path_variants(path: str, placeholder: str) -> list[tuple[str, str]]:
    """Return ``path`` as given and resolved, each paired with ``placeholder``."""

    variants = {path.rstrip("/")}
    try:
        variants.add(str(Path(path).resolve()).rstrip("/"))
    except OSError:
        pass
    return [(variant, placeholder) for variant in variants if variant]


def _flatten(blocks: Sequence[_DiagnosticBlock]) -> list[str]:
    """Return the lines of ``blocks`` in sorted block order."""

    lines: list[str] = []
    for block in sorted(blocks, key=lambda item: item.key):
        lines.extend(block.lines)
    return lines


def _join_nonempty(*parts: str) -> str:
    return "\n".join(part for part in parts if part)


__all__ = ["ROOT_PLACEHOLDER", "WORKDIR_PLACEHOLDER", "TranscriptNormalizer"]
