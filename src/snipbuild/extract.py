# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Locate annotated snippet regions inside chapter and example sources.

Two source layouts are understood:

* Markdown chapters, where evaluable listings are fenced code blocks whose
  info string starts with one of the configured languages. A block may carry
  ``part=<name>`` to make it addressable and ``skip`` to exclude it.
* Plain source files, split into parts by marker comment lines such as
  ``(* part 1 *)``. Text before the first marker belongs to part ``0``.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final

from .config.models import ExtractConfig
from .core.errors import SnipbuildError

MARKDOWN_SUFFIXES: Final[frozenset[str]] = frozenset({".md", ".markdown"})
FIRST_PART: Final[str] = "0"
PART_ATTRIBUTE: Final[str] = "part"
SKIP_ATTRIBUTE: Final[str] = "skip"

_FENCE_RE: Final[re.Pattern[str]] = re.compile(r"^(?P<indent>\s*)(?P<fence>`{3,}|~{3,})(?P<info>.*)$")


class MissingPartError(SnipbuildError):
    """Raised when a requested part is not present in a source file."""

    def __init__(self, source: str, part: str, available: Sequence[str]) -> None:
        listing = ", ".join(available) if available else "none"
        super().__init__(f"{source} has no part {part!r} (available: {listing})")
        self.source = source
        self.part = part


@dataclass(frozen=True, slots=True)
class CodeBlock:
    """Fenced block found in a Markdown source."""

    language: str
    attributes: dict[str, str]
    body: str
    line: int

    @property
    def part(self) -> str | None:
        return self.attributes.get(PART_ATTRIBUTE)

    @property
    def skipped(self) -> bool:
        return SKIP_ATTRIBUTE in self.attributes


def _parse_info(info: str) -> tuple[str, dict[str, str]]:
    tokens = info.strip().split()
    if not tokens:
        return "", {}
    language, *rest = tokens
    attributes: dict[str, str] = {}
    for token in rest:
        key, sep, value = token.partition("=")
        attributes[key] = value if sep else ""
    return language, attributes


def iter_code_blocks(text: str) -> Iterator[CodeBlock]:
    """Yield every fenced code block in ``text`` in document order.

    Args:
        text: Markdown document contents.

    Yields:
        CodeBlock: Parsed block with its language, attributes and body.
    """

    lines = text.splitlines()
    index = 0
    while index < len(lines):
        match = _FENCE_RE.match(lines[index])
        if match is None:
            index += 1
            continue
        fence = match.group("fence")
        language, attributes = _parse_info(match.group("info"))
        start = index + 1
        end = start
        while end < len(lines) and not lines[end].strip().startswith(fence):
            end += 1
        yield CodeBlock(language=language, attributes=attributes, body="\n".join(lines[start:end]), line=start)
        index = end + 1


class SnippetExtractor:
    """Extract the snippet body a target evaluates from its primary input."""

    def __init__(self, config: ExtractConfig | None = None) -> None:
        self._config = config or ExtractConfig()
        self._marker = re.compile(self._config.part_marker)

    def split_parts(self, text: str) -> dict[str, str]:
        """Return the parts of a plain source file keyed by part name.

        Args:
            text: File contents.

        Returns:
            dict[str, str]: Ordered mapping of part name to body. Part ``0``
            holds the text before the first marker and is omitted when blank.
        """

        parts: dict[str, list[str]] = {FIRST_PART: []}
        current = FIRST_PART
        for line in text.splitlines():
            match = self._marker.match(line)
            if match is not None:
                current = match.group(1)
                parts.setdefault(current, [])
                continue
            parts[current].append(line)
        bodies = {name: _trim_blank_lines(lines) for name, lines in parts.items()}
        if not bodies[FIRST_PART] and len(bodies) > 1:
            del bodies[FIRST_PART]
        return bodies

    def evaluable_blocks(self, text: str) -> list[CodeBlock]:
        """Return Markdown blocks written in a configured language and not skipped."""

        languages = set(self._config.languages)
        return [block for block in iter_code_blocks(text) if block.language in languages and not block.skipped]

    def extract(self, source: str, text: str, part: str | None = None) -> str:
        """Return the snippet body selected by ``part`` from ``text``.

        Args:
            source: Root-relative path of the source, used for format
                detection and error messages.
            text: Contents of the source.
            part: Optional part name; ``None`` selects the whole snippet.

        Returns:
            str: Snippet body ready for evaluation.

        Raises:
            MissingPartError: If ``part`` does not name a region of the source.
        """

        if PurePosixPath(source).suffix.lower() in MARKDOWN_SUFFIXES:
            blocks = self.evaluable_blocks(text)
            if part is None:
                return "\n".join(block.body for block in blocks)
            for block in blocks:
                if block.part == part:
                    return block.body
            raise MissingPartError(source, part, [block.part for block in blocks if block.part])

        if part is None:
            return text.rstrip("\n")
        parts = self.split_parts(text)
        if part not in parts:
            raise MissingPartError(source, part, list(parts))
        return parts[part]

    def split_phrases(self, snippet: str) -> tuple[str, ...]:
        """Split ``snippet`` into toplevel phrases ending with the terminator.

        A trailing fragment without a terminator forms its own phrase. Blank
        lines between phrases are dropped.
        """

        terminator = self._config.phrase_terminator
        phrases: list[str] = []
        current: list[str] = []
        for line in snippet.splitlines():
            current.append(line)
            if line.rstrip().endswith(terminator):
                phrases.append(_trim_blank_lines(current))
                current = []
        tail = _trim_blank_lines(current)
        if tail:
            phrases.append(tail)
        return tuple(phrase for phrase in phrases if phrase)


def _trim_blank_lines(lines: Sequence[str]) -> str:
    """Join ``lines`` dropping leading and trailing blank lines."""

    start = 0
    end = len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return "\n".join(lines[start:end])


__all__ = ["CodeBlock", "MissingPartError", "SnippetExtractor", "iter_code_blocks"]
