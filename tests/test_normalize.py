# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for transcript normalization."""

from __future__ import annotations

from pathlib import Path

from snipbuild.config.models import NormalizeConfig, Substitution
from snipbuild.core.models import RawEvaluation
from snipbuild.normalize import TranscriptNormalizer

WARNINGS = """\
File "snippet.ml", line 3, characters 4-5:
Warning 26 [unused-var]: unused variable y.
File "snippet.ml", line 1, characters 4-5:
Warning 26 [unused-var]: unused variable x.
val f : int -> int = <fun>
"""


def raw(stdout: str, *, stderr: str = "", phrases: tuple[str, ...] = ("x;;",), workdir: str | None = None) -> RawEvaluation:
    return RawEvaluation(phrases=phrases, stdout=stdout, stderr=stderr, returncode=0, workdir=workdir)


def test_line_endings_and_trailing_whitespace() -> None:
    normalizer = TranscriptNormalizer()

    assert normalizer.normalize_text("- : int = 2   \r\n\r\n") == "- : int = 2"


def test_workdir_and_root_become_placeholders(tmp_path: Path) -> None:
    root = tmp_path / "book"
    normalizer = TranscriptNormalizer(root=root)

    text = normalizer.normalize_text(
        f'File "/scratch/run-42/snippet.ml", line 1\nsee {root}/ch01/ex.ml',
        workdir="/scratch/run-42",
    )

    assert text == 'File "$WORKDIR/snippet.ml", line 1\nsee $ROOT/ch01/ex.ml'


def test_volatile_tokens_are_masked() -> None:
    text = TranscriptNormalizer().normalize_text(
        "at 2024-05-01T10:11:12Z block 0x7ffee4b0 pid 4242 in /tmp/ocaml_123/x.ml",
    )

    assert text == "at <timestamp> block 0x<addr> pid <pid> in $TMP"


def test_user_substitutions_apply_after_builtins() -> None:
    config = NormalizeConfig(substitutions=[Substitution(pattern=r"OCaml version \S+", replacement="OCaml version X")])

    assert TranscriptNormalizer(config).normalize_text("OCaml version 5.1.0") == "OCaml version X"


def test_adjacent_diagnostics_are_sorted_as_blocks() -> None:
    text = TranscriptNormalizer().normalize_text(WARNINGS)

    assert text.splitlines() == [
        'File "snippet.ml", line 1, characters 4-5:',
        "Warning 26 [unused-var]: unused variable x.",
        'File "snippet.ml", line 3, characters 4-5:',
        "Warning 26 [unused-var]: unused variable y.",
        "val f : int -> int = <fun>",
    ]


def test_ordinary_output_keeps_its_order() -> None:
    text = "- : int = 4\n- : int = 2\n"

    assert TranscriptNormalizer().normalize_text(text) == "- : int = 4\n- : int = 2"
    unsorted = TranscriptNormalizer(NormalizeConfig(sort_diagnostics=False)).normalize_text(WARNINGS)
    assert unsorted.splitlines()[0] == 'File "snippet.ml", line 3, characters 4-5:'


def test_continuation_lines_stay_with_their_block() -> None:
    text = (
        'File "snippet.ml", line 2, characters 8-9:\n'
        "2 | let b = a + 1\n"
        "            ^\n"
        "Error: Unbound value a\n"
        'File "snippet.ml", line 1, characters 0-3:\n'
        "Warning 32: unused value c.\n"
    )

    lines = TranscriptNormalizer().normalize_text(text).splitlines()

    assert lines[0] == 'File "snippet.ml", line 1, characters 0-3:'
    assert lines[2:] == [
        'File "snippet.ml", line 2, characters 8-9:',
        "2 | let b = a + 1",
        "            ^",
        "Error: Unbound value a",
    ]


def test_single_phrase_gets_whole_output() -> None:
    transcript = TranscriptNormalizer().normalize(raw("- : int = 2\n"))

    assert [(segment.input, segment.output) for segment in transcript.segments] == [("x;;", "- : int = 2")]
    assert transcript.exit_status == 0


def test_delimiter_splits_output_per_phrase() -> None:
    normalizer = TranscriptNormalizer(segment_delimiter="%%")

    transcript = normalizer.normalize(
        raw("val x : int = 1\n%%\n- : int = 2\n%%\n", stderr="Warning: late\n", phrases=("let x = 1;;", "x + 1;;")),
    )

    assert [segment.output for segment in transcript.segments] == ["val x : int = 1", "- : int = 2\nWarning: late"]


def test_mismatched_delimiters_collapse_to_one_segment() -> None:
    normalizer = TranscriptNormalizer(segment_delimiter="%%")

    transcript = normalizer.normalize(raw("a\nb\n", phrases=("1;;", "2;;", "3;;")))

    assert len(transcript.segments) == 1
    assert transcript.segments[0].input == "1;;\n2;;\n3;;"
    assert transcript.segments[0].output == "a\nb"


def test_normalization_is_idempotent(tmp_path: Path) -> None:
    normalizer = TranscriptNormalizer(root=tmp_path)
    once = normalizer.normalize_text(WARNINGS + f"\n{tmp_path}/x at 0xdeadbeef\n")

    assert normalizer.normalize_text(once) == once
