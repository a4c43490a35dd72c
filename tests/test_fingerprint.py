# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for content fingerprints."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

from snipbuild.cache.fingerprint import fingerprint
from snipbuild.core.models import Action, ActionKind, Target


def test_fingerprint_is_stable_and_ignores_mtime(tmp_path: Path, write: Callable[[str, str], Path]) -> None:
    source = write("ex.ml", "1 + 1;;\n")
    target = Target(id="ex", inputs=("ex.ml",), output="ex.json")

    first = fingerprint(target, tmp_path)
    os.utime(source, (0, 0))

    assert fingerprint(target, tmp_path) == first
    assert len(first) == 64


def test_fingerprint_tracks_content_action_and_context(tmp_path: Path, write: Callable[[str, str], Path]) -> None:
    write("ex.ml", "1 + 1;;\n")
    target = Target(id="ex", inputs=("ex.ml",), output="ex.json")
    base = fingerprint(target, tmp_path)

    typecheck = target.model_copy(update={"action": Action(kind=ActionKind.TYPECHECK)})
    assert fingerprint(typecheck, tmp_path) != base
    assert fingerprint(target, tmp_path, context={"command": ["ocaml"]}) != base

    write("ex.ml", "2 + 2;;\n")
    assert fingerprint(target, tmp_path) != base


def test_fingerprint_ignores_target_name_and_output(tmp_path: Path, write: Callable[[str, str], Path]) -> None:
    write("ex.ml", "1 + 1;;\n")

    one = Target(id="one", inputs=("ex.ml",), output="one.json")
    two = Target(id="two", inputs=("ex.ml",), output="two.json")

    assert fingerprint(one, tmp_path) == fingerprint(two, tmp_path)


def test_fingerprint_separates_input_boundaries(tmp_path: Path, write: Callable[[str, str], Path]) -> None:
    write("a.ml", "ab")
    write("b.ml", "c")
    write("c.ml", "a")
    write("d.ml", "bc")

    left = Target(id="l", inputs=("a.ml", "b.ml"), output="l.json")
    right = Target(id="r", inputs=("c.ml", "d.ml"), output="r.json")

    assert fingerprint(left, tmp_path) != fingerprint(right, tmp_path)
