# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Run a target's action in an isolated working directory."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Final

from ..core.errors import ToolchainTimeout, ToolchainUnavailable
from ..core.models import TIMEOUT_EXIT_STATUS, ActionKind, EvaluationFailure, FailureKind, RawEvaluation, Target
from ..extract import MissingPartError, SnippetExtractor
from .toolchain import Toolchain

LOGGER = logging.getLogger(__name__)

WORKDIR_PREFIX: Final[str] = "snipbuild-"


def stage_inputs(target: Target, root: Path, workdir: Path) -> None:
    """Copy the declared inputs of ``target`` into ``workdir``.

    Only declared inputs are staged, keeping their root-relative layout, so an
    evaluation never sees files it did not declare.
    """

    for relative in target.inputs:
        destination = workdir / relative
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(root / relative, destination)


class Evaluator:
    """Execute target actions through a :class:`Toolchain`."""

    def __init__(
        self,
        toolchain: Toolchain,
        *,
        extractor: SnippetExtractor | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialise the evaluator.

        Args:
            toolchain: Capability used to run snippets.
            extractor: Locator for annotated snippet regions.
            timeout: Wall-clock limit applied to every toolchain invocation.
        """

        self._toolchain = toolchain
        self._extractor = extractor or SnippetExtractor()
        self._timeout = timeout

    def snippet_for(self, target: Target, root: Path) -> str:
        """Return the snippet body ``target`` evaluates.

        Raises:
            MissingPartError: If the selected part does not exist.
        """

        text = (root / target.primary_input).read_text(encoding="utf-8")
        if target.action.kind is ActionKind.COPY and target.action.part is None:
            return text
        return self._extractor.extract(target.primary_input, text, target.action.part)

    def evaluate(self, target: Target, *, root: Path) -> RawEvaluation | EvaluationFailure:
        """Run ``target``'s action and capture its raw output.

        A non-zero exit status is returned as a :class:`RawEvaluation`; whether
        it counts as a failure depends on the action and is decided by the
        caller.

        Args:
            target: Target to evaluate; its inputs must be materialized.
            root: Project root the inputs are relative to.

        Returns:
            RawEvaluation | EvaluationFailure: Captured output, or the failure
            that prevented the toolchain from completing.
        """

        try:
            snippet = self.snippet_for(target, root)
        except MissingPartError as exc:
            return EvaluationFailure(kind=FailureKind.MISSING_PART, message=str(exc))

        kind = target.action.kind
        if kind is ActionKind.COPY:
            return RawEvaluation(phrases=(snippet,), stdout="", stderr="", returncode=0)

        phrases = self._extractor.split_phrases(snippet) if kind is ActionKind.TOPLEVEL else (snippet,)
        with tempfile.TemporaryDirectory(prefix=WORKDIR_PREFIX) as tmp:
            workdir = Path(tmp)
            stage_inputs(target, root, workdir)
            LOGGER.debug("evaluating %s (%s) in %s", target.id, kind.value, workdir)
            try:
                outcome = self._toolchain.run(
                    snippet,
                    kind,
                    self._timeout,
                    workdir=workdir,
                    command=target.action.command,
                )
            except ToolchainTimeout as exc:
                partial = RawEvaluation(
                    phrases=phrases or (snippet,),
                    stdout=exc.stdout,
                    stderr=exc.stderr,
                    returncode=TIMEOUT_EXIT_STATUS,
                    workdir=str(workdir),
                )
                return EvaluationFailure(kind=FailureKind.TIMEOUT, message=str(exc), raw=partial)
            except ToolchainUnavailable as exc:
                return EvaluationFailure(kind=FailureKind.TOOLCHAIN_UNAVAILABLE, message=str(exc))
        return RawEvaluation(
            phrases=phrases or (snippet,),
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            returncode=outcome.returncode,
            workdir=str(workdir),
        )


__all__ = ["Evaluator", "stage_inputs"]
