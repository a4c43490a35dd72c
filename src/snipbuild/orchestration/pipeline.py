# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Per-target pipeline: fingerprint, cache lookup, evaluate, normalize, persist."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from threading import Lock

from ..cache.fingerprint import fingerprint
from ..cache.store import FingerprintStore
from ..config.models import Config
from ..core.models import (
    ActionKind,
    CacheStatus,
    EvaluationFailure,
    FailureKind,
    JsonValue,
    Target,
    TargetResult,
    TargetState,
    Transcript,
)
from ..evaluation.evaluator import Evaluator
from ..graph import BuildGraph
from ..normalize import TranscriptNormalizer
from ..serialization import write_output

LOGGER = logging.getLogger(__name__)


def classify(target: Target, transcript: Transcript) -> EvaluationFailure | None:
    """Return the failure implied by ``transcript``'s exit status, if any.

    Args:
        target: Target whose action states whether an error is expected.
        transcript: Normalized transcript of the evaluation.

    Returns:
        EvaluationFailure | None: ``None`` when the exit status matches the
        action's expectation.
    """

    status = transcript.exit_status
    if target.action.expect_error:
        if status == 0:
            return EvaluationFailure(
                kind=FailureKind.UNEXPECTED_SUCCESS,
                message=f"{target.id} was expected to fail but exited 0",
                transcript=transcript,
            )
        return None
    if status != 0:
        return EvaluationFailure(
            kind=FailureKind.NON_ZERO_EXIT,
            message=f"{target.id} exited with status {status}",
            transcript=transcript,
        )
    return None


def fingerprint_context(target: Target, config: Config) -> dict[str, JsonValue]:
    """Return the settings that shape ``target``'s transcript.

    They are folded into the fingerprint so changing the toolchain command or
    normalization rules invalidates affected entries.
    """

    if target.action.kind is ActionKind.COPY:
        return {}
    command = target.action.command or config.toolchain.command_for(target.action.kind)
    return {
        "command": list(command) if command else None,
        "extension": config.toolchain.extension,
        "env": dict(sorted(config.toolchain.env.items())),
        "segment_delimiter": config.toolchain.segment_delimiter,
        "extract": config.extract.model_dump(mode="json"),
        "normalize": config.normalize.model_dump(mode="json"),
    }


@dataclass(slots=True)
class TargetPipeline:
    """Drive one target from fingerprint to persisted output."""

    graph: BuildGraph
    root: Path
    config: Config
    store: FingerprintStore
    evaluator: Evaluator
    normalizer: TranscriptNormalizer
    use_cache: bool = True
    evaluations: int = 0
    _counter_lock: Lock = field(default_factory=Lock)

    def process(self, target_id: str) -> TargetResult:
        """Produce ``target_id``'s output, reusing a cached transcript when possible.

        Dependencies must already be ``DONE`` so their outputs are fully
        materialized before the fingerprint reads them.

        Args:
            target_id: Identifier of the target to build.

        Returns:
            TargetResult: ``DONE`` or ``FAILED`` result for the target.
        """

        target = self.graph.target(target_id)
        digest = fingerprint(target, self.root, context=fingerprint_context(target, self.config))

        if self.use_cache:
            entry = self.store.lookup(digest)
            if entry is not None:
                LOGGER.debug("cache hit for %s (%s)", target_id, digest[:12])
                write_output(target, entry.transcript, self.root)
                return TargetResult(
                    target_id=target_id,
                    state=TargetState.DONE,
                    fingerprint=digest,
                    cached=True,
                    transcript=entry.transcript,
                )

        with self._counter_lock:
            self.evaluations += 1
        evaluation = self.evaluator.evaluate(target, root=self.root)
        if isinstance(evaluation, EvaluationFailure):
            if evaluation.raw is not None:
                evaluation = replace(evaluation, transcript=self.normalizer.normalize(evaluation.raw), raw=None)
            return self._failed(target, digest, evaluation)

        transcript = self.normalizer.normalize(evaluation)
        failure = classify(target, transcript)
        if failure is not None:
            return self._failed(target, digest, failure)

        status = CacheStatus.EXPECTED_FAILURE if target.action.expect_error else CacheStatus.SUCCESS
        entry = self.store.record(digest, transcript, status, target=target_id)
        if entry.transcript != transcript:
            LOGGER.warning(
                "%s: fresh transcript differs from cache entry %s recorded by %s",
                target_id,
                digest[:12],
                entry.target,
            )
        write_output(target, transcript, self.root)
        return TargetResult(
            target_id=target_id,
            state=TargetState.DONE,
            fingerprint=digest,
            transcript=transcript,
        )

    def _failed(self, target: Target, digest: str, failure: EvaluationFailure) -> TargetResult:
        # a failed target must not leave a previous build's output for the renderer
        (self.root / target.output).unlink(missing_ok=True)
        LOGGER.debug("%s failed: %s", target.id, failure.message)
        return TargetResult(
            target_id=target.id,
            state=TargetState.FAILED,
            fingerprint=digest,
            transcript=failure.transcript,
            failure=failure,
        )


__all__ = ["TargetPipeline", "classify", "fingerprint_context"]
