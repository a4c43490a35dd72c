# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Keyed single-flight execution."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from threading import Lock
from typing import Generic, TypeVar

ResultT = TypeVar("ResultT")


class SingleFlight(Generic[ResultT]):
    """Guarantee at most one concurrent call per key.

    Callers arriving while a call for the same key is in flight block until
    it finishes and receive the same result (or exception). Once the call
    completes the key is forgotten.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._calls: dict[str, Future[ResultT]] = {}

    def in_flight(self, key: str) -> bool:
        """Return ``True`` while a call for ``key`` is running."""

        with self._lock:
            return key in self._calls

    def do(self, key: str, func: Callable[[], ResultT]) -> tuple[ResultT, bool]:
        """Run ``func`` for ``key`` unless an identical call is already running.

        Args:
            key: Deduplication key.
            func: Zero-argument callable producing the result.

        Returns:
            tuple[ResultT, bool]: The result and ``True`` when it was shared
            from another caller's execution.
        """

        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if future is None:
                future = Future()
                self._calls[key] = future
        if not leader:
            return future.result(), True

        try:
            result = func()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result, False
        finally:
            with self._lock:
                self._calls.pop(key, None)


__all__ = ["SingleFlight"]
