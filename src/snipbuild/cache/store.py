# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Fingerprint-keyed store of transcripts persisted between builds."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from threading import Lock
from typing import Final

from pydantic import ValidationError

from ..core.errors import CacheCorruption
from ..core.models import CacheEntry, CacheStatus, Transcript
from ..filesystem import atomic_write_text

LOGGER = logging.getLogger(__name__)

ENTRY_SUFFIX: Final[str] = ".json"
_PREFIX_LENGTH: Final[int] = 2


class FingerprintStore:
    """Append-only association of fingerprints with cache entries.

    The store is created per build invocation. ``load`` reads entries left by
    earlier runs, ``record`` appends new ones and ``flush`` persists whatever
    has not been written yet. Lookups are lock free; insertion of a given
    fingerprint is serialized by a dedicated lock so racing workers record it
    once and all observe the same entry.
    """

    def __init__(self, directory: Path | None, *, persist_incrementally: bool = False) -> None:
        """Initialise an empty store.

        Args:
            directory: Cache directory, or ``None`` for a memory-only store.
            persist_incrementally: Write each entry as soon as it is recorded
                instead of waiting for :meth:`flush`.
        """

        self._dir = directory
        self._persist_incrementally = persist_incrementally and directory is not None
        self._entries: dict[str, CacheEntry] = {}
        self._pending: set[str] = set()
        self._guard_lock = Lock()
        self._insert_locks: dict[str, Lock] = {}

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def directory(self) -> Path | None:
        return self._dir

    def entry_path(self, fingerprint: str) -> Path:
        """Return the file that holds the entry for ``fingerprint``."""

        if self._dir is None:
            raise RuntimeError("memory-only store has no entry paths")
        return self._dir / fingerprint[:_PREFIX_LENGTH] / f"{fingerprint}{ENTRY_SUFFIX}"

    def load(self) -> int:
        """Read every persisted entry, skipping corrupt ones.

        Returns:
            int: Number of entries loaded.
        """

        if self._dir is None or not self._dir.is_dir():
            return 0
        loaded = 0
        for path in sorted(self._dir.glob(f"*/*{ENTRY_SUFFIX}")):
            try:
                entry = read_entry(path)
            except CacheCorruption as exc:
                LOGGER.warning("%s; treating it as a cache miss", exc)
                continue
            self._entries.setdefault(entry.fingerprint, entry)
            loaded += 1
        LOGGER.debug("loaded %d cache entries from %s", loaded, self._dir)
        return loaded

    def lookup(self, fingerprint: str) -> CacheEntry | None:
        """Return the entry recorded for ``fingerprint`` or ``None`` on a miss."""

        return self._entries.get(fingerprint)

    def record(
        self,
        fingerprint: str,
        transcript: Transcript,
        status: CacheStatus,
        *,
        target: str,
    ) -> CacheEntry:
        """Associate ``transcript`` with ``fingerprint`` unless already present.

        A second call for the same fingerprint is a no-op that returns the
        entry recorded first.

        Args:
            fingerprint: Content fingerprint of the evaluated target.
            transcript: Normalized transcript produced by the evaluation.
            status: How the toolchain exited.
            target: Identifier of the target that produced the transcript.

        Returns:
            CacheEntry: The stored entry for ``fingerprint``.
        """

        with self._insertion_guard(fingerprint):
            existing = self._entries.get(fingerprint)
            if existing is not None:
                return existing
            entry = CacheEntry(
                fingerprint=fingerprint,
                transcript=transcript,
                status=status,
                created_at=datetime.now(UTC),
                target=target,
            )
            if self._persist_incrementally:
                self._write(entry)
            elif self._dir is not None:
                with self._guard_lock:
                    self._pending.add(fingerprint)
            self._entries[fingerprint] = entry
            return entry

    def flush(self) -> int:
        """Persist entries recorded since the last flush.

        Returns:
            int: Number of entries written.
        """

        with self._guard_lock:
            pending = sorted(self._pending)
            self._pending.clear()
        for fingerprint in pending:
            self._write(self._entries[fingerprint])
        return len(pending)

    def prune(self, reachable: Iterable[str]) -> list[str]:
        """Delete entries whose fingerprint is not in ``reachable``.

        Returns:
            list[str]: Fingerprints that were removed.
        """

        keep = set(reachable)
        removed = sorted(fingerprint for fingerprint in self._entries if fingerprint not in keep)
        for fingerprint in removed:
            del self._entries[fingerprint]
            with self._guard_lock:
                self._pending.discard(fingerprint)
            if self._dir is not None:
                self.entry_path(fingerprint).unlink(missing_ok=True)
        if self._dir is not None and self._dir.is_dir():
            for bucket in self._dir.iterdir():
                if bucket.is_dir() and not any(bucket.iterdir()):
                    bucket.rmdir()
        return removed

    def _write(self, entry: CacheEntry) -> None:
        atomic_write_text(self.entry_path(entry.fingerprint), entry.model_dump_json(indent=2) + "\n")

    @contextmanager
    def _insertion_guard(self, fingerprint: str) -> Iterator[None]:
        with self._guard_lock:
            lock = self._insert_locks.setdefault(fingerprint, Lock())
        with lock:
            yield


def read_entry(path: Path) -> CacheEntry:
    """Decode the cache entry stored at ``path``.

    Raises:
        CacheCorruption: If the file is unreadable, malformed, or stored under
            a name that does not match its fingerprint.
    """

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CacheCorruption(path, str(exc)) from exc
    try:
        entry = CacheEntry.model_validate_json(raw)
    except ValidationError as exc:
        raise CacheCorruption(path, f"{exc.error_count()} validation error(s)") from exc
    if path.stem != entry.fingerprint:
        raise CacheCorruption(path, "fingerprint does not match file name")
    return entry


__all__ = ["FingerprintStore", "read_entry"]
