# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the fingerprint store."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from snipbuild.cache.store import FingerprintStore, read_entry
from snipbuild.core.errors import CacheCorruption
from snipbuild.core.models import CacheStatus, Segment, Transcript

FP_A = "a" * 64
FP_B = "b" * 64


def make_transcript(output: str, exit_status: int = 0) -> Transcript:
    return Transcript(segments=(Segment(input="1 + 1;;", output=output),), exit_status=exit_status)


def test_record_is_append_only(tmp_path: Path) -> None:
    store = FingerprintStore(tmp_path / "cache")

    first = store.record(FP_A, make_transcript("- : int = 2"), CacheStatus.SUCCESS, target="ex")
    second = store.record(FP_A, make_transcript("something else"), CacheStatus.SUCCESS, target="other")

    assert second is first
    assert store.lookup(FP_A) is first
    assert store.lookup(FP_B) is None
    assert FP_A in store
    assert len(store) == 1


def test_flush_then_load_round_trips_entries(tmp_path: Path) -> None:
    cache_dir = tmp_path / "cache"
    store = FingerprintStore(cache_dir)
    store.record(FP_A, make_transcript("- : int = 2"), CacheStatus.SUCCESS, target="ex")
    store.record(FP_B, make_transcript("Error", exit_status=2), CacheStatus.EXPECTED_FAILURE, target="bad")

    assert not store.entry_path(FP_A).exists()
    assert store.flush() == 2
    assert store.flush() == 0
    assert store.entry_path(FP_A) == cache_dir / "aa" / f"{FP_A}.json"

    reloaded = FingerprintStore(cache_dir)
    assert reloaded.load() == 2
    entry = reloaded.lookup(FP_B)
    assert entry is not None
    assert entry.status is CacheStatus.EXPECTED_FAILURE
    assert entry.transcript.exit_status == 2
    assert entry.target == "bad"


def test_incremental_persistence_writes_on_record(tmp_path: Path) -> None:
    store = FingerprintStore(tmp_path / "cache", persist_incrementally=True)

    store.record(FP_A, make_transcript("- : int = 2"), CacheStatus.SUCCESS, target="ex")

    assert store.entry_path(FP_A).is_file()
    assert store.flush() == 0


def test_memory_only_store_never_touches_disk(tmp_path: Path) -> None:
    store = FingerprintStore(None)

    store.record(FP_A, make_transcript("- : int = 2"), CacheStatus.SUCCESS, target="ex")

    assert store.flush() == 0
    assert store.load() == 0
    assert store.lookup(FP_A) is not None


def test_corrupt_entries_are_misses(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    cache_dir = tmp_path / "cache"
    store = FingerprintStore(cache_dir)
    store.record(FP_A, make_transcript("- : int = 2"), CacheStatus.SUCCESS, target="ex")
    store.flush()
    broken = cache_dir / "bb" / f"{FP_B}.json"
    broken.parent.mkdir(parents=True)
    broken.write_text("{not json", encoding="utf-8")

    reloaded = FingerprintStore(cache_dir)
    with caplog.at_level("WARNING"):
        assert reloaded.load() == 1

    assert reloaded.lookup(FP_B) is None
    assert "corrupt cache entry" in caplog.text
    with pytest.raises(CacheCorruption):
        read_entry(broken)


def test_entry_under_wrong_name_is_corrupt(tmp_path: Path) -> None:
    store = FingerprintStore(tmp_path / "cache")
    store.record(FP_A, make_transcript("- : int = 2"), CacheStatus.SUCCESS, target="ex")
    store.flush()
    moved = tmp_path / "cache" / "bb" / f"{FP_B}.json"
    moved.parent.mkdir()
    store.entry_path(FP_A).rename(moved)

    with pytest.raises(CacheCorruption, match="does not match"):
        read_entry(moved)


def test_prune_removes_unreachable_entries(tmp_path: Path) -> None:
    cache_dir = tmp_path / "cache"
    store = FingerprintStore(cache_dir)
    store.record(FP_A, make_transcript("- : int = 2"), CacheStatus.SUCCESS, target="ex")
    store.record(FP_B, make_transcript("- : int = 4"), CacheStatus.SUCCESS, target="ex")
    store.flush()

    removed = store.prune([FP_A])

    assert removed == [FP_B]
    assert FP_B not in store
    assert store.entry_path(FP_A).is_file()
    assert not (cache_dir / "bb").exists()


def test_concurrent_records_agree_on_one_entry(tmp_path: Path) -> None:
    store = FingerprintStore(tmp_path / "cache")
    barrier = threading.Barrier(8)
    entries = []
    lock = threading.Lock()

    def worker(index: int) -> None:
        barrier.wait()
        entry = store.record(FP_A, make_transcript(f"out {index}"), CacheStatus.SUCCESS, target=f"t{index}")
        with lock:
            entries.append(entry)

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len({id(entry) for entry in entries}) == 1
    assert store.flush() == 1
