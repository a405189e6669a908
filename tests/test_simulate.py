"""Tests for the simulated import engine."""

from __future__ import annotations

import threading
import time

import pytest

from importflow.core.progress_core import ImportProgressCore, ProgressSnapshot
from importflow.core.stages import ImportStage
from importflow.simulate import (
    INCREMENTAL_INDEX_THRESHOLD,
    CancelledError,
    SimulatedFile,
    run_simulated_import,
    start_simulated_import,
)


def _distinct_stages(snapshots: list[ProgressSnapshot]) -> list[ImportStage]:
    stages: list[ImportStage] = []
    for s in sorted(snapshots, key=lambda s: s.version):
        if not stages or stages[-1] is not s.current_stage:
            stages.append(s.current_stage)
    return stages


def test_single_file_run_completes() -> None:
    core = ImportProgressCore()
    seen: list[ProgressSnapshot] = []
    lock = threading.Lock()

    def record(snapshot: ProgressSnapshot) -> None:
        with lock:
            seen.append(snapshot)

    core.on_published(record)
    imported = run_simulated_import(
        core, [SimulatedFile("vehicles.csv", 12_345)], workers=4, batch_size=1_000, chunk_size=500
    )

    assert imported == 12_345
    snap = core.snapshot
    assert snap.current_stage is ImportStage.COMPLETED
    assert snap.overall_progress == 1.0
    assert snap.current_file_name == "vehicles.csv"
    assert _distinct_stages(seen) == [
        ImportStage.READING,
        ImportStage.PARSING,
        ImportStage.IMPORTING,
        ImportStage.INDEXING,
        ImportStage.COMPLETED,
    ]
    progress = [s.overall_progress for s in sorted(seen, key=lambda s: s.version)]
    assert progress == sorted(progress)


def test_parsing_reaches_total_despite_out_of_order_reports() -> None:
    core = ImportProgressCore()
    parsed: list[int] = []
    lock = threading.Lock()

    def track(snapshot: ProgressSnapshot) -> None:
        if snapshot.current_stage is ImportStage.PARSING:
            with lock:
                parsed.append(snapshot.stage_detail.processed_records)

    core.on_published(track)
    run_simulated_import(core, [SimulatedFile("a.csv", 10_000)], workers=8, chunk_size=100)
    assert max(parsed) == 10_000


def test_batch_run_tracks_files_and_batch_progress() -> None:
    core = ImportProgressCore()
    seen: list[ProgressSnapshot] = []
    lock = threading.Lock()

    def record(snapshot: ProgressSnapshot) -> None:
        with lock:
            seen.append(snapshot)

    core.on_published(record)
    files = [SimulatedFile(f"file{i}.csv", 2_000) for i in range(1, 4)]
    imported = run_simulated_import(core, files, workers=2, batch_size=500, chunk_size=250)

    assert imported == 6_000
    ordered = sorted(seen, key=lambda s: s.version)
    assert all(s.is_batch_import for s in ordered)
    assert {s.current_file_name for s in ordered} >= {"file1.csv", "file2.csv", "file3.csv"}
    batch = [s.batch_progress for s in ordered]
    assert batch == sorted(batch)
    assert core.snapshot.current_stage is ImportStage.COMPLETED
    assert core.snapshot.batch_progress == 1.0


def test_large_file_uses_incremental_indexing(monkeypatch: pytest.MonkeyPatch) -> None:
    import importflow.simulate as simulate

    monkeypatch.setattr(simulate, "INCREMENTAL_INDEX_THRESHOLD", 100)
    core = ImportProgressCore()
    texts: list[str] = []

    def record(snapshot: ProgressSnapshot) -> None:
        if snapshot.current_stage is ImportStage.INDEXING:
            texts.append(snapshot.stage_status_text)

    core.on_published(record)
    run_simulated_import(core, [SimulatedFile("big.csv", 1_000)], batch_size=100, chunk_size=100)
    assert texts[-1] == "Updating statistics (incremental mode - much faster!)"
    assert INCREMENTAL_INDEX_THRESHOLD == 50_000_000


def test_reset_cancels_running_import() -> None:
    core = ImportProgressCore()
    results: list[bool] = []
    done = threading.Event()

    def on_done(completed: bool) -> None:
        results.append(completed)
        done.set()

    thread = start_simulated_import(
        core,
        [SimulatedFile("slow.csv", 100_000)],
        on_done=on_done,
        workers=2,
        chunk_size=1_000,
        batch_size=1_000,
        step_delay_s=0.01,
    )
    deadline = time.time() + 2.0
    while not core.snapshot.is_importing and time.time() < deadline:
        time.sleep(0.005)
    core.reset()

    assert done.wait(timeout=5.0)
    thread.join(timeout=5.0)
    assert results == [False]
    assert core.snapshot.current_stage is ImportStage.IDLE
    assert core.snapshot.overall_progress == 0.0


def test_invalid_arguments() -> None:
    core = ImportProgressCore()
    with pytest.raises(ValueError):
        run_simulated_import(core, [])
    with pytest.raises(ValueError):
        run_simulated_import(core, [SimulatedFile("a.csv", 10)], batch_size=0)


def test_cancelled_error_when_epoch_goes_stale() -> None:
    core = ImportProgressCore()
    calls = 0

    def reset_on_parsing(snapshot: ProgressSnapshot) -> None:
        nonlocal calls
        if snapshot.current_stage is ImportStage.PARSING and calls == 0:
            calls += 1
            core.reset()

    core.on_published(reset_on_parsing)
    with pytest.raises(CancelledError):
        run_simulated_import(core, [SimulatedFile("a.csv", 1_000)], chunk_size=100)
    assert core.snapshot.current_stage is ImportStage.IDLE
