"""Simulated import engine driving an ImportProgressCore from worker threads.

Stands in for the real CSV reader / parser pool / database writer / indexer.
It does no I/O; it only reproduces their progress-reporting pattern: a pool of
parser threads reporting concurrently (and out of order), a sequential batch
writer and an index rebuild, for one file or a batch of files.
"""

from __future__ import annotations

import math
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from importflow.core.progress_core import ImportProgressCore, ImportReporter
from importflow.core.utils.logging import get_logger

logger = get_logger(__name__)

# Above this many records the indexer only refreshes statistics.
INCREMENTAL_INDEX_THRESHOLD = 50_000_000

_INDEX_NAMES = (
    "idx_vehicles_year",
    "idx_vehicles_classification",
    "idx_vehicles_geo",
    "idx_vehicles_fuel",
    "idx_vehicles_model_year",
)


class CancelledError(Exception):
    """Raised inside the engine once its run epoch is no longer current."""


@dataclass(frozen=True)
class SimulatedFile:
    """One input file of a simulated run.

    Args:
        name: Display name reported to the progress core.
        records: Number of data records in the file.
    """

    name: str
    records: int


def _check_current(reporter: ImportReporter) -> None:
    if not reporter.is_current:
        raise CancelledError(f"run epoch {reporter.epoch} was reset")


def _parse(
    reporter: ImportReporter,
    records: int,
    *,
    workers: int,
    chunk_size: int,
    step_delay_s: float,
) -> None:
    reporter.update_to_parsing(records, workers)

    chunks: "queue.Queue[int]" = queue.Queue()
    for start in range(0, records, chunk_size):
        chunks.put(min(chunk_size, records - start))

    lock = threading.Lock()
    processed = 0

    def _worker() -> None:
        nonlocal processed
        while reporter.is_current:
            try:
                n = chunks.get_nowait()
            except queue.Empty:
                return
            if step_delay_s:
                time.sleep(step_delay_s)
            with lock:
                processed += n
                done = processed
            # reported outside the lock, so reports may arrive out of order
            reporter.update_parsing_progress(done, workers)

    threads = [
        threading.Thread(target=_worker, name=f"parser-{i}", daemon=True)
        for i in range(max(workers, 1))
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    _check_current(reporter)


def _write(
    reporter: ImportReporter,
    records: int,
    *,
    batch_size: int,
    step_delay_s: float,
) -> None:
    total_batches = math.ceil(records / batch_size) if records else 0
    reporter.update_to_importing(total_batches)
    for batch_no in range(1, total_batches + 1):
        _check_current(reporter)
        if step_delay_s:
            time.sleep(step_delay_s)
        reporter.update_importing_progress(batch_no, min(batch_no * batch_size, records))


def _index(reporter: ImportReporter, records: int, *, step_delay_s: float) -> None:
    reporter.update_to_indexing()
    if records >= INCREMENTAL_INDEX_THRESHOLD:
        reporter.update_incremental_indexing()
        return
    for name in _INDEX_NAMES:
        _check_current(reporter)
        reporter.update_indexing_operation(f"Creating index {name}...")
        if step_delay_s:
            time.sleep(step_delay_s)


def run_simulated_import(
    core: ImportProgressCore,
    files: Sequence[SimulatedFile],
    *,
    workers: int = 4,
    batch_size: int = 50_000,
    chunk_size: int = 10_000,
    step_delay_s: float = 0.0,
) -> int:
    """Run a complete simulated import on the calling thread.

    Starts a single-file run for one file and a batch run otherwise, then
    reports every pipeline stage for each file and completes the run.

    Args:
        core: Progress core to report into.
        files: Files to "import", in order.
        workers: Parser threads per file.
        batch_size: Records per database batch.
        chunk_size: Records per parser work item.
        step_delay_s: Sleep per work item, to make progress observable.

    Returns:
        Total records imported.

    Raises:
        CancelledError: The run was reset (or restarted) while in flight.
        ValueError: No files, or non-positive sizes.
    """
    if not files:
        raise ValueError("at least one file is required")
    if batch_size < 1 or chunk_size < 1:
        raise ValueError("batch_size and chunk_size must be positive")

    if len(files) > 1:
        epoch = core.start_batch_import(len(files))
    else:
        epoch = core.start_import()
    reporter = core.reporter(epoch)

    imported = 0
    for index, f in enumerate(files):
        _check_current(reporter)
        reporter.update_current_file(index, f.name)
        reporter.update_to_reading()
        logger.debug(f"file {index + 1}/{len(files)}: {f.name} ({f.records} records)")

        _parse(reporter, f.records, workers=workers, chunk_size=chunk_size, step_delay_s=step_delay_s)
        _write(reporter, f.records, batch_size=batch_size, step_delay_s=step_delay_s)
        _index(reporter, f.records, step_delay_s=step_delay_s)
        imported += f.records

    _check_current(reporter)
    reporter.complete_import(imported)
    logger.info(f"simulated import finished: {imported} records from {len(files)} file(s)")
    return imported


def start_simulated_import(
    core: ImportProgressCore,
    files: Sequence[SimulatedFile],
    *,
    on_done: Optional[Callable[[bool], None]] = None,
    **kwargs,
) -> threading.Thread:
    """Run ``run_simulated_import`` in a daemon thread.

    ``on_done`` receives True when the run completed and False when it was
    cancelled by a reset.
    """

    def _worker() -> None:
        completed = False
        try:
            run_simulated_import(core, files, **kwargs)
            completed = True
        except CancelledError as exc:
            logger.info(f"simulated import cancelled: {exc}")
        except Exception:  # pragma: no cover - surfaced to caller via log
            logger.exception("simulated import failed")
        if on_done:
            on_done(completed)

    t = threading.Thread(target=_worker, name="simulated-import", daemon=True)
    t.start()
    return t
