"""CLI demo: run a simulated bulk import and log its progress.

Run:
    python -m importflow --files 3 --records 250000 --workers 8
"""

from __future__ import annotations

import argparse
import time

from importflow.core.config import ProgressConfig
from importflow.core.monitor import ProgressMonitor
from importflow.core.progress_core import ImportProgressCore, ProgressSnapshot
from importflow.core.stages import ImportStage
from importflow.core.utils.logging import get_log_file_path, get_logger, setup_logging
from importflow.simulate import SimulatedFile, start_simulated_import

logger = get_logger("importflow")


def _log_snapshot(snapshot: ProgressSnapshot) -> None:
    prefix = ""
    if snapshot.is_batch_import:
        prefix = (
            f"[{snapshot.file_position} {snapshot.current_file_name}, "
            f"batch {snapshot.batch_progress:6.1%}] "
        )
    logger.info(
        f"{prefix}{snapshot.overall_progress:6.1%} "
        f"step {snapshot.step_number}/{snapshot.total_steps} {snapshot.stage_title}: "
        f"{snapshot.stage_status_text}"
    )


def _log_stage(old: ImportStage, new: ImportStage) -> None:
    logger.info(f"--- {old.title} -> {new.title}: {new.description}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulated bulk import progress demo")
    parser.add_argument("--files", type=int, default=1, help="Number of input files")
    parser.add_argument("--records", type=int, default=1_000_000, help="Records per file")
    parser.add_argument("--workers", type=int, default=4, help="Parser threads")
    parser.add_argument("--batch-size", type=int, default=50_000, help="Records per database batch")
    parser.add_argument("--chunk-size", type=int, default=25_000, help="Records per parser work item")
    parser.add_argument("--delay", type=float, default=0.01, help="Seconds per simulated work item")
    parser.add_argument("--log-level", type=str, default="INFO")
    parser.add_argument(
        "--trace", action="store_true", help="Trace every ignored update on the console"
    )
    args = parser.parse_args()

    config = ProgressConfig.load()
    if args.trace:
        config.data.trace = True
    setup_logging(level=args.log_level, trace=config.data.trace)
    logger.debug(f"logging to {get_log_file_path()}")

    core = ImportProgressCore(config=config.data)
    monitor = ProgressMonitor(core)
    monitor.snapshot_changed.connect(_log_snapshot)
    monitor.stage_changed.connect(_log_stage)
    monitor.attach()

    files = [SimulatedFile(name=f"file{i + 1}.csv", records=args.records) for i in range(args.files)]
    thread = start_simulated_import(
        core,
        files,
        workers=args.workers,
        batch_size=args.batch_size,
        chunk_size=args.chunk_size,
        step_delay_s=args.delay,
    )

    interval = config.data.monitor_poll_interval_s
    try:
        while thread.is_alive():
            monitor.poll()
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.warning("interrupted, resetting import")
        core.reset()
        thread.join()
    while monitor.poll():
        pass
    monitor.detach()


if __name__ == "__main__":
    main()
