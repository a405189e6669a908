"""Thread-safe progress state machine for bulk imports.

Producers (reader, parser workers, batch writer, indexer) call the update
methods from any thread. Every update is applied under one lock and replaces
the whole ``RunState``, so stage and stage payload always change together.
Each accepted update publishes a new immutable ``ProgressSnapshot``; readers
take ``core.snapshot`` without locking, or register a listener.

Calls that arrive in the wrong stage, move a counter backwards, or carry an
epoch from a run that has since been reset are ignored without raising.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from importflow.core import aggregator
from importflow.core.batch import BatchCoordinator, BatchInfo
from importflow.core.config import ProgressConfigData
from importflow.core.formatting import records_per_second
from importflow.core.snapshot import (
    CompletedProgress,
    IdleProgress,
    ImportingProgress,
    IndexingProgress,
    ParsingProgress,
    ReadingProgress,
    StageSnapshot,
)
from importflow.core.stages import ImportStage, can_advance, can_reenter, can_refine
from importflow.core.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class RunState:
    """Everything the core knows about the current run.

    Attributes:
        stage: Current pipeline stage.
        detail: Payload for ``stage``; its tag always equals ``stage``.
        overall_progress: Per-file completion fraction in [0, 1].
        is_importing: True between a start and completion/reset.
        batch: File position within the run.
        start_timestamp: Clock reading at start, None when idle.
        total_records: Records announced when parsing began.
        total_batches: Batches announced when importing began.
        epoch: Run generation; bumped by every start and reset.
        file_pending: A later batch file was announced and its pipeline has
            not started yet, so the stage order may restart at reading.
    """

    stage: ImportStage = ImportStage.IDLE
    detail: StageSnapshot = field(default_factory=IdleProgress)
    overall_progress: float = 0.0
    is_importing: bool = False
    batch: BatchInfo = field(default_factory=BatchInfo)
    start_timestamp: Optional[float] = None
    total_records: int = 0
    total_batches: int = 0
    epoch: int = 0
    file_pending: bool = False

    def __post_init__(self) -> None:
        if self.detail.stage is not self.stage:
            raise ValueError(
                f"stage payload {type(self.detail).__name__} does not match stage {self.stage.name}"
            )

    @property
    def has_started(self) -> bool:
        return self.start_timestamp is not None


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Read-only view published to the consumer.

    Attributes:
        overall_progress: Per-file completion fraction in [0, 1].
        current_stage: Current pipeline stage.
        stage_status_text: Human-readable status for the stage.
        stage_quantitative_fraction: Stage-local fraction, None if indeterminate.
        is_importing: Whether a run is in progress.
        is_batch_import: Whether the run spans more than one file.
        current_file_index: Zero-based file index (meaningful while importing).
        total_files: Files in the run.
        current_file_name: Name of the current file.
        stage_detail: The raw stage payload.
        batch_progress: Batch-wide fraction; equals overall_progress for
            single-file runs.
        epoch: Run generation the snapshot belongs to.
        version: Publication counter, strictly increasing per core.
    """

    overall_progress: float
    current_stage: ImportStage
    stage_status_text: str
    stage_quantitative_fraction: Optional[float]
    is_importing: bool
    is_batch_import: bool
    current_file_index: int
    total_files: int
    current_file_name: str
    stage_detail: StageSnapshot
    batch_progress: float
    epoch: int
    version: int

    @classmethod
    def from_run_state(cls, state: RunState, version: int) -> "ProgressSnapshot":
        # a newly announced batch file has not made any progress yet
        per_file = 0.0 if state.file_pending else state.overall_progress
        return cls(
            overall_progress=state.overall_progress,
            current_stage=state.stage,
            stage_status_text=state.detail.progress_text,
            stage_quantitative_fraction=aggregator.intrinsic_fraction(state.detail),
            is_importing=state.is_importing,
            is_batch_import=state.batch.is_batch_import,
            current_file_index=state.batch.current_file_index,
            total_files=state.batch.total_files,
            current_file_name=state.batch.current_file_name,
            stage_detail=state.detail,
            batch_progress=aggregator.batch_progress(state.batch, per_file),
            epoch=state.epoch,
            version=version,
        )

    @property
    def step_number(self) -> int:
        return self.current_stage.step_number

    @property
    def total_steps(self) -> int:
        return ImportStage.total_steps()

    @property
    def stage_title(self) -> str:
        return self.current_stage.title

    @property
    def stage_description(self) -> str:
        return self.current_stage.description

    @property
    def file_position(self) -> str:
        """``"File i of n"`` for batch runs, "" otherwise."""
        return BatchInfo(
            self.total_files, self.current_file_index, self.current_file_name
        ).display_position


PublishedHandler = Callable[[ProgressSnapshot], None]
_Transition = Callable[[RunState], Optional[RunState]]


def _non_negative(value: int) -> int:
    return max(0, int(value))


class ImportProgressCore:
    """Owns the RunState of one import session.

    Args:
        config: Status texts and tracing options. Defaults to
            ``ProgressConfigData()``.
        clock: Monotonic seconds source used for the run timer.
    """

    def __init__(
        self,
        *,
        config: Optional[ProgressConfigData] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._config = config or ProgressConfigData()
        self._clock = clock
        self._lock = threading.Lock()
        self._state = RunState()
        self._version = 0
        self._snapshot = ProgressSnapshot.from_run_state(self._state, self._version)
        self._published_handlers: List[PublishedHandler] = []

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> ProgressSnapshot:
        """Latest published snapshot. Never blocks."""
        return self._snapshot

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._state.epoch

    @property
    def config(self) -> ProgressConfigData:
        return self._config

    def on_published(self, handler: PublishedHandler) -> None:
        """Register a callback invoked with every new snapshot.

        Handlers run on the producer thread that caused the update, after the
        lock is released. Use ``ProgressMonitor`` to move delivery onto the
        consumer's own thread.
        """
        if handler not in self._published_handlers:
            self._published_handlers.append(handler)

    def remove_published_handler(self, handler: PublishedHandler) -> None:
        if handler in self._published_handlers:
            self._published_handlers.remove(handler)

    def reporter(self, epoch: Optional[int] = None) -> "ImportReporter":
        """Producer handle whose calls are tagged with ``epoch`` (default: current)."""
        return ImportReporter(self, self.epoch if epoch is None else epoch)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def start_import(self) -> int:
        """Begin a single-file run. Returns the new run epoch."""
        return self._start(BatchCoordinator.single_file())

    def start_batch_import(self, total_files: int) -> int:
        """Begin a run over ``total_files`` files. Returns the new run epoch."""
        return self._start(BatchCoordinator.start(total_files))

    def reset(self, *, epoch: Optional[int] = None) -> bool:
        """Return to idle, discarding the run. Stale-epoch resets are ignored."""

        def transition(state: RunState) -> Optional[RunState]:
            return RunState(epoch=state.epoch + 1, batch=BatchCoordinator.cleared())

        return self._apply("reset", epoch, transition)

    def complete_import(self, records_imported: int, *, epoch: Optional[int] = None) -> bool:
        """Finalize the run with statistics; no-op if no run was started."""
        records = _non_negative(records_imported)

        def transition(state: RunState) -> Optional[RunState]:
            if state.start_timestamp is None:
                return None
            if not can_advance(state.stage, ImportStage.COMPLETED):
                return None
            duration = max(0.0, self._clock() - state.start_timestamp)
            detail = CompletedProgress(
                duration_seconds=duration,
                records_imported=records,
                records_per_second=records_per_second(records, duration),
            )
            return replace(
                state,
                stage=ImportStage.COMPLETED,
                detail=detail,
                overall_progress=1.0,
                is_importing=False,
                file_pending=False,
            )

        return self._apply("complete_import", epoch, transition)

    # ------------------------------------------------------------------
    # Batch position
    # ------------------------------------------------------------------

    def update_current_file(self, index: int, name: str, *, epoch: Optional[int] = None) -> bool:
        """Point the run at batch file ``index``. Stage and progress are untouched."""

        def transition(state: RunState) -> Optional[RunState]:
            if not state.is_importing:
                return None
            batch = BatchCoordinator.move_to_file(state.batch, int(index), str(name))
            if batch is None:
                return None
            moved_on = batch.current_file_index > state.batch.current_file_index
            return replace(state, batch=batch, file_pending=state.file_pending or moved_on)

        return self._apply("update_current_file", epoch, transition)

    # ------------------------------------------------------------------
    # Stage-advancing updates
    # ------------------------------------------------------------------

    def update_to_reading(self, *, epoch: Optional[int] = None) -> bool:
        return self._advance(
            "update_to_reading", epoch, ImportStage.READING, lambda state: ReadingProgress()
        )

    def update_to_parsing(
        self, total_records: int, worker_count: int, *, epoch: Optional[int] = None
    ) -> bool:
        total = _non_negative(total_records)
        workers = _non_negative(worker_count)
        return self._advance(
            "update_to_parsing",
            epoch,
            ImportStage.PARSING,
            lambda state: ParsingProgress(0, total, workers),
            total_records=total,
        )

    def update_to_importing(self, total_batches: int, *, epoch: Optional[int] = None) -> bool:
        batches = _non_negative(total_batches)
        return self._advance(
            "update_to_importing",
            epoch,
            ImportStage.IMPORTING,
            lambda state: ImportingProgress(0, batches, 0, state.total_records),
            total_batches=batches,
        )

    def update_to_indexing(self, *, epoch: Optional[int] = None) -> bool:
        text = self._config.indexing_text
        return self._advance(
            "update_to_indexing", epoch, ImportStage.INDEXING, lambda state: IndexingProgress(text)
        )

    # ------------------------------------------------------------------
    # Stage-refining updates
    # ------------------------------------------------------------------

    def update_parsing_progress(
        self, processed_records: int, worker_count: int, *, epoch: Optional[int] = None
    ) -> bool:
        processed = _non_negative(processed_records)
        workers = _non_negative(worker_count)

        def refine(state: RunState) -> Optional[StageSnapshot]:
            current = state.detail
            if not isinstance(current, ParsingProgress) or processed < current.processed_records:
                return None
            return ParsingProgress(processed, state.total_records, workers)

        return self._refine("update_parsing_progress", epoch, ImportStage.PARSING, refine)

    def update_importing_progress(
        self, current_batch: int, records_processed: int, *, epoch: Optional[int] = None
    ) -> bool:
        batch_no = _non_negative(current_batch)
        records = _non_negative(records_processed)

        def refine(state: RunState) -> Optional[StageSnapshot]:
            current = state.detail
            if not isinstance(current, ImportingProgress):
                return None
            if batch_no < current.current_batch or records < current.records_processed:
                return None
            return ImportingProgress(batch_no, state.total_batches, records, state.total_records)

        return self._refine("update_importing_progress", epoch, ImportStage.IMPORTING, refine)

    def update_indexing_operation(self, text: str, *, epoch: Optional[int] = None) -> bool:
        description = str(text)
        return self._refine(
            "update_indexing_operation",
            epoch,
            ImportStage.INDEXING,
            lambda state: IndexingProgress(description),
        )

    def update_incremental_indexing(self, *, epoch: Optional[int] = None) -> bool:
        text = self._config.incremental_indexing_text
        return self._refine(
            "update_incremental_indexing",
            epoch,
            ImportStage.INDEXING,
            lambda state: IndexingProgress(text),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self, batch: BatchInfo) -> int:
        with self._lock:
            previous = self._state
            self._state = RunState(
                stage=ImportStage.READING,
                detail=ReadingProgress(),
                overall_progress=aggregator.base_progress(ImportStage.READING),
                is_importing=True,
                batch=batch,
                start_timestamp=self._clock(),
                epoch=previous.epoch + 1,
            )
            snapshot = self._publish_locked()
        logger.info(
            f"import started: epoch={snapshot.epoch} total_files={snapshot.total_files}"
            f" (was {previous.stage.name})"
        )
        self._notify(snapshot)
        return snapshot.epoch

    def _advance(
        self,
        op: str,
        epoch: Optional[int],
        target: ImportStage,
        make_detail: Callable[[RunState], StageSnapshot],
        **totals: int,
    ) -> bool:
        def transition(state: RunState) -> Optional[RunState]:
            if not state.is_importing:
                return None
            updated = replace(state, **totals)
            detail = make_detail(updated)
            progress = aggregator.overall_progress(target, detail)
            if state.file_pending:
                # a new batch file restarts the per-file pipeline
                allowed = target is not ImportStage.IDLE
            else:
                allowed = can_advance(state.stage, target) or can_reenter(
                    state.stage, target, state.overall_progress, progress
                )
            if not allowed:
                return None
            return replace(
                updated,
                stage=target,
                detail=detail,
                overall_progress=progress,
                file_pending=False,
            )

        return self._apply(op, epoch, transition)

    def _refine(
        self,
        op: str,
        epoch: Optional[int],
        stage: ImportStage,
        make_detail: Callable[[RunState], Optional[StageSnapshot]],
    ) -> bool:
        def transition(state: RunState) -> Optional[RunState]:
            if not can_refine(state.stage, stage):
                return None
            detail = make_detail(state)
            if detail is None:
                return None
            return replace(
                state,
                detail=detail,
                overall_progress=aggregator.overall_progress(stage, detail),
            )

        return self._apply(op, epoch, transition)

    def _apply(self, op: str, epoch: Optional[int], transition: _Transition) -> bool:
        with self._lock:
            current = self._state
            if epoch is not None and epoch != current.epoch:
                self._trace(f"{op}: dropped stale epoch {epoch} (current {current.epoch})")
                return False
            new_state = transition(current)
            if new_state is None:
                self._trace(f"{op}: ignored in stage {current.stage.name}")
                return False
            self._state = new_state
            snapshot = self._publish_locked()

        if new_state.stage is not current.stage:
            logger.info(
                f"stage {current.stage.name} -> {new_state.stage.name} "
                f"(epoch {new_state.epoch}, progress {new_state.overall_progress:.3f})"
            )
        self._notify(snapshot)
        return True

    def _publish_locked(self) -> ProgressSnapshot:
        self._version += 1
        self._snapshot = ProgressSnapshot.from_run_state(self._state, self._version)
        return self._snapshot

    def _notify(self, snapshot: ProgressSnapshot) -> None:
        for handler in list(self._published_handlers):
            try:
                handler(snapshot)
            except Exception:
                logger.exception("Error in published handler")

    def _trace(self, message: str) -> None:
        if self._config.trace:
            logger.debug(message)


class ImportReporter:
    """Producer-side handle bound to one run epoch.

    Background workers hold a reporter instead of the core; once the run is
    reset or restarted, everything they report is dropped by the core.
    """

    def __init__(self, core: ImportProgressCore, epoch: int) -> None:
        self._core = core
        self.epoch = epoch

    @property
    def is_current(self) -> bool:
        """False once the run this reporter belongs to has been reset or replaced."""
        return self._core.epoch == self.epoch

    def update_current_file(self, index: int, name: str) -> bool:
        return self._core.update_current_file(index, name, epoch=self.epoch)

    def update_to_reading(self) -> bool:
        return self._core.update_to_reading(epoch=self.epoch)

    def update_to_parsing(self, total_records: int, worker_count: int) -> bool:
        return self._core.update_to_parsing(total_records, worker_count, epoch=self.epoch)

    def update_parsing_progress(self, processed_records: int, worker_count: int) -> bool:
        return self._core.update_parsing_progress(processed_records, worker_count, epoch=self.epoch)

    def update_to_importing(self, total_batches: int) -> bool:
        return self._core.update_to_importing(total_batches, epoch=self.epoch)

    def update_importing_progress(self, current_batch: int, records_processed: int) -> bool:
        return self._core.update_importing_progress(
            current_batch, records_processed, epoch=self.epoch
        )

    def update_to_indexing(self) -> bool:
        return self._core.update_to_indexing(epoch=self.epoch)

    def update_indexing_operation(self, text: str) -> bool:
        return self._core.update_indexing_operation(text, epoch=self.epoch)

    def update_incremental_indexing(self) -> bool:
        return self._core.update_incremental_indexing(epoch=self.epoch)

    def complete_import(self, records_imported: int) -> bool:
        return self._core.complete_import(records_imported, epoch=self.epoch)

    def reset(self) -> bool:
        return self._core.reset(epoch=self.epoch)
