"""Deliver published snapshots on the consumer's own thread.

Producers publish snapshots from whatever thread they run on. The monitor
queues them without blocking and a consumer-side timer (a GUI timer, an
asyncio loop callback, or a plain loop calling ``poll()``) drains the queue
and emits psygnal signals, so display code never runs on a worker thread.
"""

from __future__ import annotations

import queue
from typing import Callable, List, Optional

from psygnal import Signal

from importflow.core.progress_core import ImportProgressCore, ProgressSnapshot
from importflow.core.stages import ImportStage
from importflow.core.utils.logging import get_logger

logger = get_logger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], object]


class ProgressMonitor:
    """Consumer-side adapter for an ImportProgressCore.

    Signals:
        snapshot_changed: Every delivered snapshot (ProgressSnapshot).
        stage_changed: Stage transitions (old ImportStage, new ImportStage).
        finished: A run reached completed (ProgressSnapshot).
    """

    snapshot_changed = Signal(object)
    stage_changed = Signal(object, object)
    finished = Signal(object)

    def __init__(self, core: ImportProgressCore, *, max_per_tick: Optional[int] = None) -> None:
        self._core = core
        self._max_per_tick = max_per_tick or core.config.monitor_max_per_tick
        self._q: "queue.Queue[ProgressSnapshot]" = queue.Queue()
        self._latest: ProgressSnapshot = core.snapshot
        self._timer: Optional[object] = None
        self._attached = False

    @property
    def latest(self) -> ProgressSnapshot:
        """Last snapshot delivered to this consumer."""
        return self._latest

    def attach(self) -> None:
        if self._attached:
            return
        self._core.on_published(self._enqueue)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        self._core.remove_published_handler(self._enqueue)
        self._attached = False

    def start(
        self,
        *,
        ui_timer_factory: TimerFactory,
        poll_interval_s: Optional[float] = None,
    ) -> None:
        """Attach to the core and let ``ui_timer_factory`` drive ``poll()``.

        ``ui_timer_factory(interval, callback)`` must return an object with a
        ``cancel()`` method, e.g. a NiceGUI ``ui.timer``.
        """
        self.attach()
        self._stop_timer()
        interval = poll_interval_s or self._core.config.monitor_poll_interval_s
        self._timer = ui_timer_factory(interval, self.poll)

    def stop(self) -> None:
        self._stop_timer()
        self.detach()

    def poll(self) -> int:
        """Drain queued snapshots and emit signals. Returns how many were delivered."""
        drained: List[ProgressSnapshot] = []
        while len(drained) < self._max_per_tick:
            try:
                drained.append(self._q.get_nowait())
            except queue.Empty:
                break

        delivered = 0
        for snapshot in sorted(drained, key=lambda s: s.version):
            if snapshot.version <= self._latest.version:
                continue
            self._deliver(snapshot)
            delivered += 1
        return delivered

    def _enqueue(self, snapshot: ProgressSnapshot) -> None:
        self._q.put(snapshot)

    def _deliver(self, snapshot: ProgressSnapshot) -> None:
        previous = self._latest
        self._latest = snapshot
        self._emit(self.snapshot_changed, snapshot)
        if snapshot.current_stage is not previous.current_stage:
            self._emit(self.stage_changed, previous.current_stage, snapshot.current_stage)
            if snapshot.current_stage is ImportStage.COMPLETED:
                self._emit(self.finished, snapshot)

    def _emit(self, signal, *args) -> None:
        try:
            signal.emit(*args)
        except Exception:
            logger.exception("Error in progress monitor handler")

    def _stop_timer(self) -> None:
        if self._timer is None:
            return
        cancel = getattr(self._timer, "cancel", None)
        if callable(cancel):
            cancel()
        self._timer = None
