"""Multi-file batch tracking."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True, slots=True)
class BatchInfo:
    """Which file of a (possibly multi-file) run is being processed.

    Attributes:
        total_files: Files in the run. 1 for a single-file import, 0 when idle.
        current_file_index: Zero-based index of the current file.
        current_file_name: Display name of the current file ("" until known).
    """

    total_files: int = 0
    current_file_index: int = 0
    current_file_name: str = ""

    @property
    def is_batch_import(self) -> bool:
        return self.total_files > 1

    @property
    def display_position(self) -> str:
        """One-based ``"File i of n"`` label for batch runs, "" otherwise."""
        if not self.is_batch_import:
            return ""
        return f"File {self.current_file_index + 1} of {self.total_files}"


class BatchCoordinator:
    """Pure transitions on BatchInfo.

    File changes never touch the pipeline stage or the per-file progress; they
    only say which file the per-file pipeline calls now refer to.
    """

    @staticmethod
    def single_file() -> BatchInfo:
        return BatchInfo(total_files=1)

    @staticmethod
    def start(total_files: int) -> BatchInfo:
        return BatchInfo(total_files=max(int(total_files), 1))

    @staticmethod
    def move_to_file(batch: BatchInfo, index: int, name: str) -> Optional[BatchInfo]:
        """Return the batch pointed at file ``index``, or None if the move is stale.

        Indices outside ``[0, total_files)`` and moves back to an earlier file
        are rejected. Re-announcing the current index only updates the name.
        """
        if not 0 <= index < batch.total_files:
            return None
        if index < batch.current_file_index:
            return None
        return replace(batch, current_file_index=index, current_file_name=name)

    @staticmethod
    def cleared() -> BatchInfo:
        return BatchInfo()
