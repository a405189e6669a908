"""Canonical import pipeline stages and their ordering rules."""

from __future__ import annotations

from enum import IntEnum


class ImportStage(IntEnum):
    """Pipeline stage. The integer value is the stage's step number."""

    IDLE = 0
    READING = 1
    PARSING = 2
    IMPORTING = 3
    INDEXING = 4
    COMPLETED = 5

    @property
    def step_number(self) -> int:
        return int(self)

    @classmethod
    def total_steps(cls) -> int:
        """Number of real steps (idle is not counted)."""
        return len(cls) - 1

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @property
    def is_quantitative(self) -> bool:
        """True for stages that report a measurable fraction."""
        return self in (ImportStage.PARSING, ImportStage.IMPORTING)

    @property
    def is_terminal(self) -> bool:
        return self is ImportStage.COMPLETED


_TITLES = {
    ImportStage.IDLE: "Ready",
    ImportStage.READING: "Reading File",
    ImportStage.PARSING: "Parsing CSV Data",
    ImportStage.IMPORTING: "Importing to Database",
    ImportStage.INDEXING: "Rebuilding Indexes",
    ImportStage.COMPLETED: "Import Complete",
}

_DESCRIPTIONS = {
    ImportStage.IDLE: "Ready to import",
    ImportStage.READING: "Reading and validating CSV file structure",
    ImportStage.PARSING: "Processing CSV data with parallel workers",
    ImportStage.IMPORTING: "Writing records to database in batches",
    ImportStage.INDEXING: "Optimizing database for queries",
    ImportStage.COMPLETED: "Import finished successfully",
}

_ICONS = {
    ImportStage.IDLE: "circle",
    ImportStage.READING: "doc.text",
    ImportStage.PARSING: "cpu",
    ImportStage.IMPORTING: "cylinder.split.1x2",
    ImportStage.INDEXING: "arrow.triangle.2.circlepath",
    ImportStage.COMPLETED: "checkmark.circle.fill",
}


def can_advance(current: ImportStage, target: ImportStage) -> bool:
    """Whether a stage-advancing update may move ``current`` to ``target``.

    Advancing is only ever forward. Re-entering the current stage is allowed
    for the indeterminate stages (reading, indexing), where it just replaces
    the payload. Completed is terminal; only a reset or a new start leaves it.

    Args:
        current: Stage the run is in.
        target: Stage the update wants to move to.

    Returns:
        True if the transition keeps the observed stage sequence in
        canonical order.
    """
    if target is ImportStage.IDLE or current.is_terminal:
        return False
    if target > current:
        return True
    return target == current and not target.is_quantitative


def can_reenter(
    current: ImportStage, target: ImportStage, current_progress: float, new_progress: float
) -> bool:
    """Whether a quantitative stage may be re-entered with a fresh payload.

    Producers may enter parsing or importing with a placeholder total and
    re-enter once the real total is known. The re-entry is accepted only when
    it does not lower the overall progress.
    """
    return current is target and target.is_quantitative and new_progress >= current_progress


def can_refine(current: ImportStage, target: ImportStage) -> bool:
    """Stage-refining updates apply only while already in their stage."""
    return current is target
