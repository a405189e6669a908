"""UI-agnostic import progress state machine."""

from importflow.core.batch import BatchInfo
from importflow.core.progress_core import (
    ImportProgressCore,
    ImportReporter,
    ProgressSnapshot,
    RunState,
)
from importflow.core.stages import ImportStage

__all__ = [
    "BatchInfo",
    "ImportProgressCore",
    "ImportReporter",
    "ImportStage",
    "ProgressSnapshot",
    "RunState",
]
