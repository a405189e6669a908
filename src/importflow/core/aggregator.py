"""Derive one normalized completion fraction from stage + stage payload.

Every real stage (reading through completed) owns an equal slice of
``1 / total_steps``. The current stage contributes its full base (all earlier
slices) plus its intrinsic fraction of its own slice when it has one.

Example: parsing (step 2) at 450,000 / 1,000,000 records gives
``(1 + 0.45) / 5 == 0.29``.
"""

from __future__ import annotations

from typing import Optional

from importflow.core.batch import BatchInfo
from importflow.core.snapshot import StageSnapshot
from importflow.core.stages import ImportStage


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def base_progress(stage: ImportStage) -> float:
    """Progress credited for all stages before ``stage``."""
    if stage is ImportStage.IDLE:
        return 0.0
    return (stage.step_number - 1) / ImportStage.total_steps()


def intrinsic_fraction(detail: StageSnapshot) -> Optional[float]:
    """Stage-local completion ratio, or None when indeterminate."""
    fraction = detail.quantitative_progress
    if fraction is None:
        return None
    return clamp01(fraction)


def overall_progress(stage: ImportStage, detail: StageSnapshot) -> float:
    """Overall fraction for ``stage`` with payload ``detail``.

    Indeterminate stages contribute only their base. Completed is always 1.0.
    """
    if stage is ImportStage.COMPLETED:
        return 1.0
    if stage is ImportStage.IDLE:
        return 0.0
    fraction = intrinsic_fraction(detail) or 0.0
    # (steps_done + fraction) / total keeps 0.29 exact for the 45% parse case
    return clamp01((stage.step_number - 1 + fraction) / ImportStage.total_steps())


def batch_progress(batch: BatchInfo, per_file_progress: float) -> float:
    """Batch-wide fraction: finished files plus the current file's share.

    Outside batch mode this is the per-file value unchanged.
    """
    if not batch.is_batch_import:
        return clamp01(per_file_progress)
    done_files = max(0, min(batch.current_file_index, batch.total_files))
    return clamp01((done_files + clamp01(per_file_progress)) / batch.total_files)
