"""Tests for overall and batch progress derivation."""

from __future__ import annotations

import pytest

from importflow.core import aggregator
from importflow.core.batch import BatchCoordinator, BatchInfo
from importflow.core.snapshot import (
    CompletedProgress,
    IdleProgress,
    ImportingProgress,
    IndexingProgress,
    ParsingProgress,
    ReadingProgress,
)
from importflow.core.stages import ImportStage


def test_worked_example_parsing() -> None:
    """450,000 of 1,000,000 records while parsing is 0.29 overall."""
    detail = ParsingProgress(450_000, 1_000_000, 16)
    assert aggregator.overall_progress(ImportStage.PARSING, detail) == pytest.approx(0.29)


def test_base_progress_per_stage() -> None:
    assert aggregator.base_progress(ImportStage.IDLE) == 0.0
    assert aggregator.base_progress(ImportStage.READING) == 0.0
    assert aggregator.base_progress(ImportStage.IMPORTING) == pytest.approx(0.4)
    assert aggregator.base_progress(ImportStage.INDEXING) == pytest.approx(0.6)


def test_indeterminate_stages_contribute_base_only() -> None:
    assert aggregator.overall_progress(ImportStage.READING, ReadingProgress()) == 0.0
    assert aggregator.overall_progress(ImportStage.INDEXING, IndexingProgress()) == pytest.approx(0.6)
    assert aggregator.overall_progress(ImportStage.PARSING, ParsingProgress(10, 0, 1)) == pytest.approx(0.2)
    assert aggregator.overall_progress(
        ImportStage.IMPORTING, ImportingProgress(3, 0, 0, 0)
    ) == pytest.approx(0.4)


def test_completed_and_idle_are_fixed() -> None:
    assert aggregator.overall_progress(ImportStage.COMPLETED, CompletedProgress()) == 1.0
    assert aggregator.overall_progress(ImportStage.IDLE, IdleProgress()) == 0.0


def test_overshooting_fraction_is_clamped() -> None:
    detail = ImportingProgress(current_batch=12, total_batches=10)
    assert aggregator.intrinsic_fraction(detail) == 1.0
    assert aggregator.overall_progress(ImportStage.IMPORTING, detail) == pytest.approx(0.6)


def test_batch_progress_combines_file_position() -> None:
    batch = BatchInfo(total_files=4, current_file_index=2, current_file_name="c.csv")
    assert aggregator.batch_progress(batch, 0.5) == pytest.approx(0.625)
    assert aggregator.batch_progress(batch, 0.0) == pytest.approx(0.5)


def test_batch_progress_single_file_is_per_file() -> None:
    assert aggregator.batch_progress(BatchCoordinator.single_file(), 0.29) == pytest.approx(0.29)
    assert aggregator.batch_progress(BatchInfo(), 0.0) == 0.0
