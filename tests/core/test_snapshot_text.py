"""Tests for stage payload status text and fractions."""

from __future__ import annotations

import pytest

from importflow.core.formatting import (
    floor_percentage,
    format_count,
    format_duration,
    records_per_second,
)
from importflow.core.snapshot import (
    CompletedProgress,
    IdleProgress,
    ImportingProgress,
    IndexingProgress,
    ParsingProgress,
    ReadingProgress,
)
from importflow.core.stages import ImportStage


def test_payload_tags_match_stage() -> None:
    assert IdleProgress.stage is ImportStage.IDLE
    assert ReadingProgress().stage is ImportStage.READING
    assert ParsingProgress().stage is ImportStage.PARSING
    assert ImportingProgress().stage is ImportStage.IMPORTING
    assert IndexingProgress().stage is ImportStage.INDEXING
    assert CompletedProgress().stage is ImportStage.COMPLETED


def test_parsing_text_with_percentage() -> None:
    p = ParsingProgress(processed_records=450_000, total_records=1_000_000, active_workers=16)
    assert p.progress_text == "Parsed 450,000 / 1,000,000 records (45%) • 16 workers"
    assert p.quantitative_progress == pytest.approx(0.45)


def test_parsing_text_without_total_omits_percentage() -> None:
    p = ParsingProgress(processed_records=1_200, total_records=0, active_workers=1)
    assert p.progress_text == "Parsed 1,200 / 0 records • 1 workers"
    assert p.quantitative_progress is None


def test_importing_text() -> None:
    p = ImportingProgress(
        current_batch=64, total_batches=128, records_processed=3_200_000, total_records=6_400_000
    )
    assert p.progress_text == "Batch 64 / 128 (50%) • 3,200,000 / 6,400,000 records (50%)"
    assert p.quantitative_progress == pytest.approx(0.5)


def test_importing_text_with_zero_denominators() -> None:
    p = ImportingProgress(current_batch=0, total_batches=0, records_processed=0, total_records=0)
    assert p.progress_text == "Batch 0 / 0 • 0 / 0 records"
    assert p.quantitative_progress is None


def test_indexing_text_is_verbatim() -> None:
    assert IndexingProgress("Creating index idx_year...").progress_text == "Creating index idx_year..."
    assert IndexingProgress().progress_text == "Rebuilding database indexes..."
    assert IndexingProgress().quantitative_progress is None


def test_completed_text() -> None:
    p = CompletedProgress(duration_seconds=120.0, records_imported=3_200_000, records_per_second=26_666)
    assert p.progress_text == "Imported 3,200,000 records in 2m 0s • 26,666 records/sec"


def test_idle_and_reading_text() -> None:
    assert IdleProgress().progress_text == "Ready to start import"
    assert ReadingProgress().progress_text == "Preparing import..."


def test_formatting_helpers() -> None:
    assert format_count(1_000_000) == "1,000,000"
    assert format_count(16) == "16"
    assert floor_percentage(2, 3) == 66
    assert floor_percentage(5, 0) is None
    # float division would round 99.999... up to 100
    assert floor_percentage(10**17 - 1, 10**17) == 99
    assert format_duration(125.9) == "2m 5s"
    assert format_duration(59.99) == "0m 59s"


def test_records_per_second_floors_and_guards_zero() -> None:
    assert records_per_second(3_200_000, 120.0) == 26_666
    assert records_per_second(500, 0.0) == 500
    assert records_per_second(0, 10.0) == 0
