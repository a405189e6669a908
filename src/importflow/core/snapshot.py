"""Per-stage progress payloads.

Each payload is a frozen dataclass tagged with the stage it belongs to, so a
payload can never be paired with the wrong stage. Together they form the
``StageSnapshot`` union.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from importflow.core.formatting import format_count, format_duration, with_percentage
from importflow.core.stages import ImportStage

DEFAULT_INDEXING_TEXT = "Rebuilding database indexes..."
INCREMENTAL_INDEXING_TEXT = "Updating statistics (incremental mode - much faster!)"


@dataclass(frozen=True, slots=True)
class IdleProgress:
    stage: ClassVar[ImportStage] = ImportStage.IDLE

    @property
    def progress_text(self) -> str:
        return "Ready to start import"

    @property
    def quantitative_progress(self) -> Optional[float]:
        return None


@dataclass(frozen=True, slots=True)
class ReadingProgress:
    stage: ClassVar[ImportStage] = ImportStage.READING

    @property
    def progress_text(self) -> str:
        return "Preparing import..."

    @property
    def quantitative_progress(self) -> Optional[float]:
        return None


@dataclass(frozen=True, slots=True)
class ParsingProgress:
    """Record-level progress reported by the parallel parsers.

    Attributes:
        processed_records: Records parsed so far.
        total_records: Records expected; 0 when unknown.
        active_workers: Parser workers currently running.
    """

    stage: ClassVar[ImportStage] = ImportStage.PARSING

    processed_records: int = 0
    total_records: int = 0
    active_workers: int = 0

    @property
    def progress_text(self) -> str:
        text = with_percentage(
            f"Parsed {format_count(self.processed_records)} / {format_count(self.total_records)} records",
            self.processed_records,
            self.total_records,
        )
        return f"{text} • {self.active_workers} workers"

    @property
    def quantitative_progress(self) -> Optional[float]:
        if self.total_records <= 0:
            return None
        return self.processed_records / self.total_records


@dataclass(frozen=True, slots=True)
class ImportingProgress:
    """Batch-level progress reported by the database writer.

    Attributes:
        current_batch: Batches written so far.
        total_batches: Batches expected; 0 when unknown.
        records_processed: Records written so far.
        total_records: Records expected (carried over from parsing).
    """

    stage: ClassVar[ImportStage] = ImportStage.IMPORTING

    current_batch: int = 0
    total_batches: int = 0
    records_processed: int = 0
    total_records: int = 0

    @property
    def progress_text(self) -> str:
        batch_part = with_percentage(
            f"Batch {self.current_batch} / {self.total_batches}",
            self.current_batch,
            self.total_batches,
        )
        record_part = with_percentage(
            f"{format_count(self.records_processed)} / {format_count(self.total_records)} records",
            self.records_processed,
            self.total_records,
        )
        return f"{batch_part} • {record_part}"

    @property
    def quantitative_progress(self) -> Optional[float]:
        if self.total_batches <= 0:
            return None
        return self.current_batch / self.total_batches


@dataclass(frozen=True, slots=True)
class IndexingProgress:
    stage: ClassVar[ImportStage] = ImportStage.INDEXING

    operation_description: str = DEFAULT_INDEXING_TEXT

    @property
    def progress_text(self) -> str:
        return self.operation_description

    @property
    def quantitative_progress(self) -> Optional[float]:
        return None


@dataclass(frozen=True, slots=True)
class CompletedProgress:
    """Final statistics of a finished import.

    Attributes:
        duration_seconds: Wall time from start to completion.
        records_imported: Records reported as imported.
        records_per_second: Floored import rate.
    """

    stage: ClassVar[ImportStage] = ImportStage.COMPLETED

    duration_seconds: float = 0.0
    records_imported: int = 0
    records_per_second: int = 0

    @property
    def progress_text(self) -> str:
        return (
            f"Imported {format_count(self.records_imported)} records in "
            f"{format_duration(self.duration_seconds)} • "
            f"{format_count(self.records_per_second)} records/sec"
        )

    @property
    def quantitative_progress(self) -> Optional[float]:
        return None


StageSnapshot = Union[
    IdleProgress,
    ReadingProgress,
    ParsingProgress,
    ImportingProgress,
    IndexingProgress,
    CompletedProgress,
]
