"""Completion statistics and status-text helpers."""

from __future__ import annotations

import math
from typing import Optional


def format_count(value: int) -> str:
    """Render an integer with thousands separators, e.g. ``1,000,000``."""
    return f"{int(value):,}"


def floor_percentage(done: int, total: int) -> Optional[int]:
    """Floored percentage of ``done / total``, or None when total is not positive."""
    if total <= 0:
        return None
    return 100 * int(done) // int(total)


def with_percentage(text: str, done: int, total: int) -> str:
    """Append `` (NN%)`` to ``text`` when a percentage can be computed."""
    pct = floor_percentage(done, total)
    if pct is None:
        return text
    return f"{text} ({pct}%)"


def records_per_second(records_imported: int, duration_seconds: float) -> int:
    """Floored import rate.

    A zero (or negative, from a clock going backwards) duration is treated as
    an instantaneous import and yields ``records_imported``.
    """
    if duration_seconds <= 0:
        return int(records_imported)
    return math.floor(records_imported / duration_seconds)


def split_minutes_seconds(duration_seconds: float) -> tuple[int, int]:
    """Whole minutes and remaining whole seconds of a duration."""
    total = int(max(duration_seconds, 0.0))
    return total // 60, total % 60


def format_duration(duration_seconds: float) -> str:
    minutes, seconds = split_minutes_seconds(duration_seconds)
    return f"{minutes}m {seconds}s"
