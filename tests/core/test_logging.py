"""Tests for logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from importflow.core.utils.logging import (
    get_log_file_path,
    get_logger,
    is_trace_logger,
    setup_logging,
)


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = root.handlers[:]
    try:
        setup_logging(level="WARNING", log_dir=tmp_path)
        log_path = get_log_file_path()
        assert log_path == tmp_path / "importflow.log"

        get_logger("importflow.test").debug("debug goes to file only")
        for handler in root.handlers:
            handler.flush()
        assert "debug goes to file only" in log_path.read_text(encoding="utf-8")

        # reconfiguring replaces handlers instead of stacking them
        setup_logging(level="INFO", log_dir=tmp_path)
        assert len(root.handlers) == 2
    finally:
        for handler in root.handlers[:]:
            handler.close()
            root.removeHandler(handler)
        for handler in saved:
            root.addHandler(handler)


def test_get_logger_default_name() -> None:
    assert get_logger().name == "importflow"
    assert get_logger("x.y").name == "x.y"


def test_trace_records_reach_console_only_when_enabled(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """With trace on, progress-core DEBUG lines show on the console above its level."""
    root = logging.getLogger()
    saved = root.handlers[:]
    try:
        setup_logging(level="WARNING", log_dir=tmp_path, trace=True)
        get_logger("importflow.core.progress_core").debug("dropped stale epoch 1")
        get_logger("importflow.simulate").debug("not a trace line")
        err = capsys.readouterr().err
        assert "dropped stale epoch 1" in err
        assert "not a trace line" not in err

        setup_logging(level="WARNING", log_dir=tmp_path, trace=False)
        get_logger("importflow.core.progress_core").debug("hidden trace")
        assert "hidden trace" not in capsys.readouterr().err
    finally:
        for handler in root.handlers[:]:
            handler.close()
            root.removeHandler(handler)
        for handler in saved:
            root.addHandler(handler)


def test_is_trace_logger() -> None:
    assert is_trace_logger("importflow.core.progress_core")
    assert is_trace_logger("importflow.core.monitor")
    assert not is_trace_logger("importflow.core.progress_core_extra")
    assert not is_trace_logger("importflow.simulate")
