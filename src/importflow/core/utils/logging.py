"""
Logging setup for importflow.

- `setup_logging(...)` once at startup; calling it again reconfigures.
- `get_logger(__name__)` in every module.
- `trace=True` routes the per-update tracing of the progress core (dropped
  stale-epoch calls, out-of-order updates) to the console as well.

Handlers are attached to the *root logger* so a host application sees our
records. The rotating log file lives under the per-user config directory
(platformdirs, app name "importflow"), in a "logs" subfolder.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Union

from platformdirs import user_config_dir

# App name used for config/log paths; must match core/config.py.
_APP_NAME = "importflow"
_LOG_FILENAME = "importflow.log"

# Loggers whose DEBUG records are per-update traces.
TRACE_LOGGERS = ("importflow.core.progress_core", "importflow.core.monitor")

_LOG_FILE_PATH: Optional[Path] = None


class _ConsoleFilter(logging.Filter):
    """Pass records at or above ``level``, plus trace records when enabled."""

    def __init__(self, level: int, trace: bool) -> None:
        super().__init__()
        self.level = level
        self.trace = trace

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self.level:
            return True
        return self.trace and is_trace_logger(record.name)


def is_trace_logger(name: str) -> bool:
    return any(name == t or name.startswith(t + ".") for t in TRACE_LOGGERS)


def setup_logging(
    level: Union[str, int] = "INFO",
    max_bytes: int = 5_000_000,
    backup_count: int = 5,
    log_dir: Optional[Path] = None,
    trace: bool = False,
) -> None:
    """
    Configure root logging with a console and a rotating file handler.

    The file captures everything at DEBUG; the console shows ``level`` and
    above. Pair ``trace`` with ``ProgressConfigData.trace``: the core only
    emits trace records when its config asks for them, and this decides
    whether they also reach the console.

    Parameters
    ----------
    level:
        Logging level for console (e.g. "DEBUG", "INFO").
    max_bytes:
        Max size in bytes for rotating log file.
    backup_count:
        Number of rotated log files to keep.
    log_dir:
        Override for the log folder. Defaults to the platformdirs config
        directory + "logs".
    trace:
        Show progress-core DEBUG traces on the console regardless of ``level``.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    # handlers do the level filtering
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG)
    console.addFilter(_ConsoleFilter(level, trace))
    console.setFormatter(
        logging.Formatter(fmt="[%(levelname)s] %(name)s:%(funcName)s:%(lineno)d: %(message)s")
    )
    root.addHandler(console)

    global _LOG_FILE_PATH
    if log_dir is None:
        log_dir = Path(user_config_dir(_APP_NAME)) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    _LOG_FILE_PATH = log_dir / _LOG_FILENAME

    file_handler = logging.handlers.RotatingFileHandler(
        filename=_LOG_FILE_PATH,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(file_handler)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger by name; the package logger 'importflow' when name is None."""
    return logging.getLogger(name or _APP_NAME)


def get_log_file_path() -> Optional[Path]:
    """Path of the active log file, or None before `setup_logging()`."""
    return _LOG_FILE_PATH
