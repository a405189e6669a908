# src/importflow/core/config.py
"""
Per-user config persistence for importflow (platformdirs + JSON).

Persisted items (schema v1):
- trace: bool                         (log every ignored/applied update at DEBUG)
- indexing_text: str                  (status text when indexing starts)
- incremental_indexing_text: str      (status text for incremental index updates)
- monitor_max_per_tick: int           (snapshots drained per ProgressMonitor.poll)
- monitor_poll_interval_s: float      (consumer timer interval)

Behavior:
- If config file missing or unreadable -> defaults are used
- If schema_version mismatches:
  - default: reset to defaults
  - optional: keep loaded but update version
- Optional "create_if_missing" flag to write defaults on first run
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from platformdirs import user_config_dir

from importflow.core.snapshot import DEFAULT_INDEXING_TEXT, INCREMENTAL_INDEXING_TEXT
from importflow.core.utils.logging import get_logger

logger = get_logger(__name__)

# Increment when you make a breaking change to the on-disk JSON schema.
SCHEMA_VERSION: int = 1

DEFAULT_TRACE: bool = False
DEFAULT_MONITOR_MAX_PER_TICK: int = 200
DEFAULT_MONITOR_POLL_INTERVAL_S: float = 0.1


@dataclass
class ProgressConfigData:
    """
    JSON-serializable config payload.

    Keep fields JSON-friendly (primitives only).
    """

    schema_version: int = SCHEMA_VERSION
    trace: bool = DEFAULT_TRACE
    indexing_text: str = DEFAULT_INDEXING_TEXT
    incremental_indexing_text: str = INCREMENTAL_INDEXING_TEXT
    monitor_max_per_tick: int = DEFAULT_MONITOR_MAX_PER_TICK
    monitor_poll_interval_s: float = DEFAULT_MONITOR_POLL_INTERVAL_S

    def __post_init__(self) -> None:
        if self.monitor_max_per_tick < 1:
            raise ValueError("monitor_max_per_tick must be at least 1")
        if self.monitor_poll_interval_s <= 0:
            raise ValueError("monitor_poll_interval_s must be positive")

    def to_json_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_json_dict(cls, d: Dict[str, Any]) -> "ProgressConfigData":
        """
        Tolerant loader:
        - ignores unknown keys
        - falls back to the default for any missing or invalid value
        """
        try:
            schema_version = int(d.get("schema_version", -1))
        except (TypeError, ValueError):
            schema_version = -1

        trace_raw = d.get("trace", DEFAULT_TRACE)
        trace = DEFAULT_TRACE
        if isinstance(trace_raw, bool):
            trace = trace_raw
        elif isinstance(trace_raw, str):
            trace = trace_raw.lower() in ("true", "1", "yes", "on")
        elif isinstance(trace_raw, (int, float)):
            trace = bool(trace_raw)

        indexing_text = _non_empty_str(d.get("indexing_text"), DEFAULT_INDEXING_TEXT)
        incremental_text = _non_empty_str(
            d.get("incremental_indexing_text"), INCREMENTAL_INDEXING_TEXT
        )

        max_per_tick = DEFAULT_MONITOR_MAX_PER_TICK
        try:
            value = int(d.get("monitor_max_per_tick", DEFAULT_MONITOR_MAX_PER_TICK))
            if value >= 1:
                max_per_tick = value
            else:
                logger.warning(f"Invalid monitor_max_per_tick {value}, using default")
        except (TypeError, ValueError):
            logger.warning("Unreadable monitor_max_per_tick, using default")

        interval = DEFAULT_MONITOR_POLL_INTERVAL_S
        try:
            value_f = float(d.get("monitor_poll_interval_s", DEFAULT_MONITOR_POLL_INTERVAL_S))
            if value_f > 0:
                interval = value_f
            else:
                logger.warning(f"Invalid monitor_poll_interval_s {value_f}, using default")
        except (TypeError, ValueError):
            logger.warning("Unreadable monitor_poll_interval_s, using default")

        return cls(
            schema_version=schema_version,
            trace=trace,
            indexing_text=indexing_text,
            incremental_indexing_text=incremental_text,
            monitor_max_per_tick=max_per_tick,
            monitor_poll_interval_s=interval,
        )


def _non_empty_str(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


class ProgressConfig:
    """
    Manager for loading/saving ProgressConfigData to disk.
    """

    def __init__(self, *, path: Path, data: Optional[ProgressConfigData] = None):
        self.path = path
        self.data = data if data is not None else ProgressConfigData()

    @staticmethod
    def default_config_path(
        app_name: str = "importflow",
        filename: str = "progress_config.json",
        app_author: str | None = None,
    ) -> Path:
        """
        Determine OS-appropriate per-user config path.

        macOS:   ~/Library/Application Support/importflow/progress_config.json
        Linux:   ~/.config/importflow/progress_config.json
        Windows: %APPDATA%\\importflow\\progress_config.json
        """
        d = Path(user_config_dir(app_name, app_author))
        return d / filename

    @classmethod
    def load(
        cls,
        *,
        config_path: Optional[Path] = None,
        schema_version: int = SCHEMA_VERSION,
        reset_on_version_mismatch: bool = True,
        create_if_missing: bool = False,
    ) -> "ProgressConfig":
        """
        Load config from disk.

        If file doesn't exist or is unreadable -> defaults.
        If schema mismatch:
          - reset_on_version_mismatch=True -> defaults
          - else -> keep loaded but overwrite schema_version
        """
        path = config_path or cls.default_config_path()
        default_data = ProgressConfigData(schema_version=schema_version)

        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.info(f"Progress config file not found at {path}, using defaults")
            cfg = cls(path=path, data=default_data)
            if create_if_missing:
                cfg.save()
            return cfg
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read progress config from {path}: {e}, using defaults")
            return cls(path=path, data=default_data)

        if not isinstance(parsed, dict):
            logger.warning(f"Progress config at {path} does not contain a dict, using defaults")
            return cls(path=path, data=default_data)

        loaded = ProgressConfigData.from_json_dict(parsed)
        if loaded.schema_version != schema_version:
            if reset_on_version_mismatch:
                logger.warning(
                    f"Progress config schema version mismatch: loaded={loaded.schema_version}, "
                    f"expected={schema_version}, resetting to defaults"
                )
                return cls(path=path, data=default_data)
            loaded.schema_version = schema_version

        return cls(path=path, data=loaded)

    def save(self) -> None:
        """Write config to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"saving progress config to {self.path}")
        self.path.write_text(json.dumps(self.data.to_json_dict(), indent=2), encoding="utf-8")

    def get_attribute(self, key: str) -> Any:
        if key not in _FIELD_NAMES:
            raise AttributeError(f"ProgressConfigData has no attribute '{key}'")
        return getattr(self.data, key)

    def set_attribute(self, key: str, value: Any) -> None:
        """
        Set attribute value by key, validated through the tolerant loader.

        Raises:
            AttributeError: If key doesn't exist.
            ValueError: If value is rejected by validation.
        """
        if key not in _FIELD_NAMES or key == "schema_version":
            raise AttributeError(f"ProgressConfigData has no settable attribute '{key}'")
        payload = self.data.to_json_dict()
        payload[key] = value
        candidate = ProgressConfigData.from_json_dict(payload)
        if getattr(candidate, key) != value:
            raise ValueError(f"Invalid value for '{key}': {value!r}")
        self.data = candidate


_FIELD_NAMES = frozenset(f.name for f in fields(ProgressConfigData))
