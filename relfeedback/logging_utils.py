"""Logging utilities.

Use `configure_logging()` from entrypoints/scripts to get consistent formatting,
and `StageTimings` to time pipeline stages (the durations also feed the debug
trace).
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _parse_level(level: str) -> int:
    if not isinstance(level, str) or not level.strip():
        raise ValueError("log level must be a non-empty string (e.g., 'INFO', 'DEBUG')")
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    if isinstance(value, int):
        return value
    # Also accept numeric levels like "20"
    try:
        return int(name)
    except ValueError as e:
        raise ValueError(f"Unknown log level: {level!r}") from e


def configure_logging(level: str = "INFO", logger_name: Optional[str] = None) -> logging.Logger:
    """Install one console handler on the root logger (or `logger_name`).

    Repeated calls update the level and format of the existing handler.
    `level` is a name ("INFO", "warn") or a number ("20").
    """
    target = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    target.setLevel(_parse_level(level))
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    handler = next((h for h in target.handlers if isinstance(h, logging.StreamHandler)), None)
    if handler is None:
        handler = logging.StreamHandler()
        target.addHandler(handler)
    handler.setLevel(target.level)
    handler.setFormatter(formatter)
    return target


class StageTimings:
    """Wall-clock durations of named pipeline stages, in insertion order."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.log = logger or logging.getLogger("relfeedback.timing")
        self._seconds: Dict[str, float] = {}
        self._t0 = time.perf_counter()

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            dt = time.perf_counter() - t0
            self._seconds[name] = self._seconds.get(name, 0.0) + dt
            self.log.debug("Stage %s took %.4fs.", name, dt)

    def seconds(self, name: str) -> float:
        return self._seconds.get(name, 0.0)

    def as_millis(self) -> Dict[str, float]:
        """{"time": total, <stage>: ms, ...} rounded to microseconds."""
        out = {"time": round((time.perf_counter() - self._t0) * 1000.0, 3)}
        for name, sec in self._seconds.items():
            out[name] = round(sec * 1000.0, 3)
        return out
