"""A wall-clock stopwatch for timing runs."""

from __future__ import annotations

import time

__all__ = ["Timer"]


class Timer:
    """Measures the seconds between a start and a stop."""

    def __init__(self) -> None:
        self._start: float | None = None
        self._end: float | None = None

    def start(self) -> None:
        """Record the start time."""
        self._start = time.perf_counter()
        self._end = None

    def stop(self) -> None:
        """Record the end time."""
        self._end = time.perf_counter()

    def elapsed(self) -> float:
        """Return the seconds between the last start and stop."""
        if self._start is None or self._end is None:
            raise RuntimeError("timer must be started and stopped before reading it")
        return self._end - self._start

    def __enter__(self) -> "Timer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()