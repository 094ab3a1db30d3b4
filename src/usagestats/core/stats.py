"""Stats provider capability and a thread-safe in-process implementation.

The server increments named activity counters from its request handlers while
the reporting worker reads them from its own thread, so every access to
`CounterStatsProvider` goes through one lock.

Key conventions
---------------
- ``index``, ``comparison``, ``diff``, ``render``: page/view renders.
- ``ingest``: every ingest request.
- ``ingest:<spy>``: ingest requests by profiler type (``ingest:pyspy`` ...).
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Protocol


class StatsProvider(Protocol):
    """Read-only view of the server's activity counters."""

    def stats(self) -> Mapping[str, int]: ...

    def apps_count(self) -> int: ...


class CounterStatsProvider:
    """Dictionary of named integer counters plus the number of known apps."""

    __slots__ = ("_lock", "_counters", "_apps")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._apps: int = 0

    def incr(self, key: str, n: int = 1) -> None:
        """Add `n` to counter `key` (created at zero on first use)."""
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + n

    def record_ingest(self, spy_name: str) -> None:
        """Count one ingest request, both in total and for its profiler type."""
        with self._lock:
            self._counters["ingest"] = self._counters.get("ingest", 0) + 1
            key = f"ingest:{spy_name}"
            self._counters[key] = self._counters.get(key, 0) + 1

    def set_apps_count(self, n: int) -> None:
        with self._lock:
            self._apps = n

    def stats(self) -> dict[str, int]:
        """Return a copy of the counters, safe to read without the lock."""
        with self._lock:
            return dict(self._counters)

    def apps_count(self) -> int:
        with self._lock:
            return self._apps


__all__ = ["CounterStatsProvider", "StatsProvider"]
