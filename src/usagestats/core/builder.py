"""Snapshot builder: read live signals into a fresh `Snapshot`.

Signals
-------
- identity : install id (storage), a fresh run id, package version, UTC time,
  the caller-supplied upload index
- platform : OS, architecture, interpreter version/implementation
- memory   : process RSS/VMS via psutil, GC totals via `gc.get_stats()`
- storage  : disk usage by category (storage collaborator)
- activity : named counters and apps count (stats provider)

`build()` never raises. Any sub-signal that cannot be read, or reads as
something other than a non-negative integer, degrades to zero/empty and is
logged at DEBUG level.
"""

from __future__ import annotations

import gc
import platform
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar

import psutil

from usagestats import __version__

from .contracts.snapshot import APPS_COUNT_STAT, SNAPSHOT_FIELDS, Snapshot
from .settings import get_logger
from .stats import StatsProvider
from .storage import Storage

logger = get_logger(__name__)

T = TypeVar("T")


def _as_count(value: Any) -> int:
    """Coerce a raw signal into a non-negative int; anything else reads as 0."""
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(value, 0)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _platform_info() -> dict[str, str]:
    return {
        "os": platform.system().lower(),
        "arch": platform.machine().lower(),
        "python_version": platform.python_version(),
        "python_implementation": platform.python_implementation(),
    }


def _gc_totals() -> dict[str, int]:
    per_generation = gc.get_stats()
    return {
        "mem_num_gc": sum(_as_count(g.get("collections")) for g in per_generation),
        "mem_gc_collected": sum(_as_count(g.get("collected")) for g in per_generation),
    }


class SnapshotBuilder:
    """Assemble snapshots from the storage and stats-provider collaborators.

    Parameters
    ----------
    storage:
        Source of the install identity and disk usage by category.
    provider:
        Source of the named activity counters and the apps count.
    version:
        Version string embedded in every snapshot.
    """

    def __init__(
        self,
        storage: Storage,
        provider: StatsProvider,
        version: str = __version__,
    ) -> None:
        self.storage = storage
        self.provider = provider
        self.version = version
        try:
            self._process: psutil.Process | None = psutil.Process()
        except psutil.Error as exc:
            logger.debug("Process memory stats unavailable: %s", exc)
            self._process = None

    def build(self, upload_index: int = 0) -> Snapshot:
        """Return a new snapshot of the current moment."""
        values: dict[str, Any] = {
            "install_id": self._read("install id", self.storage.install_id, ""),
            "run_id": str(uuid.uuid4()),
            "version": self.version,
            "timestamp": datetime.now(UTC),
            "upload_index": upload_index,
        }
        values.update(self._read("platform info", _platform_info, {}))
        values.update(self._memory_stats())
        values.update(self._read("gc stats", _gc_totals, {}))

        if not isinstance(values["install_id"], str):
            values["install_id"] = ""

        disk = _as_mapping(self._read("disk usage", self.storage.disk_usage, {}))
        stats = _as_mapping(self._read("activity stats", self.provider.stats, {}))
        apps = self._read("apps count", self.provider.apps_count, 0)

        for spec in SNAPSHOT_FIELDS:
            if spec.disk is not None:
                values[spec.name] = _as_count(disk.get(spec.disk))
            elif spec.stat == APPS_COUNT_STAT:
                values[spec.name] = _as_count(apps)
            elif spec.stat is not None:
                values[spec.name] = _as_count(stats.get(spec.stat))

        return Snapshot.model_validate(values)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _memory_stats(self) -> dict[str, int]:
        if self._process is None:
            return {}
        try:
            info = self._process.memory_info()
        except psutil.Error as exc:
            logger.debug("Could not read process memory: %s", exc)
            return {}
        return {"mem_rss": _as_count(info.rss), "mem_vms": _as_count(info.vms)}

    @staticmethod
    def _read(label: str, fn: Callable[[], T], default: T) -> T:
        """Call a collaborator accessor, degrading any failure to `default`."""
        try:
            value = fn()
        except Exception as exc:
            logger.debug("Snapshot signal '%s' unavailable: %s", label, exc)
            return default
        return value if value is not None else default


__all__ = ["SnapshotBuilder"]
