"""File-backed persistence for the reconciled usage snapshot.

This module provides the persistence collaborator of the reporting engine:

- `Storage`    : the protocol the engine depends on (read/write the snapshot,
  install identity, disk usage by category).
- `FileStorage`: a directory-backed implementation.

Layout
------
- Default directory: `USAGESTATS_DATA_DIR` setting or `data/`
- `analytics.json` : the last reconciled snapshot, a JSON object mirroring `Snapshot`
- `install_id`     : uuid4 generated on first access, stable afterwards
- `main/`, `trees/`, `dicts/`, `dimensions/`, `segments/` : category directories
  whose recursive byte size is reported by `disk_usage()`

Failure handling
----------------
Storage problems never escalate. A missing, unreadable or invalid snapshot
file reads as `Snapshot.zero()`; a failed write is logged and the snapshot of
that cycle is lost.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .contracts.snapshot import STORAGE_CATEGORIES, Snapshot
from .settings import get_logger, load_settings

logger = get_logger(__name__)

SNAPSHOT_FILE = "analytics.json"
INSTALL_ID_FILE = "install_id"


class Storage(Protocol):
    """Persistence capability consumed by the builder and the lifecycle controller."""

    def read(self) -> Snapshot: ...

    def write(self, snapshot: Snapshot) -> None: ...

    def install_id(self) -> str: ...

    def disk_usage(self) -> Mapping[str, int]: ...


def _default_dir() -> Path:
    """Return the default base directory for persisted data."""
    return load_settings().data_dir


def _dir_size(path: Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += (Path(root) / name).stat().st_size
            except OSError:
                # Files may vanish while walking.
                continue
    return total


class FileStorage:
    """Persist usage snapshots and install identity under a data directory."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir: Path = base_dir if base_dir is not None else _default_dir()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._install_id: str | None = None

    @property
    def snapshot_path(self) -> Path:
        return self.base_dir / SNAPSHOT_FILE

    def read(self) -> Snapshot:
        """Return the persisted snapshot, or the zero snapshot if none is usable."""
        path = self.snapshot_path
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Snapshot.zero()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return Snapshot.zero()

        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid snapshot in %s: %s", path, exc)
            return Snapshot.zero()

    def write(self, snapshot: Snapshot) -> None:
        """Atomically replace the persisted snapshot with `snapshot`.

        Notes
        -----
        - The payload is written to a temporary sibling and renamed over the
          target so a crash mid-write never leaves a truncated file behind.
        - An OSError is logged and swallowed; this cycle's snapshot is lost.
        """
        path = self.snapshot_path
        tmp = path.with_suffix(".json.tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(indent=2))
                f.write("\n")
            tmp.replace(path)
        except OSError as exc:
            logger.error("Failed to persist analytics snapshot to %s: %s", path, exc)

    def install_id(self) -> str:
        """Return the installation id, generating and persisting it on first use."""
        if self._install_id is not None:
            return self._install_id

        path = self.base_dir / INSTALL_ID_FILE
        try:
            value = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            value = ""

        if not value:
            value = str(uuid.uuid4())
            path.write_text(value + "\n", encoding="utf-8")

        self._install_id = value
        return value

    def disk_usage(self) -> dict[str, int]:
        """Return the byte size of every known category directory (0 when absent)."""
        return {
            category: _dir_size(self.base_dir / category)
            for category in sorted(set(STORAGE_CATEGORIES.values()))
        }


__all__ = ["FileStorage", "INSTALL_ID_FILE", "SNAPSHOT_FILE", "Storage"]
