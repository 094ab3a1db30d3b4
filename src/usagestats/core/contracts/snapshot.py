"""Usage snapshot contract and its declarative field table.

This module defines the single record exchanged by every part of the
reporting engine:

- `Snapshot`      : a flat Pydantic v2 model, serialized with snake_case keys.
- `FieldSpec`     : one row of the static schema table (name, kind, numeric type,
  stats-provider key, disk category).
- `SNAPSHOT_FIELDS`: the table itself, compiled once at import time from the
  per-field metadata declared on `Snapshot`.

Field kinds
-----------
- ``counter``: additive. When a snapshot is reconciled against the persisted
  baseline, the two values are summed.
- ``gauge``  : everything else (identity, platform, live memory, activity
  counts). The freshly built value always wins.

A field is declared a counter with ``json_schema_extra={"kind": "counter"}``.
A field fed from the stats provider names its key with
``json_schema_extra={"stat": "<key>"}``; a field fed from storage disk usage
names its category with ``"disk": "<category>"``. Builder and merger only ever iterate
`SNAPSHOT_FIELDS`, so adding a field never touches their code.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

FieldKind = Literal["counter", "gauge"]

# Stats-provider key reserved for `StatsProvider.apps_count()`.
APPS_COUNT_STAT = "@apps"

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _counter(category: str, description: str) -> Any:
    return Field(
        default=0,
        ge=0,
        description=description,
        json_schema_extra={"kind": "counter", "disk": category},
    )


def _stat(key: str, description: str) -> Any:
    return Field(default=0, description=description, json_schema_extra={"stat": key})


class Snapshot(BaseModel):
    """Point-in-time usage record; one instance per build."""

    model_config = ConfigDict(frozen=True)

    # ---- Identity ------------------------------------------------------------
    install_id: str = Field(default="", description="Stable per-installation id")
    run_id: str = Field(default="", description="Fresh uuid4 generated on every build")
    version: str = Field(default="", description="Reporting package version")
    timestamp: datetime = Field(default=EPOCH, description="UTC build time")
    upload_index: int = Field(default=0, description="Uploads attempted by this process")

    # ---- Platform ------------------------------------------------------------
    os: str = Field(default="", description="Operating system name")
    arch: str = Field(default="", description="Machine architecture")
    python_version: str = Field(default="", description="Interpreter version")
    python_implementation: str = Field(default="", description="CPython, PyPy, ...")

    # ---- Live memory ---------------------------------------------------------
    mem_rss: int = Field(default=0, description="Resident set size in bytes")
    mem_vms: int = Field(default=0, description="Virtual memory size in bytes")
    mem_num_gc: int = Field(default=0, description="GC collections since process start")
    mem_gc_collected: int = Field(default=0, description="Objects collected since start")

    # ---- Persisted data size by category (additive) ---------------------------
    storage_main: int = _counter("main", "Bytes used by the main store")
    storage_trees: int = _counter("trees", "Bytes used by the trees store")
    storage_dicts: int = _counter("dicts", "Bytes used by the dictionaries store")
    storage_dimensions: int = _counter("dimensions", "Bytes used by the dimensions store")
    storage_segments: int = _counter("segments", "Bytes used by the segments store")

    # ---- Controller activity -------------------------------------------------
    controller_index: int = _stat("index", "Index page renders")
    controller_comparison: int = _stat("comparison", "Comparison view renders")
    controller_diff: int = _stat("diff", "Diff view renders")
    controller_ingest: int = _stat("ingest", "Ingest requests")
    controller_render: int = _stat("render", "Render requests")

    # ---- Ingest by source type -----------------------------------------------
    spy_rbspy: int = _stat("ingest:rbspy", "Ingests from rbspy")
    spy_pyspy: int = _stat("ingest:pyspy", "Ingests from py-spy")
    spy_gospy: int = _stat("ingest:gospy", "Ingests from the Go profiler")
    spy_ebpfspy: int = _stat("ingest:ebpfspy", "Ingests from the eBPF profiler")
    spy_phpspy: int = _stat("ingest:phpspy", "Ingests from phpspy")
    spy_dotnetspy: int = _stat("ingest:dotnetspy", "Ingests from the .NET profiler")
    spy_javaspy: int = _stat("ingest:javaspy", "Ingests from the Java profiler")

    apps_count: int = _stat(APPS_COUNT_STAT, "Applications known to the server")

    @classmethod
    def zero(cls) -> Snapshot:
        """Return the all-zero snapshot used when nothing was persisted yet."""
        return cls()


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One row of the snapshot schema table.

    Attributes
    ----------
    name : str
        Attribute name on `Snapshot`, also the JSON key.
    kind : FieldKind
        ``"counter"`` fields are summed on merge, ``"gauge"`` fields overwritten.
    number : type | None
        Declared numeric type (`int` or `float`), or None for non-numeric fields.
    stat : str | None
        Stats-provider key feeding this field, if any.
    disk : str | None
        Storage disk-usage category feeding this field, if any.
    """

    name: str
    kind: FieldKind
    number: type | None = None
    stat: str | None = None
    disk: str | None = None

    @property
    def is_counter(self) -> bool:
        return self.kind == "counter"


def _compile_fields(model: type[BaseModel]) -> tuple[FieldSpec, ...]:
    specs: list[FieldSpec] = []
    for name, info in model.model_fields.items():
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        kind: FieldKind = "counter" if extra.get("kind") == "counter" else "gauge"
        number = info.annotation if info.annotation in (int, float) else None
        stat = extra.get("stat")
        disk = extra.get("disk")
        specs.append(
            FieldSpec(
                name=name,
                kind=kind,
                number=number,
                stat=stat if isinstance(stat, str) else None,
                disk=disk if isinstance(disk, str) else None,
            )
        )
    return tuple(specs)


SNAPSHOT_FIELDS: tuple[FieldSpec, ...] = _compile_fields(Snapshot)

COUNTER_FIELDS: tuple[str, ...] = tuple(s.name for s in SNAPSHOT_FIELDS if s.is_counter)

# Disk-usage category feeding each field (``storage_main`` -> ``main``).
STORAGE_CATEGORIES: dict[str, str] = {s.name: s.disk for s in SNAPSHOT_FIELDS if s.disk}


__all__ = [
    "APPS_COUNT_STAT",
    "COUNTER_FIELDS",
    "EPOCH",
    "FieldKind",
    "FieldSpec",
    "SNAPSHOT_FIELDS",
    "STORAGE_CATEGORIES",
    "Snapshot",
]
