"""Unit tests for the counter merger."""

from __future__ import annotations

from datetime import UTC, datetime

from usagestats.core.contracts.snapshot import COUNTER_FIELDS, SNAPSHOT_FIELDS, FieldSpec, Snapshot
from usagestats.core.merger import _sum_counter, merge

GAUGE_FIELDS = tuple(s.name for s in SNAPSHOT_FIELDS if not s.is_counter)


def _baseline() -> Snapshot:
    return Snapshot(
        install_id="install-old",
        run_id="run-old",
        version="0.1.0",
        upload_index=41,
        os="darwin",
        mem_rss=999,
        controller_ingest=500,
        apps_count=3,
        storage_main=10,
        storage_trees=20,
        storage_dicts=30,
        storage_dimensions=40,
        storage_segments=50,
    )


def _current() -> Snapshot:
    return Snapshot(
        install_id="install-new",
        run_id="run-new",
        version="0.4.0",
        timestamp=datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC),
        upload_index=2,
        os="linux",
        mem_rss=123,
        controller_ingest=7,
        spy_pyspy=4,
        apps_count=7,
        storage_main=1,
        storage_trees=2,
        storage_dicts=3,
        storage_dimensions=4,
        storage_segments=5,
    )


def test_counter_fields_are_summed() -> None:
    baseline, current = _baseline(), _current()
    merged = merge(baseline, current)
    for name in COUNTER_FIELDS:
        assert getattr(merged, name) == getattr(baseline, name) + getattr(current, name), name


def test_gauge_fields_pass_through_from_current() -> None:
    current = _current()
    merged = merge(_baseline(), current)
    for name in GAUGE_FIELDS:
        assert getattr(merged, name) == getattr(current, name), name


def test_end_to_end_example() -> None:
    """Baseline {storage_main: 10} + build {storage_main: 3, apps_count: 7}."""
    merged = merge(Snapshot(storage_main=10), Snapshot(storage_main=3, apps_count=7))
    assert merged.storage_main == 13
    assert merged.apps_count == 7


def test_zero_baseline_returns_current_counters() -> None:
    current = _current()
    merged = merge(Snapshot.zero(), current)
    assert merged.model_dump() == current.model_dump()


def test_inputs_are_not_modified() -> None:
    baseline, current = _baseline(), _current()
    before = (baseline.model_dump(), current.model_dump())
    merge(baseline, current)
    assert (baseline.model_dump(), current.model_dump()) == before


def test_merges_do_not_compound_across_cycles() -> None:
    """Every cycle merges against the loaded baseline, never a previous result."""
    baseline = Snapshot(storage_main=10)
    first = merge(baseline, Snapshot(storage_main=3))
    second = merge(baseline, Snapshot(storage_main=5))

    assert first.storage_main == 13
    assert second.storage_main == first.storage_main + (5 - 3)


def test_type_mismatch_leaves_counter_at_zero() -> None:
    """A non-integer counter (e.g. from a corrupt baseline) is skipped, not fatal."""
    corrupt = Snapshot.model_construct(storage_main="10", storage_trees=True, storage_dicts=2)
    merged = merge(corrupt, Snapshot(storage_main=3, storage_trees=4, storage_dicts=5))

    assert merged.storage_main == 0
    assert merged.storage_trees == 0
    assert merged.storage_dicts == 7


def test_unknown_counter_spec_sums_to_zero() -> None:
    spec = FieldSpec(name="storage_unknown", kind="counter", number=int)
    assert _sum_counter(spec, Snapshot(storage_main=1), Snapshot(storage_main=2)) == 0


def test_non_numeric_counter_spec_sums_to_zero() -> None:
    spec = FieldSpec(name="install_id", kind="counter", number=None)
    assert _sum_counter(spec, Snapshot(install_id="a"), Snapshot(install_id="b")) == 0
