"""Counter merger: reconcile a fresh snapshot against the persisted baseline.

For every field of `SNAPSHOT_FIELDS`:

- ``counter`` fields: ``baseline + current`` in the field's declared numeric type;
- every other field : ``current``'s value, unchanged.

The function is pure and total. A counter whose value on either side is
missing or not of the declared numeric kind is left at zero instead of
raising, so a corrupt baseline can cost at most that field's history.
"""

from __future__ import annotations

from typing import Any

from .contracts.snapshot import SNAPSHOT_FIELDS, FieldSpec, Snapshot

_MISSING = object()


def _is_number_of(value: Any, number: type) -> bool:
    if isinstance(value, bool):
        return False
    if number is float:
        return isinstance(value, int | float)
    return isinstance(value, number)


def _sum_counter(spec: FieldSpec, baseline: Snapshot, current: Snapshot) -> Any:
    number = spec.number
    if number is None:
        return 0
    b = getattr(baseline, spec.name, _MISSING)
    c = getattr(current, spec.name, _MISSING)
    if not (_is_number_of(b, number) and _is_number_of(c, number)):
        return number(0)
    return number(b + c)


def merge(baseline: Snapshot, current: Snapshot) -> Snapshot:
    """Return `current` with every counter field increased by `baseline`'s value.

    Parameters
    ----------
    baseline:
        Snapshot persisted by a previous run (or `Snapshot.zero()`).
    current:
        Snapshot freshly built by this process.

    Returns
    -------
    Snapshot
        A new snapshot; neither input is modified.
    """
    declared = type(current).model_fields
    updates = {
        spec.name: _sum_counter(spec, baseline, current)
        for spec in SNAPSHOT_FIELDS
        if spec.is_counter and spec.name in declared
    }
    return current.model_copy(update=updates)


__all__ = ["merge"]
