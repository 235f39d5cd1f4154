"""Incremental multi-file reconciliation of employee performance records.

Each uploaded CSV becomes a batch of :class:`EmployeeRecord` objects.
Batches are folded into an accumulating registry (``name`` → record)
one record at a time:

1. **New name** — the incoming record is inserted verbatim.

2. **Known name** — a field-level merge:

   - ``base`` fields are replaced wholesale by the incoming record's
     (last write wins).
   - each of the twelve month slots is replaced only when the incoming
     month carries observed data (:func:`has_observed_data`).  Blank
     placeholders never overwrite a month that has data, and no batch
     can delete a month.
   - totals and averages follow from the merged history.

Files covering disjoint months therefore commute; when two batches report
the same month for the same employee, whichever is applied later wins.
The reconciler does not sort or timestamp batches — callers apply them in
a deterministic order of their choosing.

Every function here is pure: registries and records passed in are never
mutated.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from perfboard.records.models import MONTHS, EmployeeRecord, has_observed_data

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)


def merge_employee(existing: EmployeeRecord, incoming: EmployeeRecord) -> EmployeeRecord:
    """Merge *incoming* into *existing* and return a new record."""
    history = dict(existing.history)
    for month in MONTHS:
        candidate = incoming.history[month]
        if has_observed_data(candidate):
            history[month] = candidate
    return replace(existing, base=incoming.base, history=history)


def _fold(result: dict[str, EmployeeRecord], incoming: EmployeeRecord) -> bool:
    """Insert or merge *incoming* into *result* in place; True for a new name."""
    existing = result.get(incoming.name)
    if existing is None:
        result[incoming.name] = incoming
        return True
    result[incoming.name] = merge_employee(existing, incoming)
    return False


def reconcile(
    registry: Mapping[str, EmployeeRecord],
    incoming: EmployeeRecord,
) -> dict[str, EmployeeRecord]:
    """Return a new registry with *incoming* merged in under its name."""
    result = dict(registry)
    _fold(result, incoming)
    return result


def reconcile_batch(
    registry: Mapping[str, EmployeeRecord],
    batch: Iterable[EmployeeRecord],
) -> dict[str, EmployeeRecord]:
    """Fold every record of *batch* into *registry*, in iteration order."""
    # ``result`` is a private copy, so in-place updates keep the fold linear
    result = dict(registry)
    added = merged = 0
    for incoming in batch:
        if _fold(result, incoming):
            added += 1
        else:
            merged += 1
    logger.debug("Reconciled batch: %d new employee(s), %d merged", added, merged)
    return result
