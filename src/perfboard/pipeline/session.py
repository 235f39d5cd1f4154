"""Dashboard session — the owned registry of reconciled employees.

A :class:`Session` holds the name → record registry for one working
session and is the only place it changes.  Two import modes:

- **replace** — parse one file and discard whatever was loaded before.
- **append** — parse several files concurrently, then fold their batches
  into the registry one at a time in the order the caller gave.  Parsing
  is all-or-nothing: when any file fails, nothing from that call is
  applied.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from types import MappingProxyType
from typing import TYPE_CHECKING

from perfboard.config import Settings
from perfboard.ingest.csv_parser import Batch, parse_file
from perfboard.records.models import (
    MONTHS,
    BaseFields,
    EmployeeRecord,
    EmploymentStatus,
    MonthlyRecord,
)
from perfboard.records.reconciler import reconcile_batch

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)


def demo_employee(year: int = 2025) -> EmployeeRecord:
    """The built-in sample employee used by ``--demo``."""
    history = {
        month: MonthlyRecord(
            month=month,
            year=year,
            absence_count=1,
            completed_count=1,
            performance_score=4.5,
        )
        for month in MONTHS
    }
    return EmployeeRecord(
        name="Yova Pradnyana",
        base=BaseFields(
            age=28,
            residence="Jakarta",
            title="Software Engineer",
            department="IT",
            salary=9_000_000,
            start_date=date(2022, 8, 15),
            status=EmploymentStatus.PERMANENT,
        ),
        history=history,
    )


class Session:
    """Owns the employee registry for one dashboard session."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self._registry: dict[str, EmployeeRecord] = {}

    @property
    def registry(self) -> Mapping[str, EmployeeRecord]:
        """Read-only view of the current registry."""
        return MappingProxyType(self._registry)

    @property
    def employees(self) -> list[EmployeeRecord]:
        """Current records in first-seen order."""
        return list(self._registry.values())

    def __len__(self) -> int:
        return len(self._registry)

    def _parse(self, path: str | Path) -> Batch:
        return parse_file(
            path,
            reporting_year=self.settings.data.reporting_year,
            default_department=self.settings.data.default_department,
        )

    def replace(self, path: str | Path) -> int:
        """Replace the registry with the contents of one file.

        Returns the number of employees loaded.  On a parse failure the
        registry is left unchanged.
        """
        batch = self._parse(path)
        self._registry = reconcile_batch({}, batch.employees)
        logger.info("Replaced registry from %s: %d employee(s)", batch.source, len(self))
        return len(self._registry)

    async def append(self, paths: Sequence[str | Path]) -> int:
        """Parse *paths* concurrently and reconcile them in the given order.

        Returns the number of records applied.  When any file fails to
        parse, its :class:`~perfboard.errors.ActionableError` propagates and
        the registry is left unchanged.
        """
        if not paths:
            return 0
        batches = await asyncio.gather(
            *(asyncio.to_thread(self._parse, path) for path in paths)
        )

        registry: Mapping[str, EmployeeRecord] = self._registry
        applied = 0
        for batch in batches:
            registry = reconcile_batch(registry, batch.employees)
            applied += len(batch.employees)
        self._registry = dict(registry)

        logger.info(
            "Appended %d file(s): %d record(s) applied, %d employee(s) total",
            len(batches),
            applied,
            len(self),
        )
        return applied

    def load_demo(self) -> None:
        """Replace the registry with the single built-in demo employee."""
        employee = demo_employee(self.settings.data.reporting_year)
        self._registry = {employee.name: employee}
        logger.info("Loaded demo data")

    def reset(self) -> None:
        self._registry = {}
