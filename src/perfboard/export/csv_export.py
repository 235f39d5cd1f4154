"""CSV export."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from perfboard.records.models import MONTHS, has_observed_data

if TYPE_CHECKING:
    from collections.abc import Sequence

    from perfboard.pipeline.ranker import RankedEmployee
    from perfboard.records.models import EmployeeRecord, MonthlyRecord

logger = logging.getLogger(__name__)

# Monthly columns use the full month name for absence and the three-letter
# form for completed work and score; all of them re-import through the CSV
# parser.  Unobserved months leave their score cell empty.
_COLUMNS = [
    "name",
    "age",
    "residence",
    "title",
    "department",
    "salary",
    "start_date",
    "status",
    "rank",
    "note",
    "total_completed",
    "average_score",
    *(f"absence_{m.lower()}" for m in MONTHS),
    *(f"completed_{m[:3].lower()}" for m in MONTHS),
    *(f"score_{m[:3].lower()}" for m in MONTHS),
]


def _month_score(record: MonthlyRecord) -> str:
    return f"{record.performance_score:.2f}" if has_observed_data(record) else ""


def _row(employee: EmployeeRecord, rank: int | str, note: str) -> list[object]:
    base = employee.base
    return [
        employee.name,
        base.age,
        base.residence,
        base.title,
        base.department,
        f"{base.salary:.0f}",
        base.start_date.isoformat() if base.start_date else "",
        base.status.value,
        rank,
        note,
        employee.total_completed,
        f"{employee.average_score:.2f}",
        *(employee.history[m].absence_count for m in MONTHS),
        *(employee.history[m].completed_count for m in MONTHS),
        *(_month_score(employee.history[m]) for m in MONTHS),
    ]


class CSVExporter:
    """Renders employees as a CSV file suitable for spreadsheet import."""

    def export(self, ranked: Sequence[RankedEmployee], output_path: str | Path) -> None:
        """Write ranked employees with their rank and note, in rank order."""
        rows = [_row(r.employee, r.rank, r.note) for r in sorted(ranked, key=lambda r: r.rank)]
        self._write(rows, output_path)

    def export_registry(
        self, employees: Sequence[EmployeeRecord], output_path: str | Path
    ) -> None:
        """Write reconciled employees unranked; ``rank`` and ``note`` stay empty."""
        self._write([_row(e, "", "") for e in employees], output_path)

    def _write(self, rows: list[list[object]], output_path: str | Path) -> None:
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(_COLUMNS)
            writer.writerows(rows)
        logger.info("Wrote %d row(s) to %s", len(rows), output_path)
