"""Table views and aggregate statistics for the dashboard.

Filtering, sorting and pagination operate on ranked rows; the aggregates
in :func:`compute_stats` operate on plain employee records so they can be
shown before anything has been ranked.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from perfboard.errors import ActionableError
from perfboard.records.models import MONTHS

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from perfboard.pipeline.ranker import RankedEmployee
    from perfboard.records.models import EmployeeRecord


# Sort key → accessor.  Numbers compare numerically, strings case-insensitively.
_SORT_KEYS: dict[str, Callable[[RankedEmployee], Any]] = {
    "rank": lambda r: r.rank,
    "score": lambda r: r.score,
    "name": lambda r: r.employee.name.lower(),
    "age": lambda r: r.employee.base.age,
    "salary": lambda r: r.employee.base.salary,
    "department": lambda r: r.employee.base.department.lower(),
    "title": lambda r: r.employee.base.title.lower(),
    "residence": lambda r: r.employee.base.residence.lower(),
    "status": lambda r: str(r.employee.base.status),
    "total_completed": lambda r: r.employee.total_completed,
    "average_score": lambda r: r.employee.average_score,
    "total_absence": lambda r: r.employee.total_absence,
    "start_date": lambda r: r.employee.base.start_date or date.min,
}

SORT_KEYS: tuple[str, ...] = tuple(_SORT_KEYS)


@dataclass
class PageView:
    """One page of a table view."""

    items: list[RankedEmployee]
    page: int
    max_page: int
    total: int


@dataclass
class DashboardStats:
    """Aggregates shown above the employee table."""

    headcount: int = 0
    total_salary: float = 0.0
    average_absence: int = 0
    salary_by_department: dict[str, float] = field(default_factory=dict)
    headcount_by_department: dict[str, int] = field(default_factory=dict)
    absence_by_month: dict[str, int] = field(default_factory=dict)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def filter_rows(rows: Sequence[RankedEmployee], query: str) -> list[RankedEmployee]:
    """Keep rows whose name, residence, title or department contains *query*."""
    needle = query.strip().lower()
    if not needle:
        return list(rows)
    return [
        r
        for r in rows
        if any(
            needle in text.lower()
            for text in (
                r.employee.name,
                r.employee.base.residence,
                r.employee.base.title,
                r.employee.base.department,
            )
        )
    ]


def sort_rows(
    rows: Sequence[RankedEmployee],
    key: str = "rank",
    *,
    ascending: bool = True,
) -> list[RankedEmployee]:
    """Return *rows* sorted by *key*; raises VALIDATION for an unknown key."""
    accessor = _SORT_KEYS.get(key)
    if accessor is None:
        raise ActionableError.validation(
            field_name="sort",
            reason=f"unknown sort key '{key}'",
            suggestion=f"Use one of: {', '.join(SORT_KEYS)}",
        )
    return sorted(rows, key=accessor, reverse=not ascending)


def paginate(rows: Sequence[RankedEmployee], page: int, per_page: int) -> PageView:
    """Slice one page out of *rows*, clamping *page* into range."""
    if per_page < 1:
        raise ActionableError.validation(
            field_name="per_page",
            reason=f"is {per_page} — must be >= 1",
        )
    total = len(rows)
    max_page = max(1, math.ceil(total / per_page))
    page = min(max(page, 1), max_page)
    start = (page - 1) * per_page
    return PageView(
        items=list(rows[start : start + per_page]),
        page=page,
        max_page=max_page,
        total=total,
    )


def compute_stats(employees: Sequence[EmployeeRecord]) -> DashboardStats:
    """Headcount, salary and absence aggregates over *employees*."""
    stats = DashboardStats(headcount=len(employees))
    if not employees:
        stats.absence_by_month = {m: 0 for m in MONTHS}
        return stats

    for e in employees:
        dept = e.base.department
        stats.total_salary += e.base.salary
        stats.salary_by_department[dept] = stats.salary_by_department.get(dept, 0.0) + e.base.salary
        stats.headcount_by_department[dept] = stats.headcount_by_department.get(dept, 0) + 1

    total_absence = sum(e.total_absence for e in employees)
    stats.average_absence = _round_half_up(total_absence / len(employees))
    stats.absence_by_month = {
        m: _round_half_up(sum(e.history[m].absence_count for e in employees) / len(employees))
        for m in MONTHS
    }
    return stats
