"""Employee performance records.

An :class:`EmployeeRecord` is the accumulating entity per unique employee
name.  Its ``history`` always holds exactly twelve :class:`MonthlyRecord`
slots, one per calendar month; months without data carry a zero-valued
placeholder.

Derived aggregates (``total_completed``, ``average_score``) are computed
from ``history`` on access, so they cannot drift from the months they
summarise no matter how the history was assembled.

Two named predicates decide what counts as data:

- :func:`has_observed_data` — the month reports absences or completed
  work.  A month with both at zero is a placeholder, whatever its score.
- :func:`counts_toward_average` — observed *and* scored above zero.  A
  legitimately-earned score of exactly ``0`` is indistinguishable from
  "no score" and is left out of the average denominator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from perfboard.errors import ActionableError

MONTHS: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

DEFAULT_REPORTING_YEAR = 2025


class EmploymentStatus(StrEnum):
    """Employment contract type."""

    PERMANENT = "permanent"
    CONTRACT = "contract"
    FREELANCE = "freelance"


@dataclass(frozen=True)
class MonthlyRecord:
    """One employee's figures for one named month of one year."""

    month: str
    year: int = DEFAULT_REPORTING_YEAR
    absence_count: int = 0
    completed_count: int = 0
    performance_score: float = 0.0
    manager_note: str = ""

    @classmethod
    def blank(cls, month: str, year: int = DEFAULT_REPORTING_YEAR) -> MonthlyRecord:
        """Zero-valued placeholder for a month with no data."""
        return cls(month=month, year=year)


def has_observed_data(record: MonthlyRecord) -> bool:
    """True when the month reports absences or completed work items."""
    return record.absence_count > 0 or record.completed_count > 0


def counts_toward_average(record: MonthlyRecord) -> bool:
    """True when the month's score enters the average score denominator."""
    return has_observed_data(record) and record.performance_score > 0


@dataclass(frozen=True)
class BaseFields:
    """Demographic and employment attributes — replaced wholesale on merge."""

    age: int = 0
    residence: str = ""
    title: str = ""
    department: str = "General"
    salary: float = 0.0
    start_date: date | None = None
    status: EmploymentStatus = EmploymentStatus.CONTRACT


def full_year_history(
    months: dict[str, MonthlyRecord] | None = None,
    *,
    year: int = DEFAULT_REPORTING_YEAR,
) -> dict[str, MonthlyRecord]:
    """Return a twelve-slot history in calendar order.

    Slots missing from *months* are filled with blank placeholders.
    Raises VALIDATION for a key that is not a month name, or a key whose
    record belongs to a different month.
    """
    given = dict(months or {})
    unknown = sorted(set(given) - set(MONTHS))
    if unknown:
        raise ActionableError.validation(
            field_name="history",
            reason=f"unknown month key(s): {', '.join(unknown)}",
            suggestion=f"Use one of: {', '.join(MONTHS)}",
        )
    mismatched = sorted(key for key in given if given[key].month != key)
    if mismatched:
        raise ActionableError.validation(
            field_name="history",
            reason="month key(s) holding another month's record: "
            + ", ".join(f"{key} -> {given[key].month}" for key in mismatched),
            suggestion="Key each MonthlyRecord by its own month",
        )
    return {m: given.get(m) or MonthlyRecord.blank(m, year) for m in MONTHS}


@dataclass
class EmployeeRecord:
    """The accumulating record for one employee, keyed by ``name``."""

    name: str
    base: BaseFields = field(default_factory=BaseFields)
    history: dict[str, MonthlyRecord] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.history = full_year_history(self.history)

    @property
    def total_completed(self) -> int:
        return sum(m.completed_count for m in self.history.values())

    @property
    def total_absence(self) -> int:
        return sum(m.absence_count for m in self.history.values())

    @property
    def average_score(self) -> float:
        """Mean score over months passing :func:`counts_toward_average`; 0.0 if none."""
        scores = [m.performance_score for m in self.history.values() if counts_toward_average(m)]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)

    @property
    def observed_months(self) -> list[str]:
        """Months carrying observed data, in calendar order."""
        return [m for m in MONTHS if has_observed_data(self.history[m])]
