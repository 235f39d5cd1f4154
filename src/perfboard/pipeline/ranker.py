"""Weighted employee ranking.

The Ranker turns reconciled :class:`EmployeeRecord` objects into an ordered
list the operator reviews.  Each employee gets one linear score:

    score = avg_score_weight  * average_score
          + completed_weight  * total_completed
          + absence_weight    * total_absence
          + tenure_weight     * tenure_years
          + age_weight        * age

Weights come from the ``[ranking]`` section of ``settings.toml``.  The
list is sorted descending by score (ties broken by name), ranks run
``1..n``, and every entry is seeded with a plain score note that the
annotator may later replace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from perfboard.config import RankingConfig
    from perfboard.records.models import EmployeeRecord

logger = logging.getLogger(__name__)

_DAYS_PER_YEAR = 365.25


def tenure_years(start: date | None, today: date | None = None) -> float:
    """Fractional years since *start*, floored at zero."""
    if start is None:
        return 0.0
    day = today or date.today()
    return max(0.0, (day - start).days / _DAYS_PER_YEAR)


def tenure_label(start: date | None, today: date | None = None) -> str:
    """Render tenure as ``"N years M months"``, or ``"New hire"`` under a month."""
    if start is None:
        return "New hire"
    day = today or date.today()
    months = (day.year - start.year) * 12 + (day.month - start.month)
    if day.day < start.day:
        months -= 1
    if months <= 0:
        return "New hire"
    years, months = divmod(months, 12)
    parts: list[str] = []
    if years:
        parts.append(f"{years} year{'s' if years != 1 else ''}")
    if months:
        parts.append(f"{months} month{'s' if months != 1 else ''}")
    return " ".join(parts)


@dataclass
class RankedEmployee:
    """An employee enriched with its ranking score, rank and note."""

    employee: EmployeeRecord
    rank: int
    score: float
    tenure_years: float
    note: str = ""

    @property
    def name(self) -> str:
        return self.employee.name

    def default_note(self) -> str:
        return f"Score: {self.score:.1f} / Rank: {self.rank}"

    def score_explanation(self) -> str:
        """Human-readable input breakdown for export output."""
        e = self.employee
        return " | ".join([
            f"Avg score: {e.average_score:.2f}",
            f"Completed: {e.total_completed}",
            f"Absence: {e.total_absence}",
            f"Tenure: {self.tenure_years:.1f}y",
            f"Age: {e.base.age}",
        ])


@dataclass
class RankSummary:
    """Statistics from a ranking run, used in export summaries."""

    total_ranked: int = 0
    top_score: float = 0.0
    bottom_score: float = 0.0
    mean_score: float = 0.0


class Ranker:
    """Scores employees with configurable linear weights and orders them."""

    def __init__(
        self,
        avg_score_weight: float = 10.0,
        completed_weight: float = 2.0,
        absence_weight: float = -5.0,
        tenure_weight: float = 1.5,
        age_weight: float = 0.1,
    ) -> None:
        self.avg_score_weight = avg_score_weight
        self.completed_weight = completed_weight
        self.absence_weight = absence_weight
        self.tenure_weight = tenure_weight
        self.age_weight = age_weight

    @classmethod
    def from_config(cls, config: RankingConfig) -> Ranker:
        return cls(
            avg_score_weight=config.avg_score_weight,
            completed_weight=config.completed_weight,
            absence_weight=config.absence_weight,
            tenure_weight=config.tenure_weight,
            age_weight=config.age_weight,
        )

    def compute_score(self, employee: EmployeeRecord, years: float) -> float:
        """Weighted sum of the employee's ranking inputs."""
        return (
            self.avg_score_weight * employee.average_score
            + self.completed_weight * employee.total_completed
            + self.absence_weight * employee.total_absence
            + self.tenure_weight * years
            + self.age_weight * employee.base.age
        )

    def rank(
        self,
        employees: Iterable[EmployeeRecord],
        today: date | None = None,
    ) -> tuple[list[RankedEmployee], RankSummary]:
        """Score, sort and number *employees*.

        Returns:
            A tuple of (ranked employees sorted descending by score with
            ranks ``1..n``, summary statistics).
        """
        day = today or date.today()
        scored: list[tuple[float, float, EmployeeRecord]] = []
        for employee in employees:
            years = tenure_years(employee.base.start_date, day)
            scored.append((self.compute_score(employee, years), years, employee))

        scored.sort(key=lambda item: (-item[0], item[2].name))

        ranked: list[RankedEmployee] = []
        for rank, (score, years, employee) in enumerate(scored, start=1):
            entry = RankedEmployee(employee=employee, rank=rank, score=score, tenure_years=years)
            entry.note = entry.default_note()
            ranked.append(entry)

        summary = RankSummary(total_ranked=len(ranked))
        if ranked:
            summary.top_score = ranked[0].score
            summary.bottom_score = ranked[-1].score
            summary.mean_score = sum(r.score for r in ranked) / len(ranked)

        logger.info(
            "Ranked %d employee(s); top score %.1f",
            summary.total_ranked,
            summary.top_score,
        )
        return ranked, summary
