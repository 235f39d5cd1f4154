"""Markdown report export."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from perfboard.pipeline.dashboard import DashboardStats
    from perfboard.pipeline.ranker import RankedEmployee

logger = logging.getLogger(__name__)


def _cell(text: str) -> str:
    """Escape a value for a Markdown table cell."""
    return text.replace("|", "\\|").replace("\n", " ")


class MarkdownExporter:
    """Renders a ranked employee list as a human-readable Markdown report."""

    def export(
        self,
        ranked: Sequence[RankedEmployee],
        output_path: str | Path,
        *,
        stats: DashboardStats | None = None,
        annotation_warning: str | None = None,
        insights: str | None = None,
    ) -> None:
        """Write a Markdown file with a summary block and the ranked table.

        Rows are sorted ascending by rank.  *insights* (LLM text) is
        appended as its own section when given.
        """
        lines: list[str] = []

        # --- Summary ---
        lines.append("# Performance Summary\n")
        lines.append(f"- **Employees ranked:** {len(ranked)}")
        if stats is not None:
            lines.append(f"- **Total salary:** {stats.total_salary:,.0f}")
            lines.append(f"- **Average yearly absence:** {stats.average_absence}")
            departments = ", ".join(
                f"{dept} ({count})" for dept, count in stats.headcount_by_department.items()
            )
            if departments:
                lines.append(f"- **Departments:** {departments}")
        if annotation_warning:
            lines.append(f"- **Note:** {annotation_warning}")
        lines.append("")

        ordered = sorted(ranked, key=lambda r: r.rank)
        if not ordered:
            lines.append("No results to display.\n")
        else:
            # --- Ranked table ---
            lines.append("## Ranking\n")
            lines.append(
                "| # | Name | Title | Department | Score | Completed | Avg score | Absence | Note |"
            )
            lines.append(
                "|---|------|-------|------------|-------|-----------|-----------|---------|------|"
            )
            for r in ordered:
                e = r.employee
                lines.append(
                    f"| {r.rank} "
                    f"| {_cell(e.name)} "
                    f"| {_cell(e.base.title)} "
                    f"| {_cell(e.base.department)} "
                    f"| {r.score:.1f} "
                    f"| {e.total_completed} "
                    f"| {e.average_score:.2f} "
                    f"| {e.total_absence} "
                    f"| {_cell(r.note)} |"
                )
            lines.append("")

        if insights:
            lines.append("## Insights\n")
            lines.append(insights.strip())
            lines.append("")

        with open(output_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines))
        logger.info("Wrote Markdown report to %s", output_path)
