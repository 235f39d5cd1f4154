"""Export tests — Markdown report and CSV output.

The export layer turns ranked employees (or the unranked merged registry)
into human-consumable files: a Markdown report for reading and a CSV for
spreadsheet import.  Exporters receive real ``RankedEmployee`` objects
produced by the Ranker; nothing here touches the LLM.
"""

from __future__ import annotations

import csv
from typing import TYPE_CHECKING

import pytest
from conftest import TODAY

from perfboard.export import CSVExporter, MarkdownExporter
from perfboard.ingest.csv_parser import parse_file
from perfboard.pipeline.dashboard import compute_stats
from perfboard.pipeline.ranker import RankedEmployee, Ranker

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Helpers & fixtures
# ---------------------------------------------------------------------------


def _read_csv(path: Path) -> list[dict[str, str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


@pytest.fixture
def employees(make_employee, make_month):
    """Andi (strong, IT) and Sari (weaker, Finance)."""
    return [
        make_employee(
            "Andi",
            months=[
                make_month("January", absence=1, completed=4, score=4.5),
                make_month("March", completed=6, score=5.0),
            ],
        ),
        make_employee(
            "Sari",
            months=[make_month("February", absence=3, completed=2, score=3.0)],
            department="Finance",
            title="Analyst",
            salary=6_500_000,
        ),
    ]


@pytest.fixture
def ranked(employees) -> list[RankedEmployee]:
    result, _ = Ranker().rank(employees, today=TODAY)
    return result


# ---------------------------------------------------------------------------
# TestCSVExport
# ---------------------------------------------------------------------------


class TestCSVExport:
    """REQUIREMENT: CSV export is spreadsheet-ready and re-importable.

    WHO: HR staff opening results in a spreadsheet, or feeding a merged
         file back in as the next batch
    WHAT: A header row lists base fields, rank, note, aggregates and one
          absence, completed and score column per month; rows follow rank
          order; text containing commas or quotes survives; the merged
          registry leaves rank and note empty; a merged file parses back
          to the same totals
    WHY: A CSV that breaks on a comma in a manager note, or that the
         parser cannot read back, forces manual cleanup every month
    """

    def test_header_has_base_aggregate_and_monthly_columns(self, tmp_path: Path, ranked) -> None:
        """The header carries every documented column."""
        out = tmp_path / "results.csv"
        CSVExporter().export(ranked, out)
        with open(out, newline="", encoding="utf-8") as f:
            header = next(csv.reader(f))
        assert header[:12] == [
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
        ]
        assert "absence_january" in header
        assert "completed_dec" in header
        assert "score_dec" in header
        assert len(header) == 12 + 36

    def test_rows_follow_rank_order(self, tmp_path: Path, ranked) -> None:
        """Rows are written best rank first, whatever the input order."""
        out = tmp_path / "results.csv"
        CSVExporter().export(list(reversed(ranked)), out)
        rows = _read_csv(out)
        assert [r["rank"] for r in rows] == ["1", "2"]
        assert rows[0]["name"] == "Andi"

    def test_values_are_written(self, tmp_path: Path, ranked) -> None:
        """Aggregates and monthly counts land in their columns."""
        out = tmp_path / "results.csv"
        CSVExporter().export(ranked, out)
        andi = _read_csv(out)[0]
        assert andi["total_completed"] == "10"
        assert andi["average_score"] == "4.75"
        assert andi["absence_january"] == "1"
        assert andi["completed_mar"] == "6"
        assert andi["completed_feb"] == "0"
        assert andi["score_mar"] == "5.00"
        assert andi["score_feb"] == ""
        assert andi["salary"] == "8000000"
        assert andi["start_date"] == "2020-01-01"
        assert andi["status"] == "permanent"

    def test_commas_and_quotes_survive(self, tmp_path: Path, ranked) -> None:
        """A note containing commas and quotes round-trips through the CSV reader."""
        ranked[0].note = 'Strong, "reliable" delivery'
        out = tmp_path / "results.csv"
        CSVExporter().export(ranked, out)
        assert _read_csv(out)[0]["note"] == 'Strong, "reliable" delivery'

    def test_registry_leaves_rank_and_note_empty(self, tmp_path: Path, employees) -> None:
        """The merged registry has no rank or note."""
        out = tmp_path / "merged.csv"
        CSVExporter().export_registry(employees, out)
        rows = _read_csv(out)
        assert [r["name"] for r in rows] == ["Andi", "Sari"]
        assert all(r["rank"] == "" and r["note"] == "" for r in rows)

    def test_empty_registry_writes_header_only(self, tmp_path: Path) -> None:
        """No employees still produces a valid file with a header."""
        out = tmp_path / "merged.csv"
        CSVExporter().export_registry([], out)
        assert _read_csv(out) == []
        assert out.read_text(encoding="utf-8").startswith("name,age,")

    def test_merged_file_parses_back(
        self, tmp_path: Path, employees, make_employee, make_month
    ) -> None:
        """A merged CSV re-imports with the same monthly counts, scores and base fields."""
        budi = make_employee(
            "Budi",
            months=[
                make_month("March", absence=1, completed=3, score=4.0),
                make_month("July", absence=2, completed=5, score=3.0),
            ],
        )
        dewi = make_employee("Dewi", months=[make_month("May", completed=12, score=0.0)])
        out = tmp_path / "merged.csv"
        CSVExporter().export_registry([*employees, budi, dewi], out)
        batch = parse_file(out, today=TODAY)
        by_name = {e.name: e for e in batch.employees}
        assert by_name["Andi"].total_completed == 10
        assert by_name["Andi"].total_absence == 1
        assert by_name["Sari"].base.department == "Finance"
        assert by_name["Sari"].history["February"].absence_count == 3
        assert by_name["Andi"].history["January"].performance_score == 4.5
        assert by_name["Budi"].history["March"].performance_score == 4.0
        assert by_name["Budi"].history["July"].performance_score == 3.0
        assert by_name["Budi"].average_score == pytest.approx(3.5)
        assert by_name["Dewi"].history["May"].performance_score == 0.0
        assert by_name["Dewi"].average_score == 0.0


# ---------------------------------------------------------------------------
# TestMarkdownExport
# ---------------------------------------------------------------------------


class TestMarkdownExport:
    """REQUIREMENT: Markdown export produces a readable ranked report.

    WHO: The manager reviewing the ranking outside the terminal
    WHAT: A summary block with the headcount and, when given, stats and
          the note warning; a ranked table in rank order with pipes in
          cells escaped; an insights section when text is given; a
          placeholder line when nobody was ranked
    WHY: A broken table or a silently missing warning misleads the reader
         about how the notes were produced
    """

    def test_summary_and_table(self, tmp_path: Path, ranked, employees) -> None:
        """Summary lines and one table row per employee are written."""
        out = tmp_path / "results.md"
        MarkdownExporter().export(ranked, out, stats=compute_stats(employees))
        content = out.read_text(encoding="utf-8")
        assert content.startswith("# Performance Summary")
        assert "- **Employees ranked:** 2" in content
        assert "- **Total salary:** 14,500,000" in content
        assert "- **Departments:** IT (1), Finance (1)" in content
        assert "| # | Name | Title | Department |" in content
        assert "| 1 | Andi |" in content
        assert content.index("| 1 | Andi |") < content.index("| 2 | Sari |")

    def test_annotation_warning_is_shown(self, tmp_path: Path, ranked) -> None:
        """The annotation warning appears in the summary."""
        out = tmp_path / "results.md"
        MarkdownExporter().export(ranked, out, annotation_warning="LLM notes unavailable: boom")
        assert "- **Note:** LLM notes unavailable: boom" in out.read_text(encoding="utf-8")

    def test_pipes_in_cells_are_escaped(self, tmp_path: Path, make_employee) -> None:
        """A pipe in a department or note does not break the table."""
        ranked, _ = Ranker().rank([make_employee("Andi", department="R&D | Ops")], today=TODAY)
        ranked[0].note = "line one\nline | two"
        out = tmp_path / "results.md"
        MarkdownExporter().export(ranked, out)
        content = out.read_text(encoding="utf-8")
        assert "R&D \\| Ops" in content
        assert "line one line \\| two" in content

    def test_insights_section(self, tmp_path: Path, ranked) -> None:
        """Insights text is appended under its own heading."""
        out = tmp_path / "results.md"
        MarkdownExporter().export(ranked, out, insights="\n- Andi leads delivery\n")
        content = out.read_text(encoding="utf-8")
        assert "## Insights" in content
        assert "- Andi leads delivery" in content

    def test_empty_ranking(self, tmp_path: Path) -> None:
        """No employees yields a placeholder instead of an empty table."""
        out = tmp_path / "results.md"
        MarkdownExporter().export([], out)
        content = out.read_text(encoding="utf-8")
        assert "No results to display." in content
        assert "## Ranking" not in content
