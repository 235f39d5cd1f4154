"""CLI command handlers for perfboard.

Each public function corresponds to a CLI subcommand and encapsulates
the wiring, orchestration, and output for that command.  Every data
command loads its input the same way: the given CSV files reconciled in
command-line order, or the built-in demo employee with ``--demo``.
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from perfboard.errors import ActionableError

if TYPE_CHECKING:
    from perfboard.annotate.llm import LLMClient
    from perfboard.config import Settings
    from perfboard.pipeline.ranker import RankedEmployee
    from perfboard.pipeline.session import Session


# ---------------------------------------------------------------------------
# Shared wiring
# ---------------------------------------------------------------------------


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Load settings from ``--config``, the default path, or built-in defaults.

    Built-in defaults apply only when no ``--config`` was given and the
    default settings file does not exist.
    """
    from perfboard.config import DEFAULT_SETTINGS_PATH, Settings, load_settings

    path = getattr(args, "config", None)
    if path is not None:
        return load_settings(path)
    if DEFAULT_SETTINGS_PATH.exists():
        return load_settings(DEFAULT_SETTINGS_PATH)
    return Settings()


async def _load_session(args: argparse.Namespace, settings: Settings) -> Session:
    from perfboard.pipeline.session import Session

    session = Session(settings)
    if getattr(args, "demo", False):
        if args.files:
            raise ActionableError.validation(
                field_name="files",
                reason="--demo cannot be combined with input files",
                suggestion="Drop --demo to use the files, or drop the files to use the demo",
            )
        session.load_demo()
    elif args.files:
        await session.append(args.files)
    else:
        raise ActionableError.validation(
            field_name="files",
            reason="no input files given",
            suggestion="Pass one or more CSV files, or --demo for sample data",
        )
    return session


def _rank(session: Session, settings: Settings) -> list[RankedEmployee]:
    from perfboard.pipeline.ranker import Ranker

    ranked, _ = Ranker.from_config(settings.ranking).rank(session.employees)
    return ranked


def _llm_client(settings: Settings) -> LLMClient | None:
    from perfboard.annotate.llm import LLMClient

    if not settings.ollama.enabled:
        return None
    return LLMClient.from_config(settings.ollama)


def _print_ranked(ranked: list[RankedEmployee]) -> None:
    for r in ranked:
        e = r.employee
        print(f"{r.rank}. [{r.score:.1f}] {e.name}")
        print(f"   {e.base.title or '-'} | {e.base.department} | {e.base.residence or '-'}")
        print(f"   {r.score_explanation()}")
        print(f"   {r.note}")
        print()


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_merge(args: argparse.Namespace) -> None:
    """Reconcile the input files and write the merged registry as CSV."""
    from perfboard.export import CSVExporter

    settings = resolve_settings(args)

    async def _run() -> None:
        session = await _load_session(args, settings)
        output = Path(args.output) if args.output else Path(settings.output.output_dir) / "merged.csv"
        output.parent.mkdir(parents=True, exist_ok=True)
        CSVExporter().export_registry(session.employees, output)
        print(f"Merged {len(session)} employee(s) → {output}")

    asyncio.run(_run())


def handle_rank(args: argparse.Namespace) -> None:
    """Rank employees, annotate them, print the ranking and export reports."""
    from perfboard.annotate.notes import Annotator
    from perfboard.export import CSVExporter, MarkdownExporter
    from perfboard.pipeline.dashboard import compute_stats

    if args.top is not None and args.top < 1:
        raise ActionableError.validation(
            field_name="--top",
            reason=f"must be at least 1, got {args.top}",
            suggestion="Pass a positive N, or omit --top to print every employee",
        )
    settings = resolve_settings(args)

    async def _run() -> None:
        session = await _load_session(args, settings)
        ranked = _rank(session, settings)
        client = None if args.no_notes else _llm_client(settings)
        result = await Annotator(client).annotate(ranked)

        shown = result.ranked if args.top is None else result.ranked[: args.top]
        print(f"\n{'=' * 60}")
        print(" Ranking Summary")
        print(f"{'=' * 60}")
        print(f" Employees ranked: {len(result.ranked)}")
        print(f" Notes source:     {result.source}")
        if result.warning:
            print(f" Warning:          {result.warning}")
        print(f"{'=' * 60}\n")
        _print_ranked(shown)

        out_dir = Path(settings.output.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        md_path = out_dir / "results.md"
        MarkdownExporter().export(
            result.ranked,
            md_path,
            stats=compute_stats(session.employees),
            annotation_warning=result.warning,
        )
        print(f"Exported Markdown → {md_path}")
        csv_path = out_dir / "results.csv"
        CSVExporter().export(result.ranked, csv_path)
        print(f"Exported CSV      → {csv_path}")

    asyncio.run(_run())


def handle_show(args: argparse.Namespace) -> None:
    """Print one page of the filtered, sorted employee table."""
    from perfboard.pipeline.dashboard import filter_rows, paginate, sort_rows
    from perfboard.pipeline.ranker import tenure_label

    settings = resolve_settings(args)

    async def _run() -> None:
        session = await _load_session(args, settings)
        rows = filter_rows(_rank(session, settings), args.query or "")
        rows = sort_rows(rows, args.sort, ascending=not args.desc)
        view = paginate(rows, args.page, args.per_page or settings.output.per_page)

        if not view.items:
            print("No employees match.")
            return
        for r in view.items:
            e = r.employee
            print(
                f"{r.rank:>3}  {e.name:<24} {e.base.department:<14} {e.base.title:<22} "
                f"{e.base.salary:>12,.0f}  {tenure_label(e.base.start_date):<18} "
                f"done {e.total_completed:>3}  avg {e.average_score:.2f}  "
                f"absent {e.total_absence:>3}"
            )
        print(f"\nPage {view.page}/{view.max_page} ({view.total} employee(s))")

    asyncio.run(_run())


def handle_stats(args: argparse.Namespace) -> None:
    """Print dashboard aggregates."""
    from perfboard.pipeline.dashboard import compute_stats

    settings = resolve_settings(args)

    async def _run() -> None:
        session = await _load_session(args, settings)
        stats = compute_stats(session.employees)
        print(f"Employees:              {stats.headcount}")
        print(f"Total salary:           {stats.total_salary:,.0f}")
        print(f"Average yearly absence: {stats.average_absence}")
        print("\nHeadcount / salary by department:")
        for dept, count in stats.headcount_by_department.items():
            print(f"  - {dept}: {count} ({stats.salary_by_department[dept]:,.0f})")
        print("\nAverage absence per month:")
        for month, value in stats.absence_by_month.items():
            print(f"  {month:<10} {value}")

    asyncio.run(_run())


def handle_insights(args: argparse.Namespace) -> None:
    """Print LLM insights about the top of the ranking."""
    from perfboard.annotate.notes import Annotator

    settings = resolve_settings(args)

    async def _run() -> None:
        session = await _load_session(args, settings)
        ranked = _rank(session, settings)
        text = await Annotator(_llm_client(settings)).insights(ranked, settings.ranking)
        print(text)

    asyncio.run(_run())


def handle_suggest(args: argparse.Namespace) -> None:
    """Print one coaching suggestion per employee, in rank order."""
    from perfboard.annotate.notes import Annotator

    settings = resolve_settings(args)

    async def _run() -> None:
        session = await _load_session(args, settings)
        ranked = _rank(session, settings)
        suggestions = await Annotator(_llm_client(settings)).suggestions(
            ranked, settings.data.reporting_year
        )
        for r in ranked:
            print(f"{r.rank}. {r.name}: {suggestions[r.name]}")

    asyncio.run(_run())


def handle_health(args: argparse.Namespace) -> None:
    """Check that Ollama is reachable and the configured model is pulled."""
    from perfboard.annotate.llm import LLMClient

    settings = resolve_settings(args)
    client = LLMClient.from_config(settings.ollama)
    asyncio.run(client.health_check())
    print(f"Ollama OK — {settings.ollama.llm_model} available at {settings.ollama.base_url}")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_input_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "files",
        nargs="*",
        metavar="FILE",
        help="CSV files, reconciled in the order given",
    )
    parser.add_argument("--demo", action="store_true", help="Use the built-in demo employee")


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="perfboard",
        description="Employee performance reconciliation, ranking and reporting",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="Settings file (default: config/settings.toml if present)",
    )
    parser.add_argument(
        "--log-file",
        action="store_true",
        help="Also write logs to a timestamped file in [output].log_dir",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # -- merge ---------------------------------------------------------------
    merge_p = sub.add_parser("merge", help="Reconcile CSV files into one merged CSV")
    _add_input_args(merge_p)
    merge_p.add_argument(
        "--output",
        type=str,
        default=None,
        metavar="PATH",
        help="Merged CSV path (default: <output_dir>/merged.csv)",
    )

    # -- rank ----------------------------------------------------------------
    rank_p = sub.add_parser("rank", help="Rank employees and export results")
    _add_input_args(rank_p)
    rank_p.add_argument(
        "--no-notes",
        action="store_true",
        help="Skip the LLM and use locally generated notes",
    )
    rank_p.add_argument(
        "--top",
        type=int,
        default=None,
        metavar="N",
        help="Print only the top N employees",
    )

    # -- show ----------------------------------------------------------------
    show_p = sub.add_parser("show", help="Print the employee table")
    _add_input_args(show_p)
    show_p.add_argument("--query", type=str, default=None, help="Filter by name, city, title or department")
    show_p.add_argument("--sort", type=str, default="rank", help="Sort key (default: rank)")
    show_p.add_argument("--desc", action="store_true", help="Sort descending")
    show_p.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    show_p.add_argument(
        "--per-page",
        type=int,
        default=None,
        metavar="N",
        help="Rows per page (default: [output].per_page)",
    )

    # -- stats ---------------------------------------------------------------
    stats_p = sub.add_parser("stats", help="Print dashboard aggregates")
    _add_input_args(stats_p)

    # -- insights ------------------------------------------------------------
    insights_p = sub.add_parser("insights", help="Ask the LLM for team insights")
    _add_input_args(insights_p)

    # -- suggest -------------------------------------------------------------
    suggest_p = sub.add_parser("suggest", help="Coaching suggestions per employee")
    _add_input_args(suggest_p)

    # -- health --------------------------------------------------------------
    sub.add_parser("health", help="Check the Ollama connection and model")

    return parser
