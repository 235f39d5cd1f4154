"""Global test configuration — shared fixtures and safety guards.

This conftest provides:

1. **Output guard** — makes the real ``output/`` directory read-only so
   tests that forget to use ``tmp_path`` get an immediate ``PermissionError``.

2. **Record factories** — ``make_month`` and ``make_employee`` build real
   frozen records with controlled values; ``write_csv`` writes a batch
   file under ``tmp_path``.

3. **I/O-boundary fixtures** — ``mock_llm`` (an LLMClient with stubbed
   Ollama methods) and ``make_settings`` (settings rooted in ``tmp_path``).
   Only Ollama network I/O is mocked; parsing, reconciliation and export
   run for real.
"""

from __future__ import annotations

import contextlib
import csv
import stat
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from perfboard.annotate.llm import LLMClient
from perfboard.config import OllamaConfig, OutputConfig, Settings
from perfboard.records.models import BaseFields, EmployeeRecord, EmploymentStatus, MonthlyRecord

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

_PROJECT_OUTPUT = Path(__file__).resolve().parent.parent / "output"

# Fixed "today" so tenure-derived values are deterministic.
TODAY = date(2025, 12, 31)


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_month():
    """Factory fixture — returns a callable that produces a MonthlyRecord.

    Usage::

        def test_something(make_month):
            march = make_month("March", absence=1, completed=3, score=4.0)
    """

    def _factory(
        month: str,
        absence: int = 0,
        completed: int = 0,
        score: float = 0.0,
        note: str = "",
        year: int = 2025,
    ) -> MonthlyRecord:
        return MonthlyRecord(
            month=month,
            year=year,
            absence_count=absence,
            completed_count=completed,
            performance_score=score,
            manager_note=note,
        )

    return _factory


@pytest.fixture
def make_employee():
    """Factory fixture — returns a callable that produces an EmployeeRecord.

    ``months`` is a list of MonthlyRecord; every other slot is blank.

    Usage::

        def test_something(make_employee, make_month):
            andi = make_employee("Andi", months=[make_month("March", 1, 3, 4.0)])
            dika = make_employee("Dika", department="Finance", salary=7_000_000)
    """

    def _factory(
        name: str = "Andi Pratama",
        months: Sequence[MonthlyRecord] = (),
        *,
        age: int = 30,
        residence: str = "Jakarta",
        title: str = "Engineer",
        department: str = "IT",
        salary: float = 8_000_000,
        start_date: date | None = date(2020, 1, 1),
        status: EmploymentStatus = EmploymentStatus.PERMANENT,
    ) -> EmployeeRecord:
        return EmployeeRecord(
            name=name,
            base=BaseFields(
                age=age,
                residence=residence,
                title=title,
                department=department,
                salary=salary,
                start_date=start_date,
                status=status,
            ),
            history={m.month: m for m in months},
        )

    return _factory


@pytest.fixture
def write_csv(tmp_path: Path):
    """Factory fixture — returns a callable that writes a CSV under ``tmp_path``.

    Usage::

        def test_something(write_csv):
            path = write_csv("jan.csv", ["name", "absence_jan"], [["Andi", "2"]])
    """

    def _factory(
        filename: str,
        header: Sequence[str],
        rows: Sequence[Sequence[object]],
    ) -> Path:
        path = tmp_path / filename
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows(rows)
        return path

    return _factory


# ---------------------------------------------------------------------------
# I/O-boundary fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_settings(tmp_path: Path):
    """Factory fixture — returns a callable that produces a Settings instance.

    Output and log directories are rooted under ``tmp_path``.
    """

    def _factory(*, ollama_enabled: bool = True, per_page: int = 10) -> Settings:
        return Settings(
            ollama=OllamaConfig(enabled=ollama_enabled),
            output=OutputConfig(
                output_dir=str(tmp_path / "output"),
                per_page=per_page,
                log_dir=str(tmp_path / "logs"),
            ),
        )

    return _factory


@pytest.fixture
def mock_llm() -> LLMClient:
    """LLMClient with stubbed I/O methods — no Ollama connection needed.

    Uses ``LLMClient.__new__`` to create a real instance without calling
    ``__init__`` (which would create an ``ollama.AsyncClient``).  Tests set
    ``mock_llm.generate.return_value`` or ``side_effect`` as needed.
    """
    client = LLMClient.__new__(LLMClient)
    client.base_url = "http://localhost:11434"
    client.llm_model = "mistral:7b"
    client.temperature = 0.5
    client.max_retries = 3
    client.base_delay = 0.0
    client.generate = AsyncMock(return_value="[]")  # type: ignore[method-assign]
    client.health_check = AsyncMock()  # type: ignore[method-assign]
    return client


# ---------------------------------------------------------------------------
# Output safety guard
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _guard_real_output_dir() -> Iterator[None]:
    """Make the real output/ directory read-only during tests.

    Restores original permissions after the session, even on failure.
    If the directory does not exist the guard is silently skipped.
    """
    if not _PROJECT_OUTPUT.is_dir():
        yield
        return

    original_mode = _PROJECT_OUTPUT.stat().st_mode
    _PROJECT_OUTPUT.chmod(original_mode & ~(stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH))
    try:
        yield
    finally:
        with contextlib.suppress(OSError):
            _PROJECT_OUTPUT.chmod(original_mode)
