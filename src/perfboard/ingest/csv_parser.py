"""CSV batch parser.

Turns one uploaded CSV file into a :class:`Batch` of
:class:`~perfboard.records.models.EmployeeRecord` objects ready for the
reconciler.  Each record always carries twelve month slots; months the file
does not report get blank placeholders.

Headers are normalised with :func:`~perfboard.text.normalize_header` and
matched against English and Indonesian aliases, so both ``absence_march``
and ``Absensi Maret 2025`` land in the same slot.  Monthly columns take the
form ``<metric>_<month>`` where the month may be a full or three-letter
English or Indonesian name.

Numbers are coerced, never validated: missing or invalid values become
``0`` and negative counts clamp to ``0``.  Rows with an empty name are
dropped; within one file the first row for a name wins.
"""

from __future__ import annotations

import csv
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING

from perfboard.errors import ActionableError
from perfboard.records.models import (
    DEFAULT_REPORTING_YEAR,
    MONTHS,
    BaseFields,
    EmployeeRecord,
    EmploymentStatus,
    MonthlyRecord,
)
from perfboard.text import normalize_header, normalize_name

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Column vocabulary
# ---------------------------------------------------------------------------

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "nama"),
    "age": ("age", "umur"),
    "residence": ("residence", "city", "tempattinggal", "tempat_tinggal", "kotatinggal"),
    "title": ("title", "position", "jabatan", "posisi"),
    "department": ("department", "departemen"),
    "salary": ("salary", "gaji"),
    "start_date": ("start_date", "join_date", "tanggalmasuk", "tanggal_masuk"),
    "tenure": ("tenure", "masakerja", "masa_kerja", "masakerja_tahun"),
    "status": ("status",),
    "year": ("year", "tahun"),
    "avg_score": (
        "avg_score", "average_score", "avg_skor", "avg_skor_kinerja", "avgskorkinerja",
    ),
    "total_completed": ("total_completed", "total_proyek_selesai", "proyek_selesai"),
    "manager_note": ("manager_note", "catatanmanajer", "catatan_manajer"),
}

_HEADER_TO_FIELD: dict[str, str] = {
    alias: name for name, aliases in _FIELD_ALIASES.items() for alias in aliases
}

_METRIC_PREFIXES: dict[str, tuple[str, ...]] = {
    "absence": ("absence", "absensi"),
    "completed": ("completed", "proyek_selesai"),
    "score": ("score", "skor"),
}

_INDONESIAN_MONTHS = (
    "januari", "februari", "maret", "april", "mei", "juni",
    "juli", "agustus", "september", "oktober", "november", "desember",
)
_INDONESIAN_SHORT = (
    "jan", "feb", "mar", "apr", "mei", "jun",
    "jul", "agu", "sep", "okt", "nov", "des",
)

_MONTH_TOKENS: dict[str, str] = {}
for _i, _month in enumerate(MONTHS):
    for _token in (
        _month.lower(),
        _month[:3].lower(),
        _INDONESIAN_MONTHS[_i],
        _INDONESIAN_SHORT[_i],
    ):
        _MONTH_TOKENS.setdefault(_token, _month)

_DIGITS = re.compile(r"\d+")

# A column key is either a field name or a (metric, month) pair
ColumnKey = str | tuple[str, str]


@dataclass
class Batch:
    """One parsed file: its employee records plus row accounting."""

    source: str
    employees: list[EmployeeRecord] = field(default_factory=list)
    skipped_rows: int = 0
    duplicate_rows: int = 0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_file(
    path: str | Path,
    *,
    reporting_year: int = DEFAULT_REPORTING_YEAR,
    default_department: str = "General",
    today: date | None = None,
) -> Batch:
    """Read and parse one CSV file.

    Raises ``ActionableError`` (PARSE) when the file is missing, not
    UTF-8, not comma-separated, has no header row, or has no name column.
    """
    filepath = Path(path)
    source = str(filepath)
    if not filepath.is_file():
        raise ActionableError.parse(
            source=source,
            detail="file",
            raw_error="file not found",
            suggestion=f"Check the path {source}",
        )

    try:
        with open(filepath, encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f)
            fieldnames = list(reader.fieldnames or [])
            rows = list(reader)
    except UnicodeDecodeError as exc:
        raise ActionableError.parse(
            source=source,
            detail="encoding",
            raw_error=str(exc),
            suggestion=f"Save {source} as UTF-8",
        ) from None
    except csv.Error as exc:
        raise ActionableError.parse(
            source=source,
            detail="CSV syntax",
            raw_error=str(exc),
        ) from None

    if not fieldnames:
        raise ActionableError.parse(
            source=source,
            detail="header row",
            raw_error="file is empty",
            suggestion=f"Add a header row to {source}",
        )
    if len(fieldnames) == 1 and ";" in fieldnames[0]:
        raise ActionableError.parse(
            source=source,
            detail="delimiter",
            raw_error="header looks semicolon-separated",
            suggestion="Use commas (,) as the delimiter, not semicolons (;)",
        )

    return parse_rows(
        fieldnames,
        rows,
        source=source,
        reporting_year=reporting_year,
        default_department=default_department,
        today=today,
    )


def parse_rows(
    fieldnames: Sequence[str],
    rows: Iterable[Mapping[str, object]],
    *,
    source: str = "<rows>",
    reporting_year: int = DEFAULT_REPORTING_YEAR,
    default_department: str = "General",
    today: date | None = None,
) -> Batch:
    """Parse already-read CSV rows (``csv.DictReader`` style mappings)."""
    columns = _column_map(fieldnames)
    if "name" not in columns.values():
        raise ActionableError.parse(
            source=source,
            detail="name column",
            raw_error=f"no 'name' or 'nama' column among {list(fieldnames)}",
            suggestion="Add a 'name' column identifying each employee",
        )

    day = today or date.today()
    batch = Batch(source=source)
    seen: set[str] = set()

    for raw in rows:
        values = _resolve_row(raw, columns)
        name = normalize_name(str(values.get("name", "")))
        if not name:
            batch.skipped_rows += 1
            continue
        if name in seen:
            logger.debug("Duplicate row for '%s' in %s — keeping the first", name, source)
            batch.duplicate_rows += 1
            continue
        seen.add(name)
        batch.employees.append(
            _build_employee(name, values, reporting_year, default_department, day)
        )

    logger.info(
        "Parsed %s: %d employee(s), %d row(s) without a name, %d duplicate row(s)",
        source,
        len(batch.employees),
        batch.skipped_rows,
        batch.duplicate_rows,
    )
    return batch


def score_from_completed(total_completed: float, months: int = 12) -> float:
    """Derive a 2.5-4.0 performance score from a yearly completed-work total.

    An average of four or more completed items per month earns the 4.0
    ceiling; zero earns the 2.5 floor.
    """
    average = max(0.0, total_completed / months) if months > 0 else 0.0
    return 2.5 + min(1.5, (average / 4) * 1.5)


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _column_key(header: str) -> ColumnKey | None:
    """Map a raw CSV header to a field name or a (metric, month) pair."""
    key = normalize_header(header)
    if key in _HEADER_TO_FIELD:
        return _HEADER_TO_FIELD[key]
    for metric, prefixes in _METRIC_PREFIXES.items():
        for prefix in prefixes:
            if key.startswith(prefix + "_"):
                month = _MONTH_TOKENS.get(key[len(prefix) + 1 :])
                if month is not None:
                    return (metric, month)
    return None


def _column_map(fieldnames: Sequence[str]) -> dict[str, ColumnKey]:
    columns: dict[str, ColumnKey] = {}
    for header in fieldnames:
        if header is None:
            continue
        key = _column_key(header)
        if key is not None:
            columns[header] = key
    return columns


def _resolve_row(
    raw: Mapping[str, object], columns: dict[str, ColumnKey]
) -> dict[ColumnKey, str]:
    """Collect the first non-empty value for each column key."""
    values: dict[ColumnKey, str] = {}
    for header, key in columns.items():
        cell = raw.get(header)
        text = str(cell).strip() if cell is not None else ""
        if text and key not in values:
            values[key] = text
    return values


def _to_float(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        number = float(value)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _to_count(value: str | None) -> int:
    return max(0, int(_to_float(value)))


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year - years, day=28)


def _start_date(raw_date: str | None, raw_tenure: str | None, today: date) -> date:
    if raw_date:
        try:
            return date.fromisoformat(raw_date[:10])
        except ValueError:
            logger.debug("Unparseable start date '%s' — falling back to tenure", raw_date)
    if raw_tenure:
        match = _DIGITS.search(raw_tenure)
        if match:
            return _years_before(today, int(match.group()))
    return _years_before(today, 1)


def _status(raw: str | None) -> EmploymentStatus:
    text = (raw or "").lower()
    if "tetap" in text or "permanent" in text:
        return EmploymentStatus.PERMANENT
    if "freelance" in text:
        return EmploymentStatus.FREELANCE
    return EmploymentStatus.CONTRACT


def _row_score(values: dict[ColumnKey, str]) -> float:
    score = round(_to_float(values.get("avg_score")), 2)
    if score > 0:
        return score
    total = _to_float(values.get("total_completed"))
    if total > 0:
        return round(score_from_completed(total), 2)
    return 0.0


def _build_employee(
    name: str,
    values: dict[ColumnKey, str],
    reporting_year: int,
    default_department: str,
    today: date,
) -> EmployeeRecord:
    year = int(_to_float(values.get("year")))
    if not 1900 <= year <= 2100:
        year = reporting_year
    row_score = _row_score(values)
    note = values.get("manager_note", "")

    history: dict[str, MonthlyRecord] = {}
    for month in MONTHS:
        absence = _to_count(values.get(("absence", month)))
        completed = _to_count(values.get(("completed", month)))
        if absence == 0 and completed == 0:
            history[month] = MonthlyRecord.blank(month, year)
            continue
        # an explicit monthly cell is kept even when it is 0
        raw_score = values.get(("score", month))
        month_score = row_score if raw_score is None else max(0.0, _to_float(raw_score))
        history[month] = MonthlyRecord(
            month=month,
            year=year,
            absence_count=absence,
            completed_count=completed,
            performance_score=month_score,
            manager_note=note,
        )

    base = BaseFields(
        age=_to_count(values.get("age")),
        residence=values.get("residence", ""),
        title=values.get("title", ""),
        department=values.get("department", default_department),
        salary=max(0.0, _to_float(values.get("salary"))),
        start_date=_start_date(values.get("start_date"), values.get("tenure"), today),
        status=_status(values.get("status")),
    )
    return EmployeeRecord(name=name, base=base, history=history)
