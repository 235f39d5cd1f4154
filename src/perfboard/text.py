"""Shared text-processing utilities.

Pure functions with no domain dependencies — safe to import from any
layer (CLI, ingest, pipeline, export).
"""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_YEAR_TOKEN = re.compile(r"_(?:19|20)\d{2}(?=_|$)")


def normalize_name(text: str) -> str:
    """Trim and collapse internal whitespace in an employee name.

    Case is preserved: ``"andi"`` and ``"Andi"`` stay distinct identities.

    >>> normalize_name("  Andi   Pratama ")
    'Andi Pratama'
    """
    return _WHITESPACE.sub(" ", text).strip()


def normalize_header(text: str) -> str:
    """Convert a CSV column header to a canonical snake_case key.

    Lowercases, turns whitespace runs into underscores, drops parentheses
    and any other punctuation, and removes a four-digit year token so
    ``"Absensi Januari 2025"`` and ``"absensi_januari"`` resolve alike.

    >>> normalize_header("Proyek Selesai (Jan)")
    'proyek_selesai_jan'
    >>> normalize_header("proyek_selesai_2025")
    'proyek_selesai'
    """
    key = text.strip().lower()
    key = _WHITESPACE.sub("_", key)
    key = re.sub(r"[^a-z0-9_]", "", key)
    key = _YEAR_TOKEN.sub("", key)
    key = re.sub(r"_+", "_", key)
    return key.strip("_")
