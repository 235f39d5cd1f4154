"""LLM-written notes, team insights and coaching suggestions.

The :class:`Annotator` asks the LLM for short per-employee notes on a
ranked list.  LLM output is untrusted text: the response is expected to
be a JSON array of ``{"name": ..., "note": ...}`` objects (the Indonesian
``nama`` / ``catatan`` keys are accepted too), possibly wrapped in a
Markdown code fence or surrounded by prose.  Whatever cannot be parsed is
replaced by a locally generated fallback note, so every ranked employee
always ends up with a note.

Coaching suggestions degrade the same way, with a rank-based fallback.
Team insights have no meaningful local fallback and raise instead.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from perfboard.errors import ActionableError
from perfboard.pipeline.ranker import tenure_label
from perfboard.text import normalize_name

if TYPE_CHECKING:
    from collections.abc import Sequence

    from perfboard.annotate.llm import LLMClient
    from perfboard.config import RankingConfig
    from perfboard.pipeline.ranker import RankedEmployee

logger = logging.getLogger(__name__)

_INSIGHTS_TOP_N = 10

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_ARRAY = re.compile(r"\[[\s\S]*\]")
_OBJECT = re.compile(r"\{[\s\S]*\}")

_NOTES_SYSTEM = (
    "You are an HR analyst. Write short, professional notes about employees. "
    "Respond only with JSON."
)

_NOTES_PROMPT = """\
Write a short, professional note (at most two sentences) for each employee
below, based on their rank and score. Focus on areas to improve when the
score is low, or on praise when it is high.

EMPLOYEES:
{employees}

Return only a JSON array of objects {{"name": string, "note": string}}, one
per employee, using the names exactly as given. Example:
[{{"name": "Andi Pratama", "note": "Outstanding performance. Consider for promotion."}}]
"""

_INSIGHTS_SYSTEM = "You are a concise, to-the-point HR assistant."

_INSIGHTS_PROMPT = """\
Provide:
1) 5 practical recommendations to improve performance.
2) The top 3 candidates with a short reason each.
3) 3 risks or improvement areas for the team in general.

Ranking weights: {weights}
Top {count} of the ranking (name, title, department, score, note):
{employees}

Write bullet points, at most 120 words.
"""

_SUGGEST_SYSTEM = (
    "You are an HR coaching assistant. Respond only with valid JSON."
)

_SUGGEST_PROMPT = """\
Given these employees with their rank (1 = best) and monthly performance
figures for {year}, write one concise, motivating suggestion per employee to
help them improve next year.

EMPLOYEES:
{employees}

Rules:
- Supportive tone; one concrete improvement action per person.
- Rank 1: congratulate and suggest stretch goals.
- Low ranks: concrete steps such as training, pairing with a senior, or
  task prioritisation.
- At most 40 words each.

Return a JSON object {{"suggestions": {{"<name>": "<suggestion>", ...}}}}.
"""


@dataclass
class AnnotationResult:
    """Ranked employees with notes, and where those notes came from."""

    ranked: list[RankedEmployee]
    source: str
    warning: str | None = None


# ---------------------------------------------------------------------------
# Local fallbacks
# ---------------------------------------------------------------------------


def fallback_note(entry: RankedEmployee) -> str:
    """Locally generated note used when the LLM gives none."""
    e = entry.employee
    return (
        f"{e.name} is ranked {entry.rank} with {e.total_absence} absence(s), "
        f"salary {e.base.salary:,.0f}, tenure {tenure_label(e.base.start_date)}; "
        "detailed evaluation unavailable, please review manually."
    )


def fallback_suggestion(rank: int) -> str:
    """Rank-based coaching suggestion used when the LLM gives none."""
    if rank == 1:
        return (
            "Great work. Keep it up, look for chances to mentor junior "
            "colleagues and lead one small project this year."
        )
    if rank <= 3:
        return (
            "Good performance. Focus on team communication and documentation "
            "to reach the next level."
        )
    return (
        "Prioritise attendance and attend technical training; ask to pair "
        "with a senior colleague to raise the quality of your work."
    )


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _strip_fences(raw: str) -> str:
    return _FENCE.sub("", raw.strip()).strip()


def _loads(raw: str, pattern: re.Pattern[str]) -> Any:
    """Parse JSON from *raw*, falling back to the first *pattern* match."""
    text = _strip_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        match = pattern.search(text)
        if match is None:
            return None
        try:
            return json.loads(match.group())
        except json.JSONDecodeError:
            return None


def parse_notes_response(raw: str) -> dict[str, str]:
    """Extract ``{normalized name: note}`` pairs from an LLM response.

    Returns an empty dict when nothing usable is found.
    """
    data = _loads(raw, _ARRAY)
    # Some models wrap the array in an object: {"notes": [...]}
    if isinstance(data, dict):
        data = next((v for v in data.values() if isinstance(v, list)), None)
    if not isinstance(data, list):
        return {}

    notes: dict[str, str] = {}
    for item in data:
        if not isinstance(item, dict):
            continue
        name = item.get("name", item.get("nama"))
        note = item.get("note", item.get("catatan"))
        if isinstance(name, str) and isinstance(note, str) and note.strip():
            notes.setdefault(normalize_name(name), note.strip())
    return notes


def parse_suggestions_response(raw: str) -> dict[str, str]:
    """Extract ``{normalized name: suggestion}`` from an LLM response."""
    data = _loads(raw, _OBJECT)
    if not isinstance(data, dict):
        return {}
    suggestions = data.get("suggestions", data)
    if not isinstance(suggestions, dict):
        return {}
    return {
        normalize_name(name): text.strip()
        for name, text in suggestions.items()
        if isinstance(name, str) and isinstance(text, str) and text.strip()
    }


# ---------------------------------------------------------------------------
# Annotator
# ---------------------------------------------------------------------------


class Annotator:
    """Adds LLM notes, insights and suggestions to a ranked list.

    *client* may be ``None`` (LLM disabled); notes and suggestions then
    come entirely from the local fallbacks.
    """

    def __init__(self, client: LLMClient | None) -> None:
        self.client = client

    async def annotate(self, ranked: Sequence[RankedEmployee]) -> AnnotationResult:
        """Fill ``note`` on every entry of *ranked*; never drops an entry."""
        entries = list(ranked)
        if not entries:
            return AnnotationResult(ranked=[], source="fallback")

        notes: dict[str, str] = {}
        warning: str | None = None
        if self.client is None:
            warning = "LLM disabled — notes generated locally"
        else:
            listing = "\n".join(
                f"Rank: {r.rank}, Name: {r.name}, Title: {r.employee.base.title}, "
                f"Score: {r.score:.1f}"
                for r in entries
            )
            try:
                raw = await self.client.generate(
                    _NOTES_PROMPT.format(employees=listing),
                    system=_NOTES_SYSTEM,
                    json_mode=True,
                )
            except ActionableError as exc:
                logger.warning("Note generation failed: %s", exc.error)
                warning = f"LLM notes unavailable: {exc.error}"
            else:
                notes = parse_notes_response(raw)
                if not notes:
                    logger.warning("Unparseable notes response: %.200s", raw)
                    warning = "LLM response could not be parsed — notes generated locally"

        missing = 0
        for r in entries:
            note = notes.get(r.name)
            if note is None:
                note = fallback_note(r)
                missing += 1
            r.note = note

        if notes and missing:
            warning = f"{missing} employee(s) missing from the LLM response — fallback notes used"
        source = "llm" if notes else "fallback"
        logger.info("Annotated %d employee(s) (%s, %d fallback)", len(entries), source, missing)
        return AnnotationResult(ranked=entries, source=source, warning=warning)

    async def insights(
        self,
        ranked: Sequence[RankedEmployee],
        weights: RankingConfig,
    ) -> str:
        """Short bullet-point insights about the top of the ranking.

        Raises :class:`~perfboard.errors.ActionableError` when the LLM is
        disabled or the call fails.
        """
        if self.client is None:
            raise ActionableError.config(
                field_name="ollama.enabled",
                reason="insights need the LLM, which is disabled",
                suggestion="Set [ollama].enabled = true in config/settings.toml",
            )
        top = list(ranked)[:_INSIGHTS_TOP_N]
        listing = json.dumps(
            [
                {
                    "name": r.name,
                    "title": r.employee.base.title,
                    "department": r.employee.base.department,
                    "score": round(r.score, 1),
                    "note": r.note,
                }
                for r in top
            ],
            indent=2,
        )
        weights_json = json.dumps({
            "avg_score": weights.avg_score_weight,
            "completed": weights.completed_weight,
            "absence": weights.absence_weight,
            "tenure": weights.tenure_weight,
            "age": weights.age_weight,
        })
        text = await self.client.generate(
            _INSIGHTS_PROMPT.format(weights=weights_json, count=len(top), employees=listing),
            system=_INSIGHTS_SYSTEM,
        )
        return text.strip()

    async def suggestions(
        self,
        ranked: Sequence[RankedEmployee],
        year: int,
    ) -> dict[str, str]:
        """Coaching suggestion per employee name, in rank order."""
        entries = list(ranked)
        parsed: dict[str, str] = {}
        if self.client is not None and entries:
            payload = json.dumps(
                [
                    {
                        "name": r.name,
                        "rank": r.rank,
                        "department": r.employee.base.department,
                        "months": [
                            {
                                "month": m.month,
                                "absence": m.absence_count,
                                "completed": m.completed_count,
                                "score": m.performance_score,
                            }
                            for m in r.employee.history.values()
                        ],
                    }
                    for r in entries
                ]
            )
            try:
                raw = await self.client.generate(
                    _SUGGEST_PROMPT.format(year=year, employees=payload),
                    system=_SUGGEST_SYSTEM,
                    json_mode=True,
                )
            except ActionableError as exc:
                logger.warning("Suggestion generation failed: %s", exc.error)
            else:
                parsed = parse_suggestions_response(raw)

        return {r.name: parsed.get(r.name) or fallback_suggestion(r.rank) for r in entries}
