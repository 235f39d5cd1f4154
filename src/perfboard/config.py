"""Settings for perfboard, read from ``config/settings.toml``.

:func:`load_settings` parses the TOML once at startup and checks every
value, so a bad weight or URL stops the run before any CSV is read or
any LLM call is made.  Four optional tables map onto four dataclasses:
``[data]``, ``[ranking]``, ``[ollama]`` and ``[output]``.  Keys that are
left out keep the defaults declared below.
"""

from __future__ import annotations

import math
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from perfboard.errors import ActionableError
from perfboard.records.models import DEFAULT_REPORTING_YEAR

# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------


@dataclass
class DataConfig:
    """Ingestion defaults from ``[data]``."""

    reporting_year: int = DEFAULT_REPORTING_YEAR
    default_department: str = "General"


@dataclass
class RankingConfig:
    """Linear ranking weights from ``[ranking]``.

    ``absence_weight`` is negative by default: every absence day lowers
    the ranking score.
    """

    avg_score_weight: float = 10.0
    completed_weight: float = 2.0
    absence_weight: float = -5.0
    tenure_weight: float = 1.5
    age_weight: float = 0.1


@dataclass
class OllamaConfig:
    """Ollama connection settings from ``[ollama]``."""

    enabled: bool = True
    base_url: str = "http://localhost:11434"
    llm_model: str = "mistral:7b"
    temperature: float = 0.5


@dataclass
class OutputConfig:
    """Output settings from ``[output]``."""

    output_dir: str = "./output"
    per_page: int = 10
    log_dir: str = "data/logs"


@dataclass
class Settings:
    """Top-level validated configuration."""

    data: DataConfig = field(default_factory=DataConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Default settings path
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS_PATH = Path("config/settings.toml")

_WEIGHT_FIELDS = (
    "avg_score_weight",
    "completed_weight",
    "absence_weight",
    "tenure_weight",
    "age_weight",
)


# ---------------------------------------------------------------------------
# Loading and validation
# ---------------------------------------------------------------------------


def load_settings(path: str | Path = DEFAULT_SETTINGS_PATH) -> Settings:
    """Load and validate settings from a TOML file.

    Raises :class:`~perfboard.errors.ActionableError`:
      - CONFIG if the file is missing
      - PARSE if the TOML is malformed
      - VALIDATION if field values are of the wrong type or out of range

    Returns a fully validated :class:`Settings` instance.
    """
    filepath = Path(path)
    if not filepath.exists():
        raise ActionableError.config(
            field_name="settings_path",
            reason=f"Settings file not found: {filepath}",
            suggestion=f"Create {filepath} or copy from config/settings.toml",
        )

    raw_text = filepath.read_text(encoding="utf-8")
    try:
        data = tomllib.loads(raw_text)
    except tomllib.TOMLDecodeError as exc:
        raise ActionableError.parse(
            source=str(filepath),
            detail="TOML syntax",
            raw_error=str(exc),
            suggestion=f"Fix TOML syntax in {filepath}",
        ) from None

    return _validate(data)


def _validate(data: dict[str, object]) -> Settings:
    """Validate raw TOML data and return a Settings instance."""

    # -- data section --------------------------------------------------------
    data_section = _section(data, "data")
    reporting_year = _number(data_section, "data", "reporting_year", DEFAULT_REPORTING_YEAR)
    if not 1900 <= reporting_year <= 2100:
        raise ActionableError.validation(
            field_name="data.reporting_year",
            reason=f"is {reporting_year} — must be between 1900 and 2100",
            suggestion="Set [data].reporting_year to a four-digit year",
        )
    data_cfg = DataConfig(
        reporting_year=int(reporting_year),
        default_department=str(data_section.get("default_department", "General")),
    )

    # -- ranking section -----------------------------------------------------
    ranking_section = _section(data, "ranking")
    defaults = RankingConfig()
    weights = {
        name: float(_number(ranking_section, "ranking", name, getattr(defaults, name)))
        for name in _WEIGHT_FIELDS
    }
    ranking = RankingConfig(**weights)

    # -- ollama section ------------------------------------------------------
    ollama_section = _section(data, "ollama")
    base_url = str(ollama_section.get("base_url", "http://localhost:11434"))
    if not base_url.startswith(("http://", "https://")):
        raise ActionableError.validation(
            field_name="ollama.base_url",
            reason=f"'{base_url}' is missing a scheme (http:// or https://)",
            suggestion="Set [ollama].base_url to a URL starting with http:// or https://",
        )
    temperature = float(_number(ollama_section, "ollama", "temperature", 0.5))
    if not 0.0 <= temperature <= 2.0:
        raise ActionableError.validation(
            field_name="ollama.temperature",
            reason=f"is {temperature} — must be between 0.0 and 2.0",
            suggestion="Set [ollama].temperature to a value between 0.0 and 2.0",
        )
    ollama = OllamaConfig(
        enabled=bool(ollama_section.get("enabled", True)),
        base_url=base_url,
        llm_model=str(ollama_section.get("llm_model", "mistral:7b")),
        temperature=temperature,
    )

    # -- output section ------------------------------------------------------
    output_section = _section(data, "output")
    per_page = int(_number(output_section, "output", "per_page", 10))
    if per_page < 1:
        raise ActionableError.validation(
            field_name="output.per_page",
            reason=f"is {per_page} — must be >= 1",
            suggestion="Set [output].per_page to a positive integer",
        )
    output = OutputConfig(
        output_dir=str(output_section.get("output_dir", "./output")),
        per_page=per_page,
        log_dir=str(output_section.get("log_dir", "data/logs")),
    )

    return Settings(data=data_cfg, ranking=ranking, ollama=ollama, output=output)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _section(data: dict[str, object], name: str) -> dict[str, object]:
    """Return an optional top-level section, or raise CONFIG if it is not a table."""
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ActionableError.config(
            field_name=name,
            reason=f"[{name}] must be a table, not {type(section).__name__}",
            suggestion=f"Define [{name}] as a TOML table",
        )
    return section


def _number(
    section: dict[str, object], section_name: str, field_name: str, default: float
) -> float:
    """Return a numeric field, or raise VALIDATION for non-numeric values."""
    value = section.get(field_name, default)
    # bool is an int subclass; "true" is never a meaningful weight
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ActionableError.validation(
            field_name=f"{section_name}.{field_name}",
            reason=f"is {value!r} — must be a finite number",
            suggestion=f"Set [{section_name}].{field_name} to a number",
        )
    return value
