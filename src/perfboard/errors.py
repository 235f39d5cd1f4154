"""Structured, recoverable errors for perfboard.

Every failure that reaches the operator is an :class:`ActionableError`.
Its :class:`ErrorType` says how to recover (fix a setting, start Ollama,
repair a CSV file), not which module raised it.  Besides the message each
error carries a one-line ``suggestion`` for the terminal, numbered
``troubleshooting`` steps, and ``ai_guidance`` for an agent driving the
CLI.

Errors only come from the edges: settings, CSV batches and the LLM
provider.  Reconciling well-formed records never raises.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

_CONNECTION_HINTS = ("timeout", "timed out", "connection refused", "unreachable", "resolve")
_MODEL_HINTS = ("model", "pull")


class ErrorType(StrEnum):
    """How the operator recovers from the error."""

    CONFIG = "config"  # edit settings.toml
    CONNECTION = "connection"  # start or reach Ollama
    LLM = "llm"  # pull the model or retry
    PARSE = "parse"  # repair the input file
    VALIDATION = "validation"  # pass a different value
    UNEXPECTED = "unexpected"  # read the logs


@dataclass(frozen=True)
class AIGuidance:
    """Next actions for an agent consuming the error."""

    action_required: str
    command: str | None = None
    checks: list[str] | None = None
    steps: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class Troubleshooting:
    """Numbered recovery steps printed for the operator."""

    steps: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"steps": list(self.steps)}


@dataclass
class ActionableError(Exception):
    """An error that knows how it can be fixed.

    Build instances through the classmethod factories; each one fills in
    the suggestion and guidance for its recovery path.
    """

    error: str
    error_type: ErrorType
    service: str

    success: bool = field(default=False, init=False)
    suggestion: str | None = None
    ai_guidance: AIGuidance | None = None
    troubleshooting: Troubleshooting | None = None
    context: dict[str, Any] | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def __post_init__(self) -> None:
        super().__init__(self.error)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form of the error, without empty keys."""
        payload: dict[str, Any] = {
            "success": self.success,
            "error": self.error,
            "error_type": self.error_type.value,
            "service": self.service,
            "timestamp": self.timestamp,
            "suggestion": self.suggestion,
            "ai_guidance": self.ai_guidance.to_dict() if self.ai_guidance else None,
            "troubleshooting": self.troubleshooting.to_dict() if self.troubleshooting else None,
            "context": self.context,
        }
        return {k: v for k, v in payload.items() if v is not None}

    # -- factories -----------------------------------------------------------

    @classmethod
    def config(
        cls,
        field_name: str,
        reason: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """A settings file that is missing or structurally wrong."""
        return cls(
            error=f"Bad setting '{field_name}': {reason}",
            error_type=ErrorType.CONFIG,
            service="settings.toml",
            suggestion=suggestion or f"Edit '{field_name}' in config/settings.toml",
            ai_guidance=AIGuidance(
                action_required=f"Edit '{field_name}' in the settings file passed with --config",
                checks=[
                    "Does the settings file exist at the given path?",
                    f"Is '{field_name}' spelled and typed as documented?",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    "1. Open config/settings.toml (or the --config file)",
                    f"2. Find '{field_name}'",
                    f"3. Correct it: {reason}",
                    "4. Run the command again",
                ]
            ),
        )

    @classmethod
    def connection(
        cls,
        service: str,
        url: str,
        raw_error: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """The LLM provider cannot be reached."""
        return cls(
            error=f"{service} unreachable at {url}: {raw_error}",
            error_type=ErrorType.CONNECTION,
            service=service,
            suggestion=suggestion or f"Start {service} (ollama serve) or fix [ollama].base_url",
            ai_guidance=AIGuidance(
                action_required=f"Make {service} reachable at {url}",
                command=f"curl -s {url}/api/tags",
                checks=[
                    f"Is the {service} server process running?",
                    "Does [ollama].base_url match the server address?",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    "1. Start the server: ollama serve",
                    f"2. Check it: curl -s {url}/api/tags",
                    "3. Or skip the LLM: perfboard rank --no-notes",
                ]
            ),
        )

    @classmethod
    def llm(
        cls,
        model: str,
        raw_error: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """A chat call that failed for good, or a model that is not pulled."""
        return cls(
            error=f"Model '{model}' failed: {raw_error}",
            error_type=ErrorType.LLM,
            service="Ollama",
            suggestion=suggestion or f"Check that '{model}' is pulled, then retry",
            ai_guidance=AIGuidance(
                action_required=f"Confirm '{model}' is available to Ollama",
                command=f"ollama list | grep {model.split(':')[0]}",
                checks=[
                    f"Does 'ollama list' show {model}?",
                    "Is the machine short on memory for this model?",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    f"1. ollama pull {model}",
                    "2. Or set [ollama].llm_model to a model you have",
                    "3. Run the command again",
                ]
            ),
        )

    @classmethod
    def parse(
        cls,
        source: str,
        detail: str,
        raw_error: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """An input file (CSV batch or TOML settings) that cannot be read."""
        return cls(
            error=f"Could not read {source} ({detail}): {raw_error}",
            error_type=ErrorType.PARSE,
            service=source,
            suggestion=suggestion or f"Repair the {detail} of {source}",
            ai_guidance=AIGuidance(
                action_required=f"Repair the {detail} of {source}",
                checks=[
                    "Is the file UTF-8 text?",
                    "Is it comma-separated with a header row and a name column?",
                ],
            ),
            troubleshooting=Troubleshooting(
                steps=[
                    f"1. Open {source}",
                    f"2. Look at the {detail}",
                    "3. Export it again as UTF-8 CSV with commas",
                ]
            ),
        )

    @classmethod
    def validation(
        cls,
        field_name: str,
        reason: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """A value that has the wrong type or is out of range."""
        return cls(
            error=f"Invalid {field_name}: {reason}",
            error_type=ErrorType.VALIDATION,
            service="validation",
            suggestion=suggestion or f"Change {field_name} ({reason})",
            ai_guidance=AIGuidance(action_required=f"Supply a valid {field_name}"),
            troubleshooting=Troubleshooting(
                steps=[f"1. {field_name}: {reason}", "2. Fix the value and run again"]
            ),
        )

    @classmethod
    def unexpected(
        cls,
        service: str,
        operation: str,
        raw_error: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        return cls(
            error=f"{operation} failed unexpectedly in {service}: {raw_error}",
            error_type=ErrorType.UNEXPECTED,
            service=service,
            suggestion=suggestion or "Re-run with --log-file and inspect the log",
            ai_guidance=AIGuidance(
                action_required="Inspect the traceback in the log file",
                command="perfboard --log-file <command>",
            ),
        )

    @classmethod
    def from_exception(
        cls,
        error: Exception,
        service: str,
        operation: str,
        *,
        suggestion: str | None = None,
    ) -> ActionableError:
        """Wrap an arbitrary exception, guessing the recovery path from its text.

        *suggestion* overrides the guessed one when given.
        """
        raw_error = str(error)
        lowered = raw_error.lower()
        if any(hint in lowered for hint in _CONNECTION_HINTS):
            return cls.connection(service, "(unknown URL)", raw_error, suggestion=suggestion)
        if any(hint in lowered for hint in _MODEL_HINTS):
            return cls.llm(service, raw_error, suggestion=suggestion)
        return cls.unexpected(service, operation, raw_error, suggestion=suggestion)
