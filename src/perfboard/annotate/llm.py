"""Ollama chat wrapper with retry logic.

Thin layer over :class:`ollama.AsyncClient` used by the annotator:

- **Generation**: system + user prompt → LLM response text, optionally
  constrained to JSON output
- **Health check**: verify Ollama is up and the configured model is pulled
- **Retry with backoff**: transient 408/429/5xx and connection errors are
  retried up to ``max_retries`` times with exponential backoff

Every failure surfaces as an :class:`~perfboard.errors.ActionableError`
so the CLI can print a fix instead of a traceback.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from perfboard.config import OllamaConfig

import ollama as ollama_sdk

from perfboard.errors import ActionableError, ErrorType
from perfboard.logging import logger

_T = TypeVar("_T")

# Transient server-side statuses; anything else (404 unknown model) is final
_RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class LLMClient:
    """Wraps Ollama chat calls with backoff and error handling.

    Usage::

        client = LLMClient(base_url="http://localhost:11434", llm_model="mistral:7b")
        await client.health_check()
        text = await client.generate("Summarise the team", system="You are an HR analyst.")
    """

    def __init__(
        self,
        base_url: str,
        llm_model: str,
        *,
        temperature: float = 0.5,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        self.base_url = base_url
        self.llm_model = llm_model
        self.temperature = temperature
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._client = ollama_sdk.AsyncClient(host=base_url)

    @classmethod
    def from_config(cls, config: OllamaConfig) -> LLMClient:
        return cls(
            base_url=config.base_url,
            llm_model=config.llm_model,
            temperature=config.temperature,
        )

    # -- Public API ----------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        *,
        system: str,
        json_mode: bool = False,
    ) -> str:
        """Send *prompt* under the *system* role and return the raw response.

        With ``json_mode`` the model is asked for JSON output; the caller
        still parses defensively.  Raises VALIDATION for an empty prompt.
        """
        cleaned = prompt.strip()
        if not cleaned:
            raise ActionableError(
                error="Cannot send an empty prompt",
                error_type=ErrorType.VALIDATION,
                service="Ollama",
                suggestion="Provide a non-empty prompt",
            )

        async def _call() -> str:
            response = await self._client.chat(
                model=self.llm_model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": cleaned},
                ],
                format="json" if json_mode else "",
                options={"temperature": self.temperature},
            )
            return response.message.content or ""

        return await self._with_retry(_call, operation="generate")

    async def health_check(self) -> None:
        """Verify Ollama is reachable and the configured model is available.

        Raises :class:`~perfboard.errors.ActionableError`:
          - CONNECTION if Ollama is unreachable
          - LLM if the model is not pulled
        """
        try:
            response = await self._client.list()
        except (ConnectionError, OSError) as exc:
            raise ActionableError.connection(
                service="Ollama",
                url=self.base_url,
                raw_error=str(exc),
            ) from None

        listed = {_untagged(m.model) for m in response.models if m.model}
        if _untagged(self.llm_model) not in listed:
            raise ActionableError.llm(
                model=self.llm_model,
                raw_error=f"Model '{self.llm_model}' is not pulled in Ollama",
                suggestion=f"Run: ollama pull {self.llm_model}",
            )

        logger.info("Ollama reachable at %s, model %s pulled", self.base_url, self.llm_model)

    # -- Retry logic ---------------------------------------------------------

    async def _with_retry(
        self,
        fn: Callable[[], Awaitable[_T]],
        *,
        operation: str,
    ) -> _T:
        """Call *fn* with exponential backoff on retryable errors.

        Non-retryable errors (e.g. 404 model not found) fail immediately.
        After ``max_retries`` attempts, raises an LLM error.
        """
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await fn()
            except ollama_sdk.ResponseError as exc:
                last_error = exc
                if exc.status_code not in _RETRYABLE_STATUS_CODES:
                    raise ActionableError.llm(
                        model=self.llm_model,
                        raw_error=str(exc),
                    ) from None
                status = f"status {exc.status_code}"
            except (ConnectionError, OSError) as exc:
                last_error = exc
                status = "connection failed"

            if attempt < self.max_retries:
                delay = self.base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "Ollama %s attempt %d/%d failed (%s), retrying in %.1fs: %s",
                    operation,
                    attempt,
                    self.max_retries,
                    status,
                    delay,
                    last_error,
                )
                await asyncio.sleep(delay)

        raise ActionableError.llm(
            model=self.llm_model,
            raw_error=f"Failed after {self.max_retries} attempts: {last_error}",
            suggestion="Retry later, or run with --no-notes to skip the LLM",
        )


def _untagged(model: str) -> str:
    """``llama3:latest`` and ``llama3`` are the same model."""
    return model.removesuffix(":latest")
