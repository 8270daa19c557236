"""Completion gateway with ordered model fallback over a chat completions provider."""

from __future__ import annotations

import http.client
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from time import perf_counter
from typing import Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from app.config import get_settings

logger = logging.getLogger(__name__)

EMPTY_REPLY_TEXT = "I apologize, but I couldn't generate a response."
_DEPRECATION_MARKERS = ("decommissioned", "deprecated")


class CompletionProviderError(RuntimeError):
    """Raised when one provider call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthError(CompletionProviderError):
    """Provider rejected the configured credentials."""


class ProviderRateLimitError(CompletionProviderError):
    """Provider is throttling requests."""


class ModelUnavailableError(CompletionProviderError):
    """Requested model is unknown or decommissioned."""


class AllModelsExhausted(RuntimeError):
    """Raised when every candidate model failed."""

    def __init__(self, failures: Sequence[tuple[str, Exception]]) -> None:
        self.failures = list(failures)
        self.last_error: Exception | None = self.failures[-1][1] if self.failures else None
        tried = ", ".join(model for model, _ in self.failures) or "none"
        super().__init__(f"All candidate models failed (tried: {tried}): {self.last_error}")


@dataclass(frozen=True, slots=True)
class GenerationParams:
    """Sampling settings; ``None`` leaves the provider default in place."""

    temperature: float | None = 0.7
    max_tokens: int | None = 250
    top_p: float | None = 0.9
    frequency_penalty: float | None = 0.5

    def as_payload(self) -> dict[str, float | int]:
        values = {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
        }
        return {key: value for key, value in values.items() if value is not None}


SUPPORT_CHAT_PARAMS = GenerationParams()


@dataclass(frozen=True, slots=True, order=True)
class CandidateModel:
    order: int
    identifier: str = field(compare=False)


@dataclass(frozen=True, slots=True)
class CompletionResult:
    reply_text: str
    model_used: str


class CompletionProvider(Protocol):
    """Protocol for chat completion providers."""

    def complete(
        self,
        messages: list[dict[str, str]],
        *,
        model: str,
        params: GenerationParams,
    ) -> str:
        """Return assistant text for the provided turns."""


def build_candidates(identifiers: Sequence[str]) -> list[CandidateModel]:
    """Number model identifiers in the order given."""

    return [CandidateModel(order=idx, identifier=identifier) for idx, identifier in enumerate(identifiers)]


@dataclass(slots=True)
class GroqChatClient:
    """Minimal client for Groq's OpenAI-compatible chat completions API."""

    api_key: str
    base_url: str = "https://api.groq.com/openai/v1"
    timeout_seconds: int = 60

    def complete(
        self,
        messages: list[dict[str, str]],
        *,
        model: str,
        params: GenerationParams,
    ) -> str:
        payload: dict[str, object] = {"model": model, "messages": messages}
        payload.update(params.as_payload())
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise provider_error_for_status(exc.code, detail) from exc
        except urllib_error.URLError as exc:
            raise CompletionProviderError(f"Provider request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise CompletionProviderError("Provider request timed out") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise CompletionProviderError(f"Provider request failed: {exc!r}") from exc

        try:
            decoded = json.loads(raw)
            content = decoded["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as exc:
            raise CompletionProviderError("Provider returned an unexpected chat response") from exc
        if not isinstance(content, str) or not content.strip():
            return EMPTY_REPLY_TEXT
        return content.strip()


def provider_error_for_status(status_code: int, detail: str) -> CompletionProviderError:
    """Map a provider HTTP failure onto the typed error hierarchy."""

    message = f"Provider HTTP {status_code}: {_extract_error_message(detail)}"
    lowered = detail.lower()
    if status_code in (401, 403):
        return ProviderAuthError(message, status_code=status_code)
    if status_code == 429:
        return ProviderRateLimitError(message, status_code=status_code)
    if status_code == 404 or any(marker in lowered for marker in _DEPRECATION_MARKERS):
        return ModelUnavailableError(message, status_code=status_code)
    return CompletionProviderError(message, status_code=status_code)


def _extract_error_message(detail: str) -> str:
    try:
        decoded = json.loads(detail)
    except json.JSONDecodeError:
        return detail.strip()[:500]
    if isinstance(decoded, dict):
        error = decoded.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return detail.strip()[:500]


class CompletionGateway:
    """Try candidate models in order; the first successful reply wins."""

    def __init__(
        self,
        provider: CompletionProvider,
        candidates: Sequence[CandidateModel],
        params: GenerationParams = SUPPORT_CHAT_PARAMS,
    ) -> None:
        if not candidates:
            raise ValueError("CompletionGateway requires at least one candidate model.")
        self.provider = provider
        self.candidates = sorted(candidates)
        self.params = params

    @property
    def primary_model(self) -> str:
        return self.candidates[0].identifier

    def generate(self, messages: list[dict[str, str]]) -> CompletionResult:
        failures: list[tuple[str, Exception]] = []
        for candidate in self.candidates:
            started = perf_counter()
            try:
                reply = self.provider.complete(messages, model=candidate.identifier, params=self.params)
            except CompletionProviderError as exc:
                logger.warning(
                    "completion.model_failed model=%s status=%s elapsed_ms=%.2f error=%s",
                    candidate.identifier,
                    exc.status_code,
                    (perf_counter() - started) * 1000.0,
                    exc,
                )
                failures.append((candidate.identifier, exc))
                continue
            logger.info(
                "completion.model_succeeded model=%s attempts=%d elapsed_ms=%.2f",
                candidate.identifier,
                len(failures) + 1,
                (perf_counter() - started) * 1000.0,
            )
            return CompletionResult(reply_text=reply, model_used=candidate.identifier)
        raise AllModelsExhausted(failures)


class _UnconfiguredProvider:
    """Provider used when no API key is set; every call fails as an auth error."""

    def complete(
        self,
        messages: list[dict[str, str]],
        *,
        model: str,
        params: GenerationParams,
    ) -> str:
        raise ProviderAuthError(
            "GROQ_API_KEY is not configured. Set it in backend/.env before using the chat.",
            status_code=401,
        )


def get_completion_gateway() -> CompletionGateway:
    """Return a gateway built from configured candidates and provider credentials."""

    settings = get_settings()
    provider: CompletionProvider
    if settings.groq_api_key:
        provider = GroqChatClient(
            api_key=settings.groq_api_key,
            base_url=settings.groq_base_url,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    else:
        provider = _UnconfiguredProvider()
    return CompletionGateway(provider, build_candidates(settings.candidate_models))
