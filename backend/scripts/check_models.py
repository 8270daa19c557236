"""Probe the completion provider for a working chat model.

Usage (from repo root):
    python backend/scripts/check_models.py

Usage (from backend/):
    python scripts/check_models.py [--model MODEL ...]
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app.config import get_settings
from app.services.completion import (
    CompletionProvider,
    CompletionProviderError,
    GenerationParams,
    GroqChatClient,
    ModelUnavailableError,
)

PROBE_MODELS = [
    "llama-3.1-8b-instant",
    "llama-3.2-1b-preview",
    "llama-3.2-3b-preview",
    "llama-3.3-70b-versatile",
    "gemma2-9b-it",
    "mixtral-8x7b-32768",
    "qwen-2.5-32b",
    "llama3-70b-8192",
]
PROBE_MESSAGES = [
    {"role": "system", "content": "You are a test assistant."},
    {"role": "user", "content": 'Say "Hello" only.'},
]
PROBE_PARAMS = GenerationParams(temperature=None, max_tokens=5, top_p=None, frequency_penalty=None)


def describe_failure(exc: CompletionProviderError) -> str:
    """Short status label for a failed probe."""

    message = str(exc)
    if "decommissioned" in message.lower():
        return "DEPRECATED"
    if isinstance(exc, ModelUnavailableError) and exc.status_code == 404:
        return "NOT FOUND"
    return f"ERROR - {message}"


def find_working_model(
    provider: CompletionProvider,
    models: list[str],
    *,
    pause_seconds: float = 0.2,
) -> str | None:
    """Return the first model that answers the probe prompt."""

    for model in models:
        print(f"Trying: {model}")
        started = time.perf_counter()
        try:
            reply = provider.complete(PROBE_MESSAGES, model=model, params=PROBE_PARAMS)
        except CompletionProviderError as exc:
            print(f"  {model}: {describe_failure(exc)}\n")
            time.sleep(pause_seconds)
            continue
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        print(f"  {model}: SUCCESS ({elapsed_ms:.0f}ms) - {reply!r}\n")
        return model
    print("No working models found from the test list.")
    return None


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--model", action="append", dest="models", help="Model id to probe (repeatable).")
    args = parser.parse_args()

    settings = get_settings()
    if not settings.groq_api_key:
        print("GROQ_API_KEY is not configured. Set it in backend/.env first.")
        return 2

    provider = GroqChatClient(
        api_key=settings.groq_api_key,
        base_url=settings.groq_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    working = find_working_model(provider, args.models or PROBE_MODELS)
    if working is None:
        print("Consider another provider or update CANDIDATE_MODELS.")
        return 1
    print(f"RECOMMENDED MODEL: {working}")
    print(f'Put it first in CANDIDATE_MODELS, e.g. CANDIDATE_MODELS=\'["{working}"]\'')
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
