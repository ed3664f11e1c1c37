"""
Provider Manager — the model gateway.

Candidates come from config.MODEL_CANDIDATES ("vendor/model", in order).
open_stream() tries them one after another and returns the first stream
that actually produces text. Once a stream has started no other candidate
is tried, even if that stream fails later.

A candidate is only built when its vendor key is configured:
  google     → GOOGLE_GENERATIVE_AI_API_KEY (or GOOGLE_API_KEY)
  openai     → OPENAI_API_KEY
  anthropic  → ANTHROPIC_API_KEY
"""
from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

import config
from providers.base import AnalysisRequest, StreamingProvider

logger = logging.getLogger(__name__)

# Module-level cache; tests reset it to {}
_providers: dict[str, StreamingProvider] = {}


class ConfigurationError(RuntimeError):
    """No candidate model can be used because its API key is missing."""


class AllModelsFailedError(RuntimeError):
    """Every candidate failed before streaming started."""

    def __init__(self, provider_name: Optional[str], last_error: Optional[BaseException]):
        self.provider_name = provider_name
        self.last_error = last_error
        message = str(last_error) if last_error else "All model attempts failed"
        super().__init__(message)

    @property
    def details(self) -> str:
        err = self.last_error
        if err is None:
            return "No additional details"
        cause = err.__cause__ or err.__context__
        if cause is not None and str(cause):
            return str(cause)
        return f"{self.provider_name}: {type(err).__name__}"


def parse_candidate(entry: str) -> tuple[str, str]:
    """ "openai/gpt-4o-mini" → ("openai", "gpt-4o-mini");  "gemini-2.5-flash" → ("google", …) """
    vendor, sep, model = entry.strip().partition("/")
    if not sep:
        return "google", vendor
    return vendor.lower(), model


def _api_key(vendor: str) -> Optional[str]:
    return {
        "google":    config.GOOGLE_API_KEY,
        "openai":    config.OPENAI_API_KEY,
        "anthropic": config.ANTHROPIC_API_KEY,
    }.get(vendor)


def _build_providers() -> dict[str, StreamingProvider]:
    """
    Instantiate every candidate whose vendor key is available.
    Returns dict keyed by full_name, in candidate order.
    """
    providers: dict[str, StreamingProvider] = {}

    for entry in config.MODEL_CANDIDATES:
        vendor, model = parse_candidate(entry)
        key = _api_key(vendor)
        if not key:
            logger.info("Skipped candidate %s/%s (no API key)", vendor, model)
            continue

        if vendor == "google":
            from providers.gemini_provider import GeminiProvider
            p: StreamingProvider = GeminiProvider(key, model)
        elif vendor == "openai":
            from providers.openai_provider import OpenAIProvider
            p = OpenAIProvider(key, model)
        elif vendor == "anthropic":
            from providers.anthropic_provider import AnthropicProvider
            p = AnthropicProvider(key, model)
        else:
            logger.warning("Unknown vendor in MODEL_CANDIDATES: %s", entry)
            continue

        providers[p.full_name] = p
        logger.info("Loaded candidate: %s", p.full_name)

    if not providers:
        raise ConfigurationError(
            "API key not configured: GOOGLE_GENERATIVE_AI_API_KEY environment variable is missing"
        )
    return providers


def get_providers() -> dict[str, StreamingProvider]:
    global _providers
    if not _providers:
        _providers = _build_providers()
    return _providers


async def _resume(first: str, rest: AsyncIterator[str]) -> AsyncIterator[str]:
    try:
        yield first
        async for text in rest:
            yield text
    finally:
        aclose = getattr(rest, "aclose", None)
        if aclose is not None:
            await aclose()


# ── Core streaming function ───────────────────────────────────────────────────

async def open_stream(request: AnalysisRequest) -> tuple[str, AsyncIterator[str]]:
    """
    Start streaming request on the first candidate that works.

    Returns:
        (provider_full_name, text_fragments)

    Raises ConfigurationError before any network call if no key is set,
    AllModelsFailedError (with the last candidate's error) if none started.
    """
    providers = get_providers()

    last_name: Optional[str] = None
    last_error: Optional[BaseException] = None

    for name, provider in providers.items():
        logger.info("📋 Attempting model: %s", name)
        fragments = provider.stream(request)
        try:
            # Vendors report bad model names / quota on the first read.
            first = await anext(fragments)
        except StopAsyncIteration:
            logger.warning("❌ Model %s returned an empty stream", name)
            last_name, last_error = name, RuntimeError(f"{name} returned no text")
            continue
        except Exception as exc:
            logger.warning("❌ Model %s failed: %s", name, exc)
            last_name, last_error = name, exc
            continue

        logger.info("✅ Streaming from %s", name)
        return name, _resume(first, fragments)

    logger.error("All %d candidate model(s) failed; last: %s", len(providers), last_name)
    raise AllModelsFailedError(last_name, last_error)
