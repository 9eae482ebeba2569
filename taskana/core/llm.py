"""
Taskana — LLM Provider Abstraction.

Single public function `complete()` that routes to the configured provider.
Provider is selected on first call via the LLM_PROVIDER env var.
Supports: gemini (default), anthropic, openai, cohere.

Two model tiers per provider: "fast" answers every message, "capable" is
only consulted when the fast tier isn't confident enough.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Literal

logger = logging.getLogger(__name__)

Tier = Literal["fast", "capable"]

# (api_key, model, system, user_message, max_tokens) -> response text
_ProviderFn = Callable[[str, str, str, str, int], Awaitable[str]]

# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_gemini(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
    )
    response = await gm.generate_content_async(
        user_message,
        generation_config=genai.types.GenerationConfig(
            max_output_tokens=max_tokens,
            temperature=0.1,
        ),
    )
    return response.text


async def _complete_anthropic(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        temperature=0.1,
        system=system,
        messages=[{"role": "user", "content": user_message}],
    )
    return response.content[0].text


async def _complete_openai(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        temperature=0.1,
        response_format={"type": "json_object"},
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.choices[0].message.content or ""


async def _complete_cohere(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        temperature=0.1,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.message.content[0].text


# ---------------------------------------------------------------------------
# Provider selection (runs once at first call)
# ---------------------------------------------------------------------------

# name -> (implementation, fast model, capable model)
_PROVIDERS: dict[str, tuple[_ProviderFn, str, str]] = {
    "gemini":    (_complete_gemini,    "gemini-2.0-flash",          "gemini-2.5-pro"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001", "claude-sonnet-4-5-20250929"),
    "openai":    (_complete_openai,    "gpt-4o-mini",               "gpt-4o"),
    "cohere":    (_complete_cohere,    "command-r-08-2024",         "command-a-03-2025"),
}


def _select_provider() -> tuple[_ProviderFn, dict[str, str], str]:
    """Read settings and return (provider_fn, {tier: model}, api_key)."""
    from taskana.config import settings

    provider_name = settings.LLM_PROVIDER.lower()
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    fn, fast_default, capable_default = _PROVIDERS[provider_name]
    models = {
        "fast": settings.LLM_MODEL or fast_default,
        "capable": settings.LLM_MODEL_CAPABLE or capable_default,
    }

    logger.info(
        "LLM provider: %s, fast model: %s, capable model: %s",
        provider_name, models["fast"], models["capable"],
    )
    return fn, models, settings.LLM_API_KEY


# Lazy singleton, populated on first call to complete()
_provider_fn: _ProviderFn | None = None
_models: dict[str, str] = {}
_api_key: str = ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(
    system: str,
    user_message: str,
    max_tokens: int = 256,
    tier: Tier = "fast",
) -> str:
    """Send a prompt to the configured LLM provider and return the response text.

    Raises on API errors; callers should handle exceptions.
    """
    global _provider_fn, _models, _api_key

    if _provider_fn is None:
        _provider_fn, _models, _api_key = _select_provider()

    model = _models[tier]
    logger.debug("LLM call: tier=%s model=%s", tier, model)
    return await _provider_fn(_api_key, model, system, user_message, max_tokens)
