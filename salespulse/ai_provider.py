"""
Sales Pulse — Unified AI Provider
===================================

Thin abstraction over Claude and Groq APIs.
Reads AI_PROVIDER env var to choose the default backend.

Usage:
    from salespulse.ai_provider import ai_complete
    response = await ai_complete(
        task="news",
        system_prompt="",
        user_prompt="Write headlines for these deals...",
    )
    print(response.content)
"""
from __future__ import annotations

import os
import time
from dataclasses import dataclass

from salespulse.logger import setup_logger

logger = setup_logger("ai_provider")


# ─── Response Model ─────────────────────────────────────────

@dataclass
class AIResponse:
    """Standardised response from any AI provider."""
    content: str
    provider: str          # "claude" | "groq"
    model: str
    input_tokens: int
    output_tokens: int
    latency_ms: int


# ─── Provider Config ────────────────────────────────────────

CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-3-haiku-20240307")
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")

DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.9


def default_provider() -> str:
    return os.getenv("AI_PROVIDER", "claude").lower()


def provider_configured(provider: str | None = None) -> bool:
    """True when the API key for *provider* (or the default one) is set."""
    chosen = (provider or default_provider()).lower()
    key = "GROQ_API_KEY" if chosen == "groq" else "ANTHROPIC_API_KEY"
    return bool(os.getenv(key))


# ─── Core Completion ────────────────────────────────────────

async def ai_complete(
    task: str,
    system_prompt: str,
    user_prompt: str,
    *,
    provider: str | None = None,
    model: str | None = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> AIResponse:
    """
    Run an AI completion.

    Args:
        task: What this call is for, used in logs only.
        system_prompt: System-level instructions (may be empty).
        user_prompt: The prompt content.
        provider: Force a specific provider. Defaults to AI_PROVIDER env var.
        model: Force a specific model. Defaults based on provider.
        max_tokens: Max output tokens.
        temperature: Sampling temperature.

    Returns:
        AIResponse with content and token usage.

    Raises:
        ValueError: The provider's API key is not set.
    """
    chosen_provider = (provider or default_provider()).lower()

    if chosen_provider == "groq":
        response = await _call_groq(
            system_prompt, user_prompt,
            model=model or GROQ_MODEL,
            max_tokens=max_tokens,
            temperature=temperature,
        )
    else:
        response = await _call_claude(
            system_prompt, user_prompt,
            model=model or CLAUDE_MODEL,
            max_tokens=max_tokens,
            temperature=temperature,
        )

    logger.info(
        "AI [%s/%s] task=%s tokens=%d+%d latency=%dms",
        response.provider, response.model, task,
        response.input_tokens, response.output_tokens, response.latency_ms,
    )
    return response


# ─── Claude Backend ─────────────────────────────────────────

async def _call_claude(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str,
    max_tokens: int,
    temperature: float,
) -> AIResponse:
    """Call Anthropic Claude API."""
    import anthropic

    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise ValueError("ANTHROPIC_API_KEY not set")

    client = anthropic.AsyncAnthropic(api_key=api_key)

    kwargs = {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": [{"role": "user", "content": user_prompt}],
    }
    if system_prompt:
        kwargs["system"] = system_prompt

    start = time.perf_counter()
    response = await client.messages.create(**kwargs)
    latency_ms = int((time.perf_counter() - start) * 1000)

    content = ""
    for block in response.content:
        if hasattr(block, "text"):
            content += block.text

    return AIResponse(
        content=content,
        provider="claude",
        model=model,
        input_tokens=response.usage.input_tokens,
        output_tokens=response.usage.output_tokens,
        latency_ms=latency_ms,
    )


# ─── Groq Backend ───────────────────────────────────────────

async def _call_groq(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str,
    max_tokens: int,
    temperature: float,
) -> AIResponse:
    """Call Groq API (Llama 3.3 70B)."""
    from groq import AsyncGroq

    api_key = os.getenv("GROQ_API_KEY")
    if not api_key:
        raise ValueError("GROQ_API_KEY not set")

    client = AsyncGroq(api_key=api_key)
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})

    start = time.perf_counter()
    response = await client.chat.completions.create(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    latency_ms = int((time.perf_counter() - start) * 1000)

    choice = response.choices[0]
    usage = response.usage

    return AIResponse(
        content=choice.message.content or "",
        provider="groq",
        model=model,
        input_tokens=usage.prompt_tokens if usage else 0,
        output_tokens=usage.completion_tokens if usage else 0,
        latency_ms=latency_ms,
    )
