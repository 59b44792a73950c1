"""
LLM Client
Completion calls against OpenAI, Anthropic and Grok (xAI) used for quiz generation
FILE: quizcore/services/llm_client.py
"""
import os
import asyncio
import logging
from typing import Optional
from enum import Enum

import httpx

from quizcore.core.config import settings

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GROK = "grok"


class LLMClientError(Exception):
    """Base exception for LLM client errors"""
    pass


class LLMTimeoutError(LLMClientError):
    """Raised when LLM request times out"""
    pass


class LLMAPIError(LLMClientError):
    """Raised when LLM API returns an error"""
    pass


OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
GROK_API_URL = "https://api.x.ai/v1/chat/completions"

MAX_RETRIES = 3
INITIAL_BACKOFF = 1.0  # seconds
MAX_TOKENS = 8192

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
GROK_MODEL = os.getenv("GROK_MODEL", "grok-3-mini-beta")


async def _retry_with_backoff(
    coro_func,
    max_retries: int = MAX_RETRIES,
    initial_backoff: float = INITIAL_BACKOFF
):
    """
    Execute coroutine with exponential backoff retry

    Client errors (4xx) other than 429 are raised immediately.

    Raises:
        Last exception if all retries exhausted
    """
    last_exception = None
    backoff = initial_backoff

    for attempt in range(max_retries + 1):
        try:
            return await coro_func()
        except (httpx.TimeoutException, httpx.HTTPStatusError) as e:
            last_exception = e

            if attempt == max_retries:
                break

            if isinstance(e, httpx.HTTPStatusError):
                if 400 <= e.response.status_code < 500 and e.response.status_code != 429:
                    raise

            logger.warning(
                f"⚠️ Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {backoff:.1f}s..."
            )

            await asyncio.sleep(backoff)
            backoff *= 2

    raise last_exception


async def _call_openai_compatible(
    system: str,
    prompt: str,
    api_url: str,
    api_key: str,
    model: str,
    provider_name: str,
    timeout: float
) -> str:
    """Call an OpenAI-compatible Chat Completions API (OpenAI, Grok)"""
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json"
    }

    payload = {
        "model": model,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt}
        ],
        "temperature": 0.7,
        "max_tokens": MAX_TOKENS
    }

    async def make_request():
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(api_url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()

    try:
        data = await _retry_with_backoff(make_request)
        content = data["choices"][0]["message"]["content"]
        logger.info(f"✅ {provider_name} response received ({len(content)} chars)")
        return content

    except httpx.TimeoutException as e:
        logger.error(f"❌ {provider_name} request timed out after {timeout}s")
        raise LLMTimeoutError(f"{provider_name} request timed out: {e}")

    except httpx.HTTPStatusError as e:
        logger.error(f"❌ {provider_name} API error: {e.response.status_code}")
        raise LLMAPIError(f"{provider_name} API error: {e.response.text}")


async def _call_anthropic(system: str, prompt: str, timeout: float) -> str:
    """Call Anthropic Messages API"""
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise LLMClientError("ANTHROPIC_API_KEY environment variable not set")

    headers = {
        "x-api-key": api_key,
        "Content-Type": "application/json",
        "anthropic-version": "2023-06-01"
    }

    payload = {
        "model": ANTHROPIC_MODEL,
        "max_tokens": MAX_TOKENS,
        "system": system,
        "messages": [
            {"role": "user", "content": prompt}
        ]
    }

    async def make_request():
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(ANTHROPIC_API_URL, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()

    try:
        data = await _retry_with_backoff(make_request)
        content = data["content"][0]["text"]
        logger.info(f"✅ Anthropic response received ({len(content)} chars)")
        return content

    except httpx.TimeoutException as e:
        logger.error(f"❌ Anthropic request timed out after {timeout}s")
        raise LLMTimeoutError(f"Anthropic request timed out: {e}")

    except httpx.HTTPStatusError as e:
        logger.error(f"❌ Anthropic API error: {e.response.status_code}")
        raise LLMAPIError(f"Anthropic API error: {e.response.text}")


def _openai_compatible_target(provider: str):
    if provider == LLMProvider.OPENAI:
        return OPENAI_API_URL, os.getenv("OPENAI_API_KEY"), OPENAI_MODEL, "OpenAI", "OPENAI_API_KEY"
    return (
        GROK_API_URL,
        os.getenv("GROK_API_KEY") or os.getenv("XAI_API_KEY"),
        GROK_MODEL,
        "Grok",
        "GROK_API_KEY or XAI_API_KEY"
    )


async def generate_completion(
    system: str,
    prompt: str,
    provider: Optional[str] = None,
    timeout: Optional[float] = None
) -> str:
    """
    Run one completion against the selected provider

    Args:
        system: System instruction
        prompt: User prompt
        provider: "openai", "anthropic" or "grok" (defaults to settings)
        timeout: Request timeout in seconds (defaults to settings)

    Returns:
        Raw text returned by the model (no parsing)

    Raises:
        LLMClientError: If API key is missing
        LLMTimeoutError: If request times out after retries
        LLMAPIError: If API returns an error
        ValueError: If invalid provider specified
    """
    timeout = timeout or settings.llm_timeout_seconds
    provider = (provider or settings.default_llm_provider).lower()

    logger.info(f"🤖 Generating quiz via {provider} (timeout: {timeout}s)")

    if provider == LLMProvider.ANTHROPIC:
        return await _call_anthropic(system, prompt, timeout)

    if provider in (LLMProvider.OPENAI, LLMProvider.GROK):
        api_url, api_key, model, name, env_name = _openai_compatible_target(provider)
        if not api_key:
            raise LLMClientError(f"{env_name} environment variable not set")
        return await _call_openai_compatible(system, prompt, api_url, api_key, model, name, timeout)

    raise ValueError(
        f"Invalid provider: {provider}. "
        f"Supported providers: {[p.value for p in LLMProvider]}"
    )


def provider_status(provider: Optional[str] = None) -> dict:
    """
    Report whether a provider has credentials configured

    Returns:
        Status dictionary (no network call is made)
    """
    provider = (provider or settings.default_llm_provider).lower()

    if provider == LLMProvider.ANTHROPIC:
        api_key, model = os.getenv("ANTHROPIC_API_KEY"), ANTHROPIC_MODEL
    elif provider in (LLMProvider.OPENAI, LLMProvider.GROK):
        _, api_key, model, _, _ = _openai_compatible_target(provider)
    else:
        return {"provider": provider, "status": "error", "message": "Invalid provider"}

    configured = bool(api_key)
    return {
        "provider": provider,
        "configured": configured,
        "model": model,
        "status": "ready" if configured else "not_configured"
    }
