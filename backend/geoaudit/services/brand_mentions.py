from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit

import httpx
from openai import AsyncOpenAI

from geoaudit.core.config import settings
from geoaudit.schemas.audit import MentionResult
from geoaudit.services.https_check import normalize_url

logger = logging.getLogger(__name__)

CHATGPT = "chatgpt"
GEMINI = "gemini"

PROMPT_TEMPLATE = "Find information about services or products offered by {domain}. Keep response under 100 words."


def extract_domain(url: str | None) -> str:
    """Lower-cased host of ``url`` without a leading ``www.``; empty when there is none."""
    try:
        host = urlsplit(normalize_url(url)).hostname or ""
    except ValueError:
        return ""
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def is_mentioned(answer: str | None, domain: str) -> bool:
    if not domain:
        return False
    text = (answer or "").lower()
    first_label = domain.split(".")[0]
    return domain in text or (bool(first_label) and first_label in text)


def fallback(provider: str) -> MentionResult:
    return MentionResult(provider=provider, mentioned=False, fallback=True)


async def ask_openai(prompt: str) -> str:
    async with AsyncOpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.probe_timeout_seconds,
        max_retries=0,
    ) as client:
        completion = await client.chat.completions.create(
            model=settings.openai_model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=settings.openai_max_tokens,
        )
    return completion.choices[0].message.content or ""


def _gemini_text(data: dict[str, Any]) -> str:
    return data["candidates"][0]["content"]["parts"][0]["text"]


async def ask_gemini(prompt: str) -> str:
    url = f"{settings.gemini_url.rstrip('/')}/{settings.gemini_model}:generateContent"
    payload = {"contents": [{"parts": [{"text": prompt}]}]}
    headers = {"x-goog-api-key": settings.gemini_api_key or ""}
    async with httpx.AsyncClient(timeout=settings.probe_timeout_seconds) as client:
        resp = await client.post(url, json=payload, headers=headers)
        resp.raise_for_status()
        return _gemini_text(resp.json())


async def _check_mention(
    provider: str,
    ask: Callable[[str], Awaitable[str]],
    api_key: str | None,
    url: str,
) -> MentionResult:
    domain = extract_domain(url)
    if not domain:
        logger.warning("%s probe skipped: no domain in %r", provider, url)
        return fallback(provider)
    if not (api_key or "").strip():
        logger.warning("%s probe skipped: API key not configured", provider)
        return fallback(provider)
    try:
        answer = await ask(PROMPT_TEMPLATE.format(domain=domain))
    except Exception as exc:
        logger.warning("%s probe failed: %s", provider, exc)
        return fallback(provider)
    return MentionResult(provider=provider, mentioned=is_mentioned(answer, domain))


async def check_chatgpt(url: str) -> MentionResult:
    return await _check_mention(CHATGPT, ask_openai, settings.openai_api_key, url)


async def check_gemini(url: str) -> MentionResult:
    return await _check_mention(GEMINI, ask_gemini, settings.gemini_api_key, url)
