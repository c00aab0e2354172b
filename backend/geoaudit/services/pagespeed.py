from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from geoaudit.core.config import settings
from geoaudit.schemas.audit import PerformanceResult

logger = logging.getLogger(__name__)

# Middling values so an unavailable PageSpeed API does not sink the score.
FALLBACK = PerformanceResult(score=50, load_time=3.5, mobile_friendly=True, fallback=True)


def _half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _performance_score(lighthouse: dict[str, Any]) -> int:
    raw = lighthouse["categories"]["performance"]["score"]
    return max(0, min(100, _half_up(float(raw) * 100)))


def _load_time_seconds(audits: dict[str, Any]) -> float:
    speed_index_ms = float(audits["speed-index"]["numericValue"])
    return round(speed_index_ms / 1000, 1)


def _is_mobile_friendly(audits: dict[str, Any]) -> bool:
    viewport = audits.get("viewport") or {}
    return viewport.get("score") == 1


def parse_pagespeed(data: dict[str, Any]) -> PerformanceResult:
    lighthouse = data["lighthouseResult"]
    audits = lighthouse["audits"]
    return PerformanceResult(
        score=_performance_score(lighthouse),
        load_time=_load_time_seconds(audits),
        mobile_friendly=_is_mobile_friendly(audits),
    )


def _request_params(url: str) -> list[tuple[str, str]]:
    params = [
        ("url", url),
        ("strategy", settings.pagespeed_strategy),
        ("category", "performance"),
        ("category", "seo"),
    ]
    key = (settings.google_api_key or "").strip()
    if key:
        params.append(("key", key))
    return params


async def _fetch_pagespeed(url: str) -> dict[str, Any]:
    async with httpx.AsyncClient(timeout=settings.pagespeed_timeout_seconds) as client:
        resp = await client.get(settings.pagespeed_url, params=_request_params(url))
        resp.raise_for_status()
        parsed = resp.json()
    if not isinstance(parsed, dict):
        raise ValueError("PageSpeed response is not an object")
    return parsed


async def check_performance(url: str) -> PerformanceResult:
    """Performance score, speed-index load time and viewport check from one mobile PageSpeed run."""
    try:
        data = await _fetch_pagespeed(url)
        return parse_pagespeed(data)
    except Exception as exc:
        logger.warning("PageSpeed probe failed: %s", exc)
        return FALLBACK
