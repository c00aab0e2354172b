from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from geoaudit.core import metrics
from geoaudit.core.config import settings
from geoaudit.schemas.audit import (
    AuditReport,
    MentionResult,
    PerformanceResult,
    SecurityResult,
    StructuredDataResult,
)
from geoaudit.services import brand_mentions, https_check, pagespeed, scoring, structured_data

logger = logging.getLogger(__name__)

T = TypeVar("T", PerformanceResult, SecurityResult, MentionResult, StructuredDataResult)


@dataclass(frozen=True)
class Probe(Generic[T]):
    name: str
    run: Callable[[str], Awaitable[T]]
    fallback: T
    timeout: float


@dataclass(frozen=True)
class AuditProbes:
    performance: Probe[PerformanceResult]
    security: Probe[SecurityResult]
    chatgpt: Probe[MentionResult]
    gemini: Probe[MentionResult]
    structured_data: Probe[StructuredDataResult]


def default_probes() -> AuditProbes:
    timeout = settings.probe_timeout_seconds
    return AuditProbes(
        performance=Probe(
            "pagespeed", pagespeed.check_performance, pagespeed.FALLBACK, settings.pagespeed_timeout_seconds
        ),
        security=Probe("https", https_check.check_https, https_check.FALLBACK, timeout),
        chatgpt=Probe(
            brand_mentions.CHATGPT, brand_mentions.check_chatgpt, brand_mentions.fallback(brand_mentions.CHATGPT), timeout
        ),
        gemini=Probe(
            brand_mentions.GEMINI, brand_mentions.check_gemini, brand_mentions.fallback(brand_mentions.GEMINI), timeout
        ),
        structured_data=Probe(
            "structured_data", structured_data.check_structured_data, structured_data.FALLBACK, timeout
        ),
    )


async def run_bounded(probe: Probe[T], target: str) -> T:
    """Run one probe under its time bound; a timeout or an escaped error yields the fallback."""
    try:
        result = await asyncio.wait_for(probe.run(target), timeout=probe.timeout)
    except asyncio.TimeoutError:
        logger.warning("Probe %s timed out after %.1fs", probe.name, probe.timeout)
        result = probe.fallback
    except Exception:
        logger.warning("Probe %s raised; using fallback", probe.name, exc_info=True)
        result = probe.fallback
    if result.fallback:
        metrics.record_probe_fallback(probe.name)
    return result


async def run_audit(url: str, probes: AuditProbes | None = None) -> AuditReport:
    """
    Fan out all five probes against the same target and wait for every one.

    Probes never fail the audit; each degrades to its fallback. Only an error
    in the aggregation itself propagates to the caller.
    """
    probes = probes or default_probes()
    target = https_check.normalize_url(url)
    performance, security, chatgpt, gemini, schema = await asyncio.gather(
        run_bounded(probes.performance, target),
        run_bounded(probes.security, target),
        run_bounded(probes.chatgpt, target),
        run_bounded(probes.gemini, target),
        run_bounded(probes.structured_data, target),
    )
    score = scoring.compute_score(performance, security, chatgpt, gemini, schema)
    return AuditReport(
        target_url=target,
        performance=performance,
        security=security,
        chatgpt=chatgpt,
        gemini=gemini,
        structured_data=schema,
        score=score,
    )
