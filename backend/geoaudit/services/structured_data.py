from __future__ import annotations

import logging

import httpx

from geoaudit.core.config import settings
from geoaudit.schemas.audit import StructuredDataResult

logger = logging.getLogger(__name__)

JSON_LD_MARKER = "application/ld+json"
SCHEMA_TYPES = (
    "Organization",
    "LocalBusiness",
    "WebSite",
    "Product",
    "Service",
    "FAQPage",
    "Article",
    "BreadcrumbList",
)
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

FALLBACK = StructuredDataResult(present=False, fallback=True)


def _type_markers(schema_type: str) -> tuple[str, str]:
    return f'"@type":"{schema_type}"', f'"@type": "{schema_type}"'


def has_structured_data(html: str) -> bool:
    """
    Literal substring check: a JSON-LD script marker plus one recognized ``@type``.

    This is not a parse. Unusual spacing in the JSON is missed and the marker
    text anywhere in the page counts.
    """
    if JSON_LD_MARKER not in html:
        return False
    return any(marker in html for schema_type in SCHEMA_TYPES for marker in _type_markers(schema_type))


async def _fetch_html(url: str) -> str:
    async with httpx.AsyncClient(
        timeout=settings.probe_timeout_seconds,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        resp = await client.get(url)
        return resp.text


async def check_structured_data(url: str) -> StructuredDataResult:
    try:
        html = await _fetch_html(url)
    except Exception as exc:
        logger.warning("Structured data probe failed: %s", exc)
        return FALLBACK
    return StructuredDataResult(present=has_structured_data(html))
