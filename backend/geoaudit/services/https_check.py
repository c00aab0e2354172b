from __future__ import annotations

import re
from urllib.parse import urlsplit

from geoaudit.schemas.audit import SecurityResult

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")

FALLBACK = SecurityResult(secure=False, fallback=True)


def normalize_url(url: str | None) -> str:
    """Trim the URL and default a missing scheme to https."""
    value = (url or "").strip()
    if not value:
        return ""
    if not _SCHEME_RE.match(value):
        value = f"https://{value.lstrip('/')}"
    return value


def is_secure(url: str | None) -> bool:
    normalized = normalize_url(url)
    if not normalized:
        return False
    try:
        parts = urlsplit(normalized)
    except ValueError:
        return False
    return parts.scheme.lower() == "https" and bool(parts.netloc)


async def check_https(url: str) -> SecurityResult:
    # Local check only; malformed input reports "not secure" instead of failing.
    return SecurityResult(secure=is_secure(url))
