from __future__ import annotations

import logging
from typing import Any

from geoaudit.core.config import settings

_SCRUBBED = "[scrubbed]"
_PRIVATE_FIELDS = ("email",)


def scrub_event(event: dict[str, Any], hint: dict[str, Any] | None = None) -> dict[str, Any]:
    """Drop the submitter's address from captured request bodies before upload."""
    data = (event.get("request") or {}).get("data")
    if isinstance(data, dict):
        for field in _PRIVATE_FIELDS:
            if field in data:
                data[field] = _SCRUBBED
    return event


def _integrations() -> list:
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    integrations: list = [FastApiIntegration()]
    if settings.sentry_enable_logs:
        level_name = str(settings.sentry_log_level or "error").strip().upper()
        event_level = getattr(logging, level_name, logging.ERROR)
        integrations.append(LoggingIntegration(level=event_level, event_level=event_level))
    return integrations


def init_sentry() -> bool:
    if not settings.sentry_dsn:
        return False

    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"geoaudit@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=_integrations(),
        send_default_pii=False,
        before_send=scrub_event,
    )
    return True
