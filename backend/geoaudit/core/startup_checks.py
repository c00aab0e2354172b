from __future__ import annotations

import logging

from geoaudit.core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_SENDER_DOMAIN = "@resend.dev"


def _is_production() -> bool:
    env = (settings.environment or "").strip().lower()
    return env in {"prod", "production"}


def _append_if(problems: list[str], *, condition: bool, message: str) -> None:
    if condition:
        problems.append(message)


def _credentials() -> tuple[tuple[str, str | None], ...]:
    return (
        ("GOOGLE_API_KEY", settings.google_api_key),
        ("OPENAI_API_KEY", settings.openai_api_key),
        ("GEMINI_API_KEY", settings.gemini_api_key),
        ("RESEND_API_KEY", settings.resend_api_key),
    )


def missing_credentials() -> list[str]:
    return [name for name, value in _credentials() if not (value or "").strip()]


def _validate_credentials(problems: list[str]) -> None:
    for name in missing_credentials():
        problems.append(f"{name} must be set in production.")


def _validate_report_sender(problems: list[str]) -> None:
    sender = (settings.report_from_email or "").strip().lower()
    _append_if(
        problems,
        condition=not sender or _DEFAULT_SENDER_DOMAIN in sender,
        message="REPORT_FROM_EMAIL must use a verified sender domain (not the Resend onboarding address).",
    )


def _validate_observability(problems: list[str]) -> None:
    _append_if(
        problems,
        condition=not (settings.sentry_dsn or "").strip(),
        message="SENTRY_DSN must be configured in production.",
    )


def validate_production_settings() -> None:
    """
    Fail fast on missing credentials when running in production.

    Outside production a missing key only degrades the matching probe to its
    fallback value, so local runs work without any secrets.
    """
    if not _is_production():
        missing = missing_credentials()
        if missing:
            logger.warning("Missing upstream credentials: %s", ", ".join(missing))
        return

    problems: list[str] = []
    _validate_credentials(problems)
    _validate_report_sender(problems)
    _validate_observability(problems)

    if problems:
        raise RuntimeError("Production configuration checks failed:\n- " + "\n- ".join(problems))
