from __future__ import annotations

import asyncio
import functools
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

import anyio
import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from geoaudit.core import metrics
from geoaudit.core.config import settings
from geoaudit.schemas.audit import AuditReport
from geoaudit.services import scoring

logger = logging.getLogger(__name__)

TEMPLATE_PATH = Path(__file__).parent.parent / "templates" / "emails"
env = Environment(loader=FileSystemLoader(TEMPLATE_PATH), autoescape=select_autoescape(["html", "xml", "html.j2"]))
env.filters["pl_number"] = scoring.format_number

REPORT_TEMPLATE = "audit_report.txt.j2"


class EmailConfigurationError(RuntimeError):
    """The email provider credential is missing; delivery is not attempted."""


class EmailDeliveryError(RuntimeError):
    pass


def mask_email(email: str | None) -> str:
    raw = (email or "").strip()
    local, _, domain = raw.partition("@")
    if not local or not domain:
        return "***"
    return f"{local[0]}***@{domain}"


def render_template(template_name: str, context: dict) -> tuple[str, str]:
    base_text = env.get_template("base.txt.j2")
    base_html = env.get_template("base.html.j2")
    body_text = env.get_template(template_name).render(**context)
    body_html = env.get_template(template_name.replace(".txt.j2", ".html.j2")).render(**context)
    return base_text.render(body=body_text, **context), base_html.render(body=body_html, **context)


def report_context(url: str, report: AuditReport) -> dict[str, Any]:
    band = scoring.visibility_band(report.score)
    return {
        "url": url,
        "report": report,
        "response": report.to_response(),
        "band": band,
        "problem_count": scoring.count_problems(report),
        "monthly_loss": scoring.estimate_monthly_loss(report.score),
        "impact": scoring.business_impact(report),
        "pagespeed_ok": report.performance.score >= scoring.PAGESPEED_PROBLEM_BELOW,
        "load_time_ok": report.performance.load_time < scoring.SLOW_LOAD_SECONDS,
        "contact_email": settings.report_contact_email,
        "price_label": settings.report_price_label,
        "app_name": settings.app_name,
    }


def build_report_email(url: str, report: AuditReport) -> tuple[str, str, str]:
    context = report_context(url, report)
    band = context["band"]
    subject = f"{band.emoji} Wynik: {report.score}% - {context['problem_count']} problemów"
    text_body, html_body = render_template(REPORT_TEMPLATE, context)
    return subject, text_body, html_body


def _message_id(response: Any) -> str | None:
    if isinstance(response, dict):
        return response.get("id")
    return getattr(response, "id", None)


async def send_email(to_email: str, subject: str, text_body: str, html_body: str) -> str:
    """Deliver one message through Resend and return the provider message id."""
    api_key = (settings.resend_api_key or "").strip()
    if not api_key:
        raise EmailConfigurationError("Missing email configuration: RESEND_API_KEY is not set")
    params = {
        "from": settings.report_from_email,
        "to": [to_email],
        "subject": subject,
        "html": html_body,
        "text": text_body,
    }
    resend.api_key = api_key
    response = await anyio.to_thread.run_sync(resend.Emails.send, params)
    message_id = _message_id(response)
    if not message_id:
        raise EmailDeliveryError(f"Unexpected response from Resend: {response}")
    return message_id


async def send_audit_report(to_email: str, url: str, report: AuditReport) -> str:
    subject, text_body, html_body = build_report_email(url, report)
    return await send_email(to_email, subject, text_body, html_body)


ReportSender = Callable[[str, str, AuditReport], Awaitable[str]]


class ReportDispatcher:
    """
    Fire-and-forget report delivery.

    ``submit`` schedules the send on the running loop and returns at once. The
    outcome is only observed by ``_on_done`` for logging and metrics, so a
    failed delivery never reaches the HTTP response.
    """

    def __init__(self, sender: ReportSender | None = None) -> None:
        self._sender = sender
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, to_email: str, url: str, report: AuditReport) -> asyncio.Task:
        sender = self._sender or send_audit_report
        task = asyncio.create_task(sender(to_email, url, report), name=f"audit-report:{report.target_url}")
        self._pending.add(task)
        task.add_done_callback(functools.partial(self._on_done, mask_email(to_email)))
        return task

    def _on_done(self, recipient: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            metrics.record_report_failed()
            logger.warning("Report delivery cancelled", extra={"recipient": recipient})
            return
        exc = task.exception()
        if exc is not None:
            metrics.record_report_failed()
            logger.error("Report delivery failed: %s", exc, extra={"recipient": recipient})
            return
        metrics.record_report_sent()
        logger.info("Report delivered", extra={"recipient": recipient, "message_id": task.result()})

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight deliveries, e.g. on shutdown."""
        if not self._pending:
            return
        await asyncio.wait(set(self._pending), timeout=timeout)


report_dispatcher = ReportDispatcher()
