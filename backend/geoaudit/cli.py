import argparse
import asyncio
import json
import sys

from geoaudit.core.config import settings
from geoaudit.core.logging_config import configure_logging
from geoaudit.schemas.audit import (
    AuditReport,
    MentionResult,
    PerformanceResult,
    SecurityResult,
    StructuredDataResult,
)
from geoaudit.services import audit as audit_service
from geoaudit.services import brand_mentions
from geoaudit.services.email import EmailConfigurationError, build_report_email, mask_email, send_audit_report
from geoaudit.services.https_check import normalize_url


def sample_report(url: str) -> AuditReport:
    """Fixed mid-range report used to preview the email without calling any upstream."""
    return AuditReport(
        target_url=normalize_url(url),
        performance=PerformanceResult(score=48, load_time=4.6, mobile_friendly=True),
        security=SecurityResult(secure=True),
        chatgpt=MentionResult(provider=brand_mentions.CHATGPT, mentioned=False),
        gemini=MentionResult(provider=brand_mentions.GEMINI, mentioned=True),
        structured_data=StructuredDataResult(present=False),
        score=60,
    )


async def run_audit_command(url: str, email: str | None, send: bool) -> dict:
    report = await audit_service.run_audit(url)
    payload = report.to_response().model_dump(by_alias=True)
    if send:
        if not email:
            raise SystemExit("--send requires --email")
        try:
            message_id = await send_audit_report(email, url, report)
        except EmailConfigurationError as exc:
            raise SystemExit(str(exc))
        print(f"Report sent to {mask_email(email)} ({message_id})", file=sys.stderr)
    return payload


def preview_report(url: str, html: bool = False) -> str:
    subject, text_body, html_body = build_report_email(url, sample_report(url))
    body = html_body if html else text_body
    return f"Subject: {subject}\n\n{body}"


def _add_audit_command(subparsers) -> None:
    audit = subparsers.add_parser("audit", help="Run one audit and print the JSON result")
    audit.add_argument("url", help="Website to audit")
    audit.add_argument("--email", help="Recipient for the emailed report")
    audit.add_argument("--send", action="store_true", help="Also send the report email and wait for delivery")


def _add_preview_command(subparsers) -> None:
    preview = subparsers.add_parser("preview-report", help="Render the report email for sample data")
    preview.add_argument("url", help="Website shown in the report")
    preview.add_argument("--html", action="store_true", help="Print the HTML part instead of plain text")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{settings.app_name} utilities")
    subparsers = parser.add_subparsers(dest="command")
    _add_audit_command(subparsers)
    _add_preview_command(subparsers)
    return parser


def _run_cli_command(args: argparse.Namespace) -> bool:
    if args.command == "audit":
        payload = asyncio.run(run_audit_command(args.url, args.email, bool(args.send)))
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return True

    if args.command == "preview-report":
        print(preview_report(args.url, html=bool(args.html)))
        return True

    return False


def main(argv: list[str] | None = None):
    configure_logging(settings.log_json)
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not _run_cli_command(args):
        parser.print_help()


if __name__ == "__main__":
    main()
