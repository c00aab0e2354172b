import json
import logging
import re
from urllib.parse import urlsplit

from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import ValidationError

from geoaudit.core import metrics
from geoaudit.core.config import settings
from geoaudit.core.rate_limit import AuditRateLimiter, per_client_limiter
from geoaudit.schemas.audit import AuditReportResponse, AuditRequestIn
from geoaudit.services import audit as audit_service
from geoaudit.services.email import report_dispatcher
from geoaudit.services.https_check import normalize_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["audit"])

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MISSING_FIELDS_MESSAGE = "Email and URL required"

audit_rate_limiter = AuditRateLimiter(
    limit=settings.audit_rate_limit,
    window_seconds=settings.audit_rate_limit_window_seconds,
)
audit_rate_limit = per_client_limiter(audit_rate_limiter, settings.audit_rate_limit_message)

EMPTY_REPORT = AuditReportResponse(
    score=0,
    page_speed=0,
    load_time=0.0,
    mobile_friendly=False,
    https=False,
    chatgpt_citation=False,
    gemini_citation=False,
    schema_markup=False,
)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


async def _parse_payload(request: Request) -> AuditRequestIn:
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise _bad_request("Invalid JSON body")
    if not isinstance(raw, dict):
        raise _bad_request(MISSING_FIELDS_MESSAGE)
    try:
        return AuditRequestIn.model_validate(raw)
    except ValidationError:
        raise _bad_request("Invalid request fields")


def _validate_fields(payload: AuditRequestIn) -> tuple[str, str]:
    email = (payload.email or "").strip()
    url = (payload.url or "").strip()
    if not email or not url:
        raise _bad_request(MISSING_FIELDS_MESSAGE)
    if not EMAIL_RE.match(email):
        raise _bad_request("Invalid email address")
    try:
        host = urlsplit(normalize_url(url)).hostname
    except ValueError:
        host = None
    if not host:
        raise _bad_request("Invalid URL")
    return email, url


@router.api_route(
    "/analyze",
    methods=["POST", "OPTIONS"],
    response_model=AuditReportResponse,
    response_model_by_alias=True,
)
async def analyze(request: Request) -> AuditReportResponse | Response:
    if request.method == "OPTIONS":
        return Response(status_code=status.HTTP_200_OK)
    # Preflights never count against the client's hourly budget.
    await audit_rate_limit(request)

    payload = await _parse_payload(request)
    email, url = _validate_fields(payload)
    if (payload.website or "").strip():
        logger.info("Honeypot field filled; skipping audit")
        return EMPTY_REPORT

    try:
        report = await audit_service.run_audit(url)
        response = report.to_response()
    except Exception as exc:
        metrics.record_audit_failed()
        logger.exception("Audit failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))

    metrics.record_audit_completed()
    logger.info(
        "Audit completed",
        extra={"target_url": report.target_url, "score": report.score, "fallbacks": report.fallbacks},
    )
    report_dispatcher.submit(email, url, report)
    return response
