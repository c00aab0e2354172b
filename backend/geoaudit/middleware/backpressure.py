import logging
from typing import Awaitable, Callable

import anyio
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from geoaudit.core import metrics
from geoaudit.core.config import settings

logger = logging.getLogger(__name__)

SHED_RETRY_AFTER_SECONDS = 1


def _is_audit(request: Request) -> bool:
    return request.method == "POST" and request.url.path.rstrip("/").endswith("/analyze")


class BackpressureMiddleware(BaseHTTPMiddleware):
    """
    Caps concurrent audits per process.

    Each audit keeps five upstream calls open for up to the PageSpeed timeout,
    so only ``POST .../analyze`` takes a slot. Preflights, health checks and
    metrics always pass. A ``max_concurrent`` of zero disables the cap.
    """

    def __init__(self, app, max_concurrent: int | None = None):
        super().__init__(app)
        limit = settings.max_concurrent_requests if max_concurrent is None else int(max_concurrent)
        self.limiter = anyio.CapacityLimiter(limit) if limit > 0 else None

    def _shed(self, request: Request) -> JSONResponse:
        metrics.record_audit_shed()
        logger.warning("Audit shed: %s audits already running", self.limiter.borrowed_tokens)
        payload: dict[str, object] = {
            "error": "Too many requests",
            "code": "too_many_requests",
            "retry_after": SHED_RETRY_AFTER_SECONDS,
        }
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            payload["request_id"] = request_id
        return JSONResponse(
            status_code=429, content=payload, headers={"Retry-After": str(SHED_RETRY_AFTER_SECONDS)}
        )

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable]):
        if self.limiter is None or not _is_audit(request):
            return await call_next(request)
        try:
            self.limiter.acquire_nowait()
        except anyio.WouldBlock:
            return self._shed(request)
        try:
            return await call_next(request)
        finally:
            self.limiter.release()
