import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from geoaudit.core.logging_config import request_id_ctx_var
from geoaudit.core.rate_limit import client_identifier

logger = logging.getLogger("geoaudit.request")

_QUIET_PATHS = frozenset({"/api/v1/health", "/api/v1/health/ready"})


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code in (405, 429):
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id (caller-supplied or fresh) and logs one line per response."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = request_id_ctx_var.set(request_id)
        request.state.request_id = request_id
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            if request.url.path not in _QUIET_PATHS:
                logger.log(
                    _level_for(response.status_code),
                    "%s %s -> %s",
                    request.method,
                    request.url.path,
                    response.status_code,
                    extra={
                        "client": client_identifier(request),
                        "status_code": response.status_code,
                        "duration_ms": int((time.perf_counter() - started) * 1000),
                    },
                )
            return response
        finally:
            request_id_ctx_var.reset(token)
