import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from geoaudit.api.v1 import api_router
from geoaudit.api.v1.audit import router as audit_router
from geoaudit.core.config import settings
from geoaudit.core.logging_config import configure_logging
from geoaudit.core.redis_client import close_redis
from geoaudit.core.sentry import init_sentry
from geoaudit.core.startup_checks import validate_production_settings
from geoaudit.middleware import BackpressureMiddleware, EmptyPreflightCORSMiddleware, RequestLoggingMiddleware
from geoaudit.schemas.error import ErrorResponse
from geoaudit.services.email import report_dispatcher

logger = logging.getLogger(__name__)

_ERROR_CODES = {
    400: "validation_error",
    404: "not_found",
    405: "method_not_allowed",
    429: "too_many_requests",
    500: "internal_error",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_production_settings()
    yield
    await report_dispatcher.drain(timeout=30)
    await close_redis()


def get_application() -> FastAPI:
    configure_logging(settings.log_json)
    init_sentry()
    tags_metadata = [
        {"name": "audit", "description": "SEO/GEO website audit"},
        {"name": "health", "description": "Liveness and readiness"},
        {"name": "metrics", "description": "In-process counters"},
    ]
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    app.add_middleware(BackpressureMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    # Outermost, so shed and rate-limited responses carry CORS headers too.
    app.add_middleware(
        EmptyPreflightCORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.include_router(api_router, prefix="/api/v1")
    # Legacy path used by the deployed front-end.
    app.include_router(audit_router, prefix="/api", include_in_schema=False)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        payload = ErrorResponse(error=exc.detail, code=_ERROR_CODES.get(exc.status_code))
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(payload.model_dump()),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        payload = ErrorResponse(error=errors, code="validation_error")
        return JSONResponse(status_code=400, content=payload.model_dump())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error")
        payload = ErrorResponse(error=str(exc) or "Internal server error", code="internal_error")
        return JSONResponse(status_code=500, content=payload.model_dump())

    return app


app = get_application()
