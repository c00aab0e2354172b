import os
from collections.abc import Generator

import pytest

# Keep pytest output high-signal by disabling outbound Sentry capture in tests.
os.environ["SENTRY_DSN"] = ""

from geoaudit.api.v1 import audit as audit_api
from geoaudit.core import metrics
from geoaudit.core.config import settings


@pytest.fixture(scope="module")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_upstreams(monkeypatch: pytest.MonkeyPatch) -> None:
    # Tests must never reach the real PageSpeed, LLM, Redis or Resend endpoints.
    for name in ("google_api_key", "openai_api_key", "gemini_api_key", "resend_api_key", "redis_url"):
        monkeypatch.setattr(settings, name, None)


@pytest.fixture(autouse=True)
def _clear_audit_rate_limits() -> Generator[None, None, None]:
    # The in-memory windows are process-global and can leak across tests.
    audit_api.audit_rate_limiter.memory.clear()
    metrics.reset()
    yield
    audit_api.audit_rate_limiter.memory.clear()
    metrics.reset()
