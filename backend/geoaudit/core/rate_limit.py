from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from fastapi import HTTPException, Request, status

from geoaudit.core import metrics
from geoaudit.core.config import settings
from geoaudit.core.redis_client import get_redis

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    client_id: str
    count: int
    window_start: float


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0


class RateWindowStore(Protocol):
    async def hit(self, client_id: str, now: float, window_seconds: int) -> RateWindow:
        """Prune expired windows, then count one request for ``client_id``."""
        ...


class InMemoryRateWindowStore:
    """
    Process-local windows keyed by client id.

    Each process keeps its own map and a restart resets every limit. Concurrent
    hits from the same client are last-write-wins and may under-count.
    """

    def __init__(self) -> None:
        self.windows: dict[str, RateWindow] = {}

    def _prune(self, now: float, window_seconds: int) -> None:
        for client_id in list(self.windows):
            if now - self.windows[client_id].window_start > window_seconds:
                del self.windows[client_id]

    async def hit(self, client_id: str, now: float, window_seconds: int) -> RateWindow:
        self._prune(now, window_seconds)
        window = self.windows.get(client_id)
        if window is None:
            window = RateWindow(client_id=client_id, count=1, window_start=now)
            self.windows[client_id] = window
        else:
            window.count += 1
        return window

    def clear(self) -> None:
        self.windows.clear()


class RedisRateWindowStore:
    """Shared windows for multi-process deployments; Redis key expiry does the pruning."""

    def __init__(self, client, prefix: str = "rate_limit:audit") -> None:
        self.client = client
        self.prefix = prefix

    async def hit(self, client_id: str, now: float, window_seconds: int) -> RateWindow:
        key = f"{self.prefix}:{client_id}"
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hsetnx(key, "start", repr(now))
            pipe.hincrby(key, "count", 1)
            pipe.hget(key, "start")
            created, count, start_raw = await pipe.execute()
        start = float(start_raw)
        if now - start > window_seconds:
            await self.client.delete(key)
            return await self.hit(client_id, now, window_seconds)
        if created:
            await self.client.expire(key, int(window_seconds) + 1)
        return RateWindow(client_id=client_id, count=int(count), window_start=start)


class AuditRateLimiter:
    """
    Fixed-window limiter: at most ``limit`` audits per client per window.

    The window starts at the client's first request. Rejected attempts still
    count. Uses ``store`` when given, Redis when REDIS_URL is configured, and
    the in-memory map otherwise or whenever Redis fails.
    """

    def __init__(self, limit: int, window_seconds: int, store: RateWindowStore | None = None) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.store = store
        self.memory = InMemoryRateWindowStore()

    def _shared_store(self) -> RateWindowStore | None:
        if self.store is not None:
            return self.store
        client = get_redis()
        if client is None:
            return None
        return RedisRateWindowStore(client)

    async def _hit(self, client_id: str, now: float) -> RateWindow:
        store = self._shared_store()
        if store is not None:
            try:
                return await store.hit(client_id, now, self.window_seconds)
            except Exception as exc:
                logger.warning("shared_rate_limit_failed", extra={"error": str(exc)})
        return await self.memory.hit(client_id, now, self.window_seconds)

    async def admit(self, client_id: str, now: float | None = None) -> RateDecision:
        now = time.time() if now is None else now
        window = await self._hit(client_id, now)
        if window.count > self.limit:
            retry_after = max(1, int(math.ceil(window.window_start + self.window_seconds - now)))
            return RateDecision(allowed=False, retry_after=retry_after)
        return RateDecision(allowed=True)


def client_identifier(request: Request, trusted_hops: int | None = None) -> str:
    """
    Address of the caller as seen by the outermost trusted proxy.

    Each trusted proxy appends the peer it saw to ``X-Forwarded-For``, so the
    client is the ``trusted_hops``-th entry from the right. Entries further left
    are caller-controlled and ignored.
    """
    hops = settings.trusted_proxy_hops if trusted_hops is None else trusted_hops
    if hops > 0:
        entries = [e.strip() for e in (request.headers.get("x-forwarded-for") or "").split(",") if e.strip()]
        if entries:
            return entries[-min(hops, len(entries))]
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def per_client_limiter(
    rate_limiter: AuditRateLimiter,
    message: str,
    identifier_fn: Callable[[Request], str] = client_identifier,
) -> Callable[[Request], Awaitable[None]]:
    """FastAPI dependency that rejects with 429 once ``rate_limiter`` says so."""

    async def dependency(request: Request) -> None:
        decision = await rate_limiter.admit(identifier_fn(request))
        if not decision.allowed:
            metrics.record_rate_limited()
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=message,
                headers={"Retry-After": str(decision.retry_after)},
            )

    dependency.rate_limiter = rate_limiter  # type: ignore[attr-defined]
    return dependency
