"""
Rate Limiting for the Electrical Supplier API
=============================================
Two layers:

1. slowapi ``limiter`` for general API traffic and the admin login
   (per-IP, Redis-backed when REDIS_URL is set).
2. ``RateLimitStore`` counters used by the quote intake gate. The gate needs
   an explicit allowed/denied answer (not an HTTP exception) and must fail
   closed when the counter store is down, so it talks to the store directly.

Special endpoint limits:
- /auth/login: 5 req/min (brute force protection)
- POST /quotes: QUOTE_RATE_LIMIT_MAX_REQUESTS per QUOTE_RATE_LIMIT_WINDOW_SECONDS
"""

import asyncio
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import RateLimitStoreUnavailableError
from app.core.logging_config import logger
from app.core.redis_client import RedisClient, redis_client


def get_client_ip(request: Request) -> str:
    """
    Resolve the submitter IP.

    X-Forwarded-For is only trusted when TRUST_PROXY_HEADERS is enabled,
    otherwise any client could pick its own rate-limit bucket.
    """
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return get_remote_address(request) or "unknown"


def get_storage_uri() -> str:
    """Redis when configured, otherwise in-process memory"""
    return settings.REDIS_URL or "memory://"


# Create limiter instance
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=get_storage_uri(),
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom handler for slowapi rate limit errors.

    Returns a user-friendly JSON response with a Retry-After header.
    """
    logger.log_security_event(
        "api",
        "rate_limited",
        ip_address=get_client_ip(request),
        http_path=request.url.path,
        limit=str(exc.detail),
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "code": "RATE_LIMITED",
                "message": "Too many requests, please try again later",
                "details": {"limit": str(exc.detail)},
            },
        },
        headers={"Retry-After": "60"},
    )


# ============================================
# Counter stores for the quote intake gate
# ============================================

class RateLimitStore(Protocol):
    """
    Atomic increment-and-check counter.

    Returns True while the number of hits for ``key`` inside the current
    window is <= ``limit``. Implementations raise
    RateLimitStoreUnavailableError when they cannot answer.
    """

    async def increment_and_check(self, key: str, window_seconds: int, limit: int) -> bool:
        ...


class InMemoryRateLimitStore:
    """
    Fixed-window counters held in process memory.

    Only consistent inside one process; use RedisRateLimitStore when more
    than one instance serves traffic.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, prune_every: int = 1000):
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = asyncio.Lock()
        self._prune_every = prune_every
        self._hits_since_prune = 0

    async def increment_and_check(self, key: str, window_seconds: int, limit: int) -> bool:
        async with self._lock:
            now = self._clock()
            window_start, count = self._windows.get(key, (now, 0))
            if now - window_start >= window_seconds:
                window_start, count = now, 0
            count += 1
            self._windows[key] = (window_start, count)

            self._hits_since_prune += 1
            if self._hits_since_prune >= self._prune_every:
                self._prune(now, window_seconds)

            return count <= limit

    def _prune(self, now: float, window_seconds: int) -> None:
        expired = [k for k, (start, _) in self._windows.items() if now - start >= window_seconds]
        for k in expired:
            del self._windows[k]
        self._hits_since_prune = 0

    async def reset(self, key: Optional[str] = None) -> None:
        async with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


class RedisRateLimitStore:
    """Fixed-window counters shared by every instance through Redis"""

    def __init__(self, client: RedisClient, prefix: str = "ratelimit:"):
        self._client = client
        self._prefix = prefix

    async def increment_and_check(self, key: str, window_seconds: int, limit: int) -> bool:
        try:
            count = await self._client.incr_fixed_window(f"{self._prefix}{key}", window_seconds)
        except Exception as e:
            logger.error(f"[RateLimit] Redis counter unavailable for {key}: {e}")
            raise RateLimitStoreUnavailableError(str(e)) from e
        return count <= limit


def build_rate_limit_store(client: Optional[RedisClient] = None) -> RateLimitStore:
    """Pick the counter store for the current deployment"""
    if settings.REDIS_URL:
        logger.info("[RateLimit] Using Redis for quote rate limiting")
        return RedisRateLimitStore(client or redis_client)

    logger.warning("[RateLimit] REDIS_URL not set - quote rate limiting is per-process only")
    return InMemoryRateLimitStore()
