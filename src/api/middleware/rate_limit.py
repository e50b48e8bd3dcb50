"""
API rate limiting - fixed window per user (or per IP when anonymous).

Applies to everything under the API prefix; /health and / are exempt.
"""

import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from src.config import get_settings
from src.kernel.identity.jwt import verify_access_token
from src.logging_config import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60


def _get_client_ip(request: Request) -> str:
    """Get client IP from request (X-Forwarded-For or direct)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _get_user_id_from_jwt(request: Request) -> Optional[str]:
    """User id from a valid Bearer token, if any. Authorization itself runs later."""
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    token = auth[7:].strip()
    if not token:
        return None
    payload = verify_access_token(token)
    return payload.sub if payload else None


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> (count, window_start_ts)."""

    def __init__(self):
        self._data: Dict[str, Tuple[int, float]] = {}

    def check_and_incr(self, identifier: str, limit: int, window_seconds: int) -> bool:
        """True if under limit (and increments). False if over limit (no increment)."""
        now = time.monotonic()
        count, start = self._data.get(identifier, (0, now))
        if now - start >= window_seconds:
            count, start = 0, now
        if count >= limit:
            return False
        self._data[identifier] = (count + 1, start)
        return True

    def cleanup_old(self, max_age_seconds: int) -> None:
        """Drop windows older than max_age_seconds to bound memory."""
        now = time.monotonic()
        stale = [k for k, (_, start) in self._data.items() if now - start > max_age_seconds]
        for k in stale:
            self._data.pop(k, None)

    def reset(self) -> None:
        self._data.clear()


# Module-level store (single process)
_store: Optional[InMemoryRateLimitStore] = None


def get_store() -> InMemoryRateLimitStore:
    global _store
    if _store is None:
        _store = InMemoryRateLimitStore()
    return _store


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per user (or IP) request budget for the versioned API."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return await call_next(request)

        path = request.url.path or ""
        if not path.startswith(settings.api_v1_prefix):
            return await call_next(request)

        store = get_store()
        store.cleanup_old(max_age_seconds=WINDOW_SECONDS * 2)

        user_id = _get_user_id_from_jwt(request)
        identifier = f"user:{user_id}" if user_id else f"ip:{_get_client_ip(request)}"

        if not store.check_and_incr(identifier, settings.rate_limit_api_per_minute, WINDOW_SECONDS):
            logger.warning("Rate limit exceeded", extra={"identifier": identifier, "path": path})
            return Response(
                content='{"detail":"Too many requests. Please try again later."}',
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                media_type="application/json",
            )
        return await call_next(request)
