"""
Request ID middleware for request correlation.

Accepts X-Request-ID from the caller (or mints one), exposes it on
request.state and the response, and binds it to `request_id_var` so every
log line emitted while handling the request carries it.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000
MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assign a correlation id to each request and log slow ones."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        request_id = incoming[:MAX_REQUEST_ID_LENGTH] if incoming else str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers[REQUEST_ID_HEADER] = request_id

            log_extra = {
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
            }
            if duration_ms > SLOW_REQUEST_MS:
                logger.warning("Slow request", extra=log_extra)
            else:
                logger.debug("Request handled", extra=log_extra)

            return response
        finally:
            request_id_var.reset(token)
