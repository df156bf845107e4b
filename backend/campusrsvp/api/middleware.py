"""
Request correlation and access logging.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from campusrsvp.core.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
# Probes hit these every few seconds; logging them drowns out RSVP traffic
UNLOGGED_PATHS = frozenset({"/health", "/metrics"})
SLOW_REQUEST_MS = 500


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Every log line written while a request is handled carries its request_id.
    The id is taken from the gateway's X-Request-ID when present and echoed
    back on the response.

    One access line per request: info for 2xx/3xx, warning for 4xx or slow
    requests, error for 5xx.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        path = request.url.path
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method, path=path)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_crashed", duration_ms=_elapsed_ms(started))
            raise

        duration_ms = _elapsed_ms(started)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        if path not in UNLOGGED_PATHS:
            if response.status_code >= 500:
                log = logger.error
            elif response.status_code >= 400 or duration_ms > SLOW_REQUEST_MS:
                log = logger.warning
            else:
                log = logger.info
            log("request_completed", status_code=response.status_code, duration_ms=duration_ms)
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
