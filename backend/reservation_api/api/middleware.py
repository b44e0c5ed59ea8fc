"""
Request middleware for logging, timing, and request ID tracking.
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from reservation_api.core.logging import get_logger
from reservation_api.core.metrics import record_http_request

logger = get_logger(__name__)

# Probes are polled constantly; only their failures are worth a log line
QUIET_PATHS = frozenset({"/health", "/metrics"})


def _route_template(request: Request) -> str:
    """`/api/v1/reservations/{reservation_id}/cancel` rather than one label per id."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Reuses the caller's X-Request-ID (LIFF front ends and Stripe retries
    carry their own) or assigns one, binds it to structlog, and records
    per-route latency.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - started
            record_http_request(request.method, _route_template(request), 500, elapsed)
            logger.exception("request_failed", error=str(e), duration_ms=round(elapsed * 1000, 2))
            raise

        elapsed = time.perf_counter() - started
        duration_ms = round(elapsed * 1000, 2)
        record_http_request(request.method, _route_template(request), response.status_code, elapsed)

        if request.url.path not in QUIET_PATHS or response.status_code >= 500:
            logger.info("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
