"""
Request correlation and access logging.

The caller's ``X-Correlation-ID`` is reused when present (the mobile client
sends one per offline-sync batch); otherwise a new one is generated. It is
echoed on the response and set in the logging context for the request.
"""
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from scout_api.core.logging import clear_correlation_id, get_logger, set_correlation_id

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
MAX_CORRELATION_ID_LENGTH = 128

# Probes and scrapes would drown out real traffic
_QUIET_PATHS = frozenset({"/health", "/metrics"})


def _incoming_id(request: Request) -> str:
    value = (request.headers.get(CORRELATION_HEADER) or "").strip()
    if value and len(value) <= MAX_CORRELATION_ID_LENGTH:
        return value
    return uuid.uuid4().hex


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Usage:
        app.add_middleware(CorrelationIdMiddleware)

    Endpoints can read ``request.state.correlation_id``.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = _incoming_id(request)
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            if request.url.path not in _QUIET_PATHS:
                logger.info(
                    f"{request.method} {request.url.path} -> {response.status_code}",
                    extra={
                        "status": response.status_code,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                    },
                )
            return response
        finally:
            clear_correlation_id(token)
