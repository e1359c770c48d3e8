"""
Correlation ID Middleware

Tags each request with a correlation ID that is carried into every log line
and audit event written while handling it.
"""

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ...utils.logger import get_logger, set_correlation_id
from ...utils.idgen import generate_correlation_id

logger = get_logger(__name__)

# Inbound IDs longer than this are replaced rather than trusted
MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds correlation ID to all requests.

    - Reuses a well-formed X-Correlation-Id header, otherwise generates one
    - Sets the ID in the logging context
    - Echoes it on the response and logs the request outcome
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        inbound = (request.headers.get("X-Correlation-Id") or "").strip()
        if inbound and len(inbound) <= MAX_CORRELATION_ID_LENGTH:
            correlation_id = inbound
        else:
            correlation_id = generate_correlation_id()

        set_correlation_id(correlation_id)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Correlation-Id"] = correlation_id
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
        )
        return response
