"""
Correlation ID Middleware

Binds an X-Correlation-Id to every request so engine logs and audit
events written while handling it can be traced back to the call.
"""

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ...utils.logger import set_correlation_id, get_logger
from ...utils.idgen import generate_correlation_id

logger = get_logger(__name__)

HEADER = "X-Correlation-Id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Reuses the caller's X-Correlation-Id or generates one, exposes it to
    logging and echoes it on the response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(HEADER) or generate_correlation_id()
        set_correlation_id(correlation_id)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[HEADER] = correlation_id
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)",
            extra={"action": f"{request.method} {request.url.path}", "status": response.status_code}
        )
        return response
