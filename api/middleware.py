"""
Cash-Up Engine - API Middleware
===============================
Request logging with request_id propagation.
"""

import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import reset_request_id, set_request_id

logger = logging.getLogger("cashup.api.middleware")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log all requests with timing information.

    Request ID priority:
    1. X-Request-ID header
    2. Generate new short UUID
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        # Context var for logging, reset with token (async-safe)
        token = set_request_id(request_id)
        start_time = time.time()
        try:
            logger.info(f"{request.method} {request.url.path}")
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"{request.method} {request.url.path} status={response.status_code} duration={duration_ms:.2f}ms"
            )

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Processing-Time-Ms"] = f"{duration_ms:.2f}"
            return response
        finally:
            reset_request_id(token)
