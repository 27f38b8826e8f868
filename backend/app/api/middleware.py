"""
Middleware components for the artifact agent platform
Request logging and correlation id propagation
"""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import logging
import time
from typing import Callable

from app.core.correlation import correlation_scope


logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging with a correlation id bound for the request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get(CORRELATION_HEADER)

        with correlation_scope(incoming) as correlation_id:
            start_time = time.time()

            logger.info(
                f"[{correlation_id}] {request.method} {request.url.path} "
                f"from {request.client.host if request.client else 'unknown'}"
            )
            request.state.correlation_id = correlation_id

            response = await call_next(request)

            process_time = time.time() - start_time
            logger.info(
                f"[{correlation_id}] {response.status_code} "
                f"completed in {process_time:.3f}s"
            )

            response.headers[CORRELATION_HEADER] = correlation_id
            response.headers["X-Process-Time"] = f"{process_time:.3f}"
            return response
