"""
Request logging middleware
Logs every API call with its status and timing
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.logging import LoggerFactory

logger = LoggerFactory.get_request_logger()

QUIET_PATHS = {f"{settings.API_V1_STR}/health", "/metrics"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log HTTP requests and responses
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.time()
        request_id = getattr(request.state, "request_id", "unknown")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "process_time": round(time.time() - start_time, 3),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        process_time = time.time() - start_time
        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time": round(process_time, 3),
                "client": request.client.host if request.client else "unknown",
            },
        )
        response.headers["X-Process-Time"] = str(round(process_time, 4))
        return response
