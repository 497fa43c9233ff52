"""Middleware modules for the Course Assessment service"""

from .logging_middleware import LoggingMiddleware
from .rate_limit import add_rate_limiting
from .request_id import RequestIDMiddleware
from .security_headers import SecurityHeadersMiddleware

__all__ = [
    "add_rate_limiting",
    "SecurityHeadersMiddleware",
    "RequestIDMiddleware",
    "LoggingMiddleware",
]
