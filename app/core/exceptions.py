"""
Custom exceptions and error handlers for the Course Assessment service
Provides consistent error responses and logging
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings

logger = logging.getLogger(__name__)


class AssessmentException(Exception):
    """Base exception for the assessment service"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class DatabaseException(AssessmentException):
    """Database operation exception"""

    def __init__(
        self, message: str = "Database operation failed", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="DATABASE_ERROR",
            details=details,
        )


class AuthenticationException(AssessmentException):
    """Authentication exception"""

    def __init__(
        self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTHENTICATION_ERROR",
            details=details,
        )


class AuthorizationException(AssessmentException):
    """Caller does not own the resource or lacks the required standing"""

    def __init__(
        self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTHORIZATION_ERROR",
            details=details,
        )


class ValidationException(AssessmentException):
    """Client input is malformed"""

    def __init__(
        self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class QuestionValidationError(ValidationException):
    """A single question payload failed its type rules"""

    def __init__(self, index: int, message: str, details: Optional[Dict[str, Any]] = None):
        self.index = index
        super().__init__(
            message=f"Question {index}: {message}",
            details={"questionIndex": index, **(details or {})},
        )


class StateConflictException(AssessmentException):
    """Mutation forbidden by the current course/quiz lifecycle state"""

    def __init__(
        self,
        message: str = "Operation not allowed in the current state",
        suggestion: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if suggestion:
            details["suggestion"] = suggestion
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="STATE_CONFLICT",
            details=details,
        )


class NotFoundException(AssessmentException):
    """Resource not found exception"""

    def __init__(self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details,
        )


def create_error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Create standardized error response

    Args:
        request: FastAPI request object
        status_code: HTTP status code
        error_code: Application error code
        message: Error message
        details: Additional error details

    Returns:
        JSON response with error information
    """
    error_response = {
        "success": False,
        "error": {
            "code": error_code,
            "message": message,
            "details": details or {},
            "path": str(request.url),
            "method": request.method,
        },
    }

    # Add request ID if available
    if hasattr(request.state, "request_id"):
        error_response["error"]["request_id"] = request.state.request_id

    return JSONResponse(status_code=status_code, content=error_response)


async def assessment_exception_handler(request: Request, exc: AssessmentException) -> JSONResponse:
    """
    Handle service exceptions

    Args:
        request: FastAPI request object
        exc: Service exception

    Returns:
        JSON error response
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Assessment exception: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": str(request.url),
        },
    )

    if exc.status_code >= 500:
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(exc)
        # Internal failures only carry the correlation id
        return create_error_response(
            request=request,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
        )

    return create_error_response(
        request=request,
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle FastAPI HTTP exceptions

    Args:
        request: FastAPI request object
        exc: HTTP exception

    Returns:
        JSON error response
    """
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={"status_code": exc.status_code, "path": str(request.url)},
    )

    return create_error_response(
        request=request,
        status_code=exc.status_code,
        error_code="HTTP_ERROR",
        message=str(exc.detail),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors

    Args:
        request: FastAPI request object
        exc: Validation error

    Returns:
        JSON error response with validation details
    """
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
        )

    logger.warning("Validation error", extra={"errors": errors, "path": str(request.url)})

    return create_error_response(
        request=request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        error_code="VALIDATION_ERROR",
        message="Request validation failed",
        details={"errors": errors},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions

    Args:
        request: FastAPI request object
        exc: Any exception

    Returns:
        JSON error response
    """
    logger.error(
        f"Unexpected error: {str(exc)}",
        extra={"exception_type": type(exc).__name__, "path": str(request.url)},
        exc_info=True,
    )

    if settings.SENTRY_DSN:
        sentry_sdk.capture_exception(exc)

    # Don't expose internal errors in production
    if settings.is_production() or not settings.DEBUG:
        message = "An unexpected error occurred"
    else:
        message = str(exc)

    return create_error_response(
        request=request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code="INTERNAL_ERROR",
        message=message,
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI app

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AssessmentException, assessment_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Catch-all handler for unexpected exceptions
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
