"""
Global exception handlers for FastAPI.

Domain errors raised by services map to HTTP status codes here; every
error body uses the same envelope.
"""

import time
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import ValidationError

from core.exceptions import (
    ConsentLoggerError,
    Forbidden,
    InvalidPayload,
    NotFound,
    ScanInProgress,
    StorageFailure,
    TransientFetchFailure,
    Unauthorized,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    InvalidPayload: status.HTTP_400_BAD_REQUEST,
    Unauthorized: status.HTTP_401_UNAUTHORIZED,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    ScanInProgress: status.HTTP_409_CONFLICT,
    StorageFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
    TransientFetchFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class ErrorResponse:
    """Standardized error response format."""

    @staticmethod
    def create(
        code: str,
        message: str,
        details: dict = None,
        request_id: str = None,
        timestamp: float = None
    ) -> dict:
        """
        Create standardized error response.

        Args:
            code: Error code
            message: Error message
            details: Additional error details
            request_id: Request ID for tracking
            timestamp: Error timestamp

        Returns:
            Error response dictionary
        """
        return {
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
                "timestamp": timestamp or time.time(),
                "request_id": request_id
            }
        }


def status_code_for(exc: ConsentLoggerError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _format_errors(errors) -> list:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in errors
    ]


async def consent_logger_exception_handler(request: Request, exc: ConsentLoggerError) -> JSONResponse:
    """
    Handle domain exceptions raised by services and dependencies.

    Args:
        request: FastAPI request
        exc: Domain exception

    Returns:
        JSON error response
    """
    request_id = getattr(request.state, "request_id", None)
    status_code = status_code_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"Domain exception: {exc.code}",
        extra={
            "request_id": request_id,
            "code": exc.code,
            "error_message": exc.message,
            "details": exc.details
        }
    )

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.create(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            request_id=request_id
        )
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Handle HTTP exceptions.

    Args:
        request: FastAPI request
        exc: HTTP exception

    Returns:
        JSON error response
    """
    request_id = getattr(request.state, "request_id", None)

    logger.warning(
        f"HTTP exception: {exc.status_code}",
        extra={
            "request_id": request_id,
            "status_code": exc.status_code,
            "detail": exc.detail
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.create(
            code=f"HTTP_{exc.status_code}",
            message=str(exc.detail),
            request_id=request_id
        ),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors (query parameters, malformed JSON).
    """
    request_id = getattr(request.state, "request_id", None)
    errors = _format_errors(exc.errors())

    logger.warning(
        "Request validation failed",
        extra={
            "request_id": request_id,
            "errors": errors
        }
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse.create(
            code="VALIDATION_ERROR",
            message="Request validation failed",
            details={"errors": errors},
            request_id=request_id
        )
    )


async def pydantic_validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors raised inside services.
    """
    request_id = getattr(request.state, "request_id", None)
    errors = _format_errors(exc.errors())

    logger.warning(
        "Pydantic validation failed",
        extra={
            "request_id": request_id,
            "errors": errors
        }
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse.create(
            code="VALIDATION_ERROR",
            message="Data validation failed",
            details={"errors": errors},
            request_id=request_id
        )
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception",
        extra={
            "request_id": request_id,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc)
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse.create(
            code="INTERNAL_SERVER_ERROR",
            message="An unexpected error occurred",
            request_id=request_id
        )
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(ConsentLoggerError, consent_logger_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
