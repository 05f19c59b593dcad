"""
Centralized error handling and safe error messages.

This module provides the application exception hierarchy and the FastAPI
exception handlers that turn those exceptions into JSON error bodies without
leaking internal details outside debug mode.
"""
import logging
import math
import traceback
from typing import Any

from fastapi import HTTPException
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hivemind.core.config import settings
from hivemind.core.security import sanitize

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str
    detail: Any | None = None


class SafeException(Exception):
    """Base exception for safe errors that can be shown to users."""

    status_code: int = 400

    def __init__(self, message: str, detail: Any | None = None):
        """
        Initialize the safe exception.

        Args:
            message: User-friendly error message
            detail: Optional additional details
        """
        self.message = message
        self.detail = detail
        super().__init__(message)


class InvalidNetworkError(SafeException):
    """Raised when a network name or LayerZero endpoint id is unknown."""

    status_code = 400


class AgentNotFoundError(SafeException):
    """Raised when a spawned or registered agent does not exist."""

    status_code = 404


class ServiceNotFoundError(SafeException):
    """Raised when a bazaar service is not registered or inactive."""

    status_code = 404


class PaymentVerificationError(SafeException):
    """Raised when an x402 payment cannot be accepted."""

    status_code = 402


class InvalidParameterError(SafeException):
    """Raised when a request parameter has the wrong shape or type."""

    status_code = 400


class HiveMindError(Exception):
    """Base exception for Hive Mind application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """
        Initialize the Hive Mind error.

        Args:
            message: Error message
            details: Optional additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ChainReadError(HiveMindError):
    """Raised when an RPC node or contract call fails."""
    pass


class OpenSeaError(HiveMindError):
    """Raised when the OpenSea MCP endpoint returns an error."""
    pass


class SwarmError(HiveMindError):
    """Raised for swarm coordination failures."""
    pass


def create_error_response(
    status_code: int, message: str, detail: Any | None = None
) -> JSONResponse:
    """
    Create a standardized JSON error response.

    Args:
        status_code: HTTP status code
        message: Main error message
        detail: Optional additional detail

    Returns:
        JSONResponse with error information
    """
    error_response = ErrorResponse(error=message, detail=detail)

    logger.error(f"Error {status_code}: {message} - {sanitize(str(detail))}")

    return JSONResponse(
        status_code=status_code, content=error_response.model_dump()
    )


async def http_exception_handler(
    request: Request, exc: HTTPException
) -> JSONResponse:
    """
    Handle HTTPException globally.

    A dict detail is passed through as the response body so routes can shape
    their own error payloads; string details become ``{"error": detail}``.
    """
    if isinstance(exc.detail, dict):
        logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {sanitize(exc.detail)}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.detail,
            headers=getattr(exc, "headers", None),
        )

    response = create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail) if exc.detail else "Request processing error",
    )
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def safe_exception_handler(
    request: Request, exc: SafeException
) -> JSONResponse:
    """Handle domain exceptions that carry their own status code.

    A dict detail is a complete response body (e.g. an x402 challenge).
    """
    if isinstance(exc.detail, dict):
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        detail=exc.detail,
    )


async def general_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Handle all other exceptions globally.

    Args:
        request: The request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with sanitized error information
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=True,
    )

    if settings.debug:
        detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    else:
        detail = None

    return create_error_response(
        status_code=500,
        message="Internal server error",
        detail=detail,
    )


def failure_response(message: str, exc: Exception, status_code: int = 500) -> JSONResponse:
    """
    Response for a failed third-party call inside a route.

    Args:
        message: What the route was trying to do
        exc: The underlying error; its message becomes ``details``
        status_code: HTTP status code

    Returns:
        JSONResponse with ``{"error", "details"}``
    """
    logger.error(f"{message}: {sanitize(str(exc))}")
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "details": str(exc) or "Unknown error"},
    )


def numeric_param(params: dict[str, Any], key: str, default: float | None) -> float | None:
    """
    Read a numeric request parameter.

    Missing or null values take ``default``; an explicit 0 is kept.

    Raises:
        InvalidParameterError: If the value is not a finite number
    """
    value = params.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidParameterError(f"Invalid {key} parameter")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"Invalid {key} parameter")
    if not math.isfinite(number):
        raise InvalidParameterError(f"Invalid {key} parameter")
    return number
