"""
Error handling and sanitization

- Domain errors (CommerceBaseError) → structured JSON with a mapped status code;
  their messages are written for the admin UI and pass through as-is
- Unhandled exceptions → generic message, full details logged only
- Database/driver details are never returned to the client outside DEBUG
"""
import logging
import traceback
from typing import Union

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from commerce_console.core.config import settings
from commerce_console.core.exceptions import (
    CommerceBaseError,
    NotFoundError,
    RefundValidationError,
    TaxonomyError,
    InvalidRefundTransitionError,
)

logger = logging.getLogger(__name__)

# Patterns that indicate internal/sensitive error information
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "token",
    "credential",
    "sqlalchemy",
    "asyncpg",
    "postgresql",
    "traceback",
    "file \"",
    "line ",
]


def is_sensitive_error(message: str) -> bool:
    """Check if error message contains sensitive information."""
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """Sanitize an error message for safe client exposure."""
    message = error if isinstance(error, str) else str(error)

    if settings.DEBUG:
        return message

    if is_sensitive_error(message):
        return "An internal error occurred. Please try again later."

    if len(message) > 200:
        return message[:200] + "..."

    return message


def status_code_for(error: CommerceBaseError) -> int:
    """Map a domain error onto an HTTP status code."""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, RefundValidationError):
        return 400
    if isinstance(error, (TaxonomyError, InvalidRefundTransitionError)):
        return 409
    return 400


def http_error(error: CommerceBaseError) -> HTTPException:
    """Convert a domain error into an HTTPException for route handlers."""
    return HTTPException(
        status_code=status_code_for(error),
        detail={"code": error.code, "message": error.message},
    )


async def commerce_error_handler(request: Request, exc: CommerceBaseError) -> JSONResponse:
    """Exception handler for domain errors that escape a route."""
    logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Catch unhandled exceptions and sanitize error responses.

    - In production: Returns generic error, logs full details
    - In development: Returns full error for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except CommerceBaseError:
            raise
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                f"Unhandled exception [{error_id}]: {type(e).__name__}: {str(e)}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            if settings.DEBUG:
                return JSONResponse(
                    status_code=500,
                    content={
                        "error": "internal_error",
                        "message": str(e),
                        "type": type(e).__name__,
                        "error_id": error_id,
                    }
                )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "internal_error",
                    "message": "An unexpected error occurred. Please try again later.",
                    "error_id": error_id,
                }
            )
