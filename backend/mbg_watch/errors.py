"""
MBG Watch - Error Taxonomy

Every failure the engine reports to a caller is one of the AppError kinds
below. Routers never build error bodies by hand; the handlers registered in
main.py render them as {error, code, field?} with the matching HTTP status.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP status and error code."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(AppError):
    """Malformed or out-of-range input."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        return body


class ScoreRangeError(ValidationError):
    """A factor produced a value outside [0, max]. Fatal to the request."""

    def __init__(self, factor: str, value: float, maximum: float):
        super().__init__(
            f"Factor '{factor}' scored {value}, outside [0, {maximum}]",
            field=factor,
        )
        self.factor = factor
        self.value = value
        self.maximum = maximum


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class ConflictError(AppError):
    """
    Illegal state transition or lost status race.

    Carries the report's actual current status so the UI can resynchronize.
    """

    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.current_status is not None:
            body["currentStatus"] = self.current_status
        return body


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT"

    def __init__(self, message: str = "Too many requests"):
        super().__init__(message)


# =============================================================================
# FASTAPI HANDLERS
# =============================================================================

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render pydantic request failures in the same envelope as ValidationError."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    error = ValidationError(
        first.get("msg", "Invalid request"),
        field=".".join(location) or None,
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error on {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
