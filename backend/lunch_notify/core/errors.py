"""
Centralized error handling for notification operations.

Domain code raises NotificationError subclasses; routes stay thin and the app-level
handler renders them as {"error", "code", "detail"} with the matching status code.
"""
from __future__ import annotations

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lunch_notify.core.constants import ERROR_MESSAGE_MAX_LENGTH

# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_UNAUTHORIZED = 401
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_SERVICE_UNAVAILABLE = 503  # store down, connection pool exhausted


class NotificationError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, detail: str | None = None):
        message = (message or "").strip()[:ERROR_MESSAGE_MAX_LENGTH]
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(NotificationError):
    status_code = STATUS_BAD_REQUEST
    code = "VALIDATION_ERROR"


class InvalidKind(ValidationError):
    code = "INVALID_KIND"


class Unauthorized(NotificationError):
    status_code = STATUS_UNAUTHORIZED
    code = "UNAUTHORIZED"


class Forbidden(NotificationError):
    status_code = STATUS_FORBIDDEN
    code = "FORBIDDEN"


class NotFound(NotificationError):
    status_code = STATUS_NOT_FOUND
    code = "NOT_FOUND"


class TransientStoreError(NotificationError):
    status_code = STATUS_SERVICE_UNAVAILABLE
    code = "STORE_UNAVAILABLE"


def error_body(exc: NotificationError, include_detail: bool = True) -> dict:
    body = {"error": exc.message, "code": exc.code}
    if include_detail and exc.detail:
        body["detail"] = exc.detail
    return body


def install_error_handlers(app, include_detail: bool = True) -> None:
    """Register handlers for NotificationError and malformed request bodies; detail is dropped in production."""

    @app.exception_handler(NotificationError)
    async def _notification_error_handler(request: Request, exc: NotificationError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc, include_detail))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "request"
        err = ValidationError(f"Invalid value for {field}", detail=first.get("msg"))
        return JSONResponse(status_code=err.status_code, content=error_body(err, include_detail))
