"""
Typed application errors and the JSON error envelope.

Services raise these; the handlers registered here map them to
``{error, code, statusCode, timestamp, details?}``.
"""

from __future__ import annotations

import traceback
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from scheduleright_shared.schemas.common import utcnow_iso

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------

class AppError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Any = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        self.headers = headers


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"


class SlotUnavailableError(ConflictError):
    code = "SLOT_UNAVAILABLE"

    def __init__(self, slot_id: str, message: str = "Slot is no longer available"):
        super().__init__(message, details={"slotId": slot_id})
        self.slot_id = slot_id


class DocumentNotFoundError(NotFoundError):
    code = "DOCUMENT_NOT_FOUND"


class DocumentConflictError(ConflictError):
    """A write carried a stale revision."""

    code = "DOCUMENT_CONFLICT"


class StoreError(AppError):
    """The backing store failed in a way callers cannot act on."""

    status_code = 503
    code = "STORE_UNAVAILABLE"


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

def error_body(message: str, code: str, status_code: int, details: Any = None) -> dict:
    body = {
        "error": message,
        "code": code,
        "statusCode": status_code,
        "timestamp": utcnow_iso(),
    }
    if details is not None:
        body["details"] = details
    return body


def error_response(
    message: str,
    code: str,
    status_code: int,
    details: Any = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_body(message, code, status_code, details),
        headers=headers,
    )


def app_error_response(exc: AppError) -> JSONResponse:
    return error_response(exc.message, exc.code, exc.status_code, exc.details, exc.headers)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.app_error", code=exc.code, error=exc.message, path=request.url.path)
    return app_error_response(exc)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"Invalid request: {location}: {message}"
    else:
        message = f"Invalid request: {message}"
    details = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in errors
    ]
    return error_response(message, "VALIDATION_ERROR", 400, details)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(
        str(exc.detail),
        f"HTTP_{exc.status_code}",
        exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unhandled_error", path=request.url.path, method=request.method)
    details = None
    if not get_settings().is_production:
        details = {
            "type": type(exc).__name__,
            "message": str(exc),
            "stack": traceback.format_exception(type(exc), exc, exc.__traceback__),
        }
    return error_response("Internal server error", "INTERNAL_ERROR", 500, details)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
