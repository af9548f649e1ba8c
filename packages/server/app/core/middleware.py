"""
HTTP middleware: request logging, security headers, rate limiting, metrics.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.errors import RateLimitError, app_error_response
from app.core.metrics import MetricsCollector
from app.core.redis import get_counter_store

log = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
UNMETERED_PATHS = {"/health", "/ready", "/metrics"}

# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the log context and log each completed request."""

    def __init__(self, app, slow_request_ms: int = 1000) -> None:
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        request.state.request_id = request_id

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - started) * 1000
            log.error(
                "request.failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 1),
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        fields = {
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 1),
        }
        if duration_ms > self.slow_request_ms:
            fields["slow"] = True

        if response.status_code >= 500:
            log.error("request.completed", **fields)
        elif response.status_code >= 400 or fields.get("slow"):
            log.warning("request.completed", **fields)
        else:
            log.info("request.completed", **fields)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://fastapi.tiangolo.com; "
        "frame-ancestors 'none';"
    ),
}

HSTS_HEADER = ("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    def __init__(self, app, hsts: bool = False) -> None:
        super().__init__(app)
        self.hsts = hsts

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        if self.hsts:
            response.headers[HSTS_HEADER[0]] = HSTS_HEADER[1]
        return response


# ---------------------------------------------------------------------------
# Rate limiting (fixed window per client IP)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitPreset:
    name: str
    limit: int
    window_seconds: int
    message: str


STANDARD_LIMIT = RateLimitPreset(
    "standard", 100, 15 * 60, "Too many requests, please try again later."
)
AUTH_LIMIT = RateLimitPreset(
    "auth", 5, 15 * 60, "Too many login attempts, please try again later."
)
PUBLIC_LIMIT = RateLimitPreset(
    "public", 500, 15 * 60, "Too many requests, please try again later."
)


def preset_for(request: Request) -> RateLimitPreset | None:
    path = request.url.path
    if path in UNMETERED_PATHS:
        return None
    if request.method == "POST" and path.rstrip("/") == "/api/v1/auth/login":
        return AUTH_LIMIT
    if path.startswith("/api/public"):
        return PUBLIC_LIMIT
    return STANDARD_LIMIT


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject clients that exceed their preset with a 429 envelope."""

    async def dispatch(self, request: Request, call_next) -> Response:
        preset = preset_for(request)
        if preset is None or request.method == "OPTIONS":
            return await call_next(request)

        key = f"ratelimit:{preset.name}:{client_ip(request)}"
        count, reset_in = await get_counter_store().incr(key, preset.window_seconds)
        headers = {
            "X-RateLimit-Limit": str(preset.limit),
            "X-RateLimit-Remaining": str(max(0, preset.limit - count)),
            "X-RateLimit-Reset": str(int(time.time()) + reset_in),
        }

        if count > preset.limit:
            log.warning("rate_limit.exceeded", preset=preset.name, path=request.url.path)
            headers["Retry-After"] = str(reset_in)
            return app_error_response(
                RateLimitError(preset.message, details={"retryAfter": reset_in}, headers=headers)
            )

        response = await call_next(request)
        for header, value in headers.items():
            response.headers[header] = value
        return response


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record latency per route template."""

    def __init__(self, app, collector: MetricsCollector) -> None:
        super().__init__(app)
        self.collector = collector

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in UNMETERED_PATHS:
            return await call_next(request)
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            path = getattr(route, "path", None) or "unmatched"
            self.collector.observe(
                request.method, path, status_code, (time.perf_counter() - started) * 1000
            )
