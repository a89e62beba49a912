"""HTTP middleware for the API."""

from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from . import settings

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "_csrf"
CSRF_HEADER_NAME = "X-CSRF-Token"

SAFE_METHODS = {"GET", "HEAD", "OPTIONS", "TRACE"}

# Unsafe requests to these paths need no CSRF token
CSRF_EXEMPT_PATHS = {
    f"{settings.API_PREFIX}/register",
    f"{settings.API_PREFIX}/login",
}

DOCS_PREFIX = "/game-hangar/docs"


def _problem(status_code: int, title: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"type": "about:blank", "title": title, "status": status_code, "detail": detail},
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Implements OWASP recommended security headers to protect against
    common web vulnerabilities.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()"
        )

        if settings.ENVIRONMENT == "production" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        # Swagger UI pulls its assets from a CDN; everything else is plain JSON
        if not request.url.path.startswith(DOCS_PREFIX):
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
            )

        return response


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Double-submit cookie protection.

    Safe requests receive a ``_csrf`` cookie when they lack one. Unsafe
    requests must echo that cookie in the ``X-CSRF-Token`` header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        cookie_token = request.cookies.get(CSRF_COOKIE_NAME)

        if request.method not in SAFE_METHODS and not self._is_exempt(request.url.path):
            header_token = request.headers.get(CSRF_HEADER_NAME)
            if (
                not cookie_token
                or not header_token
                or not secrets.compare_digest(cookie_token, header_token)
            ):
                logger.info(f"CSRF check failed for {request.method} {request.url.path}")
                return _problem(status.HTTP_403_FORBIDDEN, "Forbidden", "CSRF token missing or invalid")

        response = await call_next(request)

        if not cookie_token:
            response.set_cookie(
                CSRF_COOKIE_NAME,
                secrets.token_urlsafe(32),
                path="/",
                samesite="strict",
                secure=settings.ENVIRONMENT == "production",
            )
        return response

    @staticmethod
    def _is_exempt(path: str) -> bool:
        return path.rstrip("/") in CSRF_EXEMPT_PATHS or path.startswith(DOCS_PREFIX)


class TimeoutMiddleware(BaseHTTPMiddleware):
    """
    Answer 503 when a request outlives its budget.

    The handler is abandoned, not rolled back: SQL already sent may still
    complete on the server.
    """

    def __init__(self, app, timeout_seconds: float | None = None):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds or settings.REQUEST_TIMEOUT_SECONDS

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Request timed out after {self.timeout_seconds}s: {request.method} {request.url.path}"
            )
            return _problem(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "Service unavailable",
                "Request timed out",
            )
