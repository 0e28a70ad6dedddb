"""HTTP middleware for the marketplace service.

Provides:
- Request context (request ID and actor) for log correlation
- API key authentication
- A last-resort error body for unhandled exceptions
"""

import hmac
import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace.api.dependencies import ACTOR_HEADER
from marketplace.infrastructure.config import settings

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# Paths served without an API key
PUBLIC_PATHS = frozenset({"/health", "/ready", "/openapi.json"})
PUBLIC_PREFIXES = ("/docs", "/redoc")


def error_body(request: Request, error_code: str, message: str) -> dict:
    """Standard error payload for responses built outside route handlers."""
    return {
        "error_code": error_code,
        "message": message,
        "details": {},
        "request_id": getattr(request.state, "request_id", None),
    }


# ============================================================================
# Request Context Middleware
# ============================================================================


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every request with a correlation ID.

    The ID comes from the X-Request-ID header or is generated. It is
    stored on request.state, echoed in the response header and bound,
    together with the X-Actor header, to the structlog context so every
    log line of the request carries both.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        with structlog.contextvars.bound_contextvars(
            request_id=request_id,
            actor=request.headers.get(ACTOR_HEADER),
        ):
            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                logger.info(
                    "Request completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


# ============================================================================
# API Key Authentication Middleware
# ============================================================================


def is_public_path(path: str) -> bool:
    """Check whether a path is served without authentication."""
    path = path.rstrip("/") or "/"
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def bearer_token(header: str | None) -> str | None:
    """Extract the token from an "Authorization: Bearer <token>" header."""
    scheme, _, token = (header or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Requires "Authorization: Bearer <api_key>" on every non-public path."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_public_path(request.url.path):
            return await call_next(request)

        header = request.headers.get("Authorization")
        if not header:
            return self._reject(request, "UNAUTHORIZED", "Missing Authorization header")

        token = bearer_token(header)
        if token is None:
            return self._reject(
                request,
                "UNAUTHORIZED",
                "Invalid Authorization header format. Use 'Bearer <api_key>'",
            )

        if not hmac.compare_digest(token.encode(), settings.api_key.encode()):
            return self._reject(request, "INVALID_API_KEY", "Invalid API key")

        request.state.authenticated = True
        return await call_next(request)

    @staticmethod
    def _reject(request: Request, error_code: str, message: str) -> JSONResponse:
        logger.warning(
            "Request not authenticated",
            error_code=error_code,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=error_body(request, error_code, message),
            headers={"WWW-Authenticate": "Bearer"},
        )


# ============================================================================
# Error Handling Middleware
# ============================================================================


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns exceptions that escaped every handler into a 500 error body."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled exception", path=request.url.path, method=request.method)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_body(request, "INTERNAL_ERROR", "An internal error occurred"),
            )


# ============================================================================
# Middleware Setup
# ============================================================================


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application.

    Middleware is added in reverse order (last added = first executed),
    so the request context wraps authentication and 401 responses still
    carry X-Request-ID.

    Args:
        app: FastAPI application instance.
    """
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(ApiKeyMiddleware)
    app.add_middleware(RequestContextMiddleware)
