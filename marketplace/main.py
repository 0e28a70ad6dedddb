"""Marketplace API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, exception handlers and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.api import (
    carts_router,
    categories_router,
    health_router,
    orders_router,
    products_router,
    promotions_router,
    sellers_router,
    support_router,
    user_orders_router,
    users_router,
)
from marketplace.api.middleware import setup_middleware
from marketplace.domain.exceptions import (
    AuthenticationError,
    ConflictError,
    DomainError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)
from marketplace.infrastructure.audit import drain_audit_tasks
from marketplace.infrastructure.config import settings
from marketplace.infrastructure.database import engine, init_models
from marketplace.infrastructure.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging()
    logger.info(
        "Starting marketplace API",
        version=settings.api_version,
        debug=settings.debug,
        audit_sink=settings.audit_sink,
    )

    if settings.auto_create_schema:
        await init_models()
        logger.info("Database schema created")

    yield

    logger.info("Shutting down marketplace API")
    await drain_audit_tasks()
    await engine.dispose()


app = FastAPI(
    title="Marketplace Orders API",
    description="Cart, checkout, inventory and delivery tracking for an online marketplace",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, API key auth, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(carts_router)
app.include_router(orders_router)
app.include_router(user_orders_router)
app.include_router(users_router)
app.include_router(sellers_router)
app.include_router(support_router)
app.include_router(products_router)
app.include_router(promotions_router)
app.include_router(categories_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


# Checked in order, subclasses before their bases
_STATUS_BY_ERROR: list[tuple[type[DomainError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (IntegrityError, status.HTTP_409_CONFLICT),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
]


def status_for_error(exc: DomainError) -> int:
    """Map a domain error to its HTTP status code."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def _error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: object,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": jsonable_encoder(details),
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate domain errors into the standard error body."""
    status_code = status_for_error(exc)
    logger.info(
        "Request rejected",
        path=request.url.path,
        method=request.method,
        status_code=status_code,
        error_code=exc.error_code,
        error=exc.message,
    )
    return _error_response(request, status_code, exc.error_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies in the standard error body."""
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        exc.errors(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "ERROR"
        message = str(detail)
        details = {}

    return _error_response(request, exc.status_code, error_code, message, details)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An internal error occurred",
        {},
    )
