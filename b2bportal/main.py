"""B2B portal application.

Builds the FastAPI app: lifespan (logging, schema creation, engine
disposal), CORS for the storefront, correlation middleware, the corporate
routers and the handlers that map every failure onto the error body.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from b2bportal.api import catalog_router, health_router, orders_router, quotes_router
from b2bportal.api.middleware import error_response, setup_middleware
from b2bportal.domain.exceptions import DomainError
from b2bportal.infrastructure.config import settings
from b2bportal.infrastructure.database import dispose_engine, init_models
from b2bportal.infrastructure.logging_config import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    configure_logging()
    logger.info(
        "Starting corporate ordering API",
        version=settings.api_version,
        debug=settings.debug,
        gateway_env=settings.cashfree_env,
    )
    await init_models()

    yield

    # Shutdown
    logger.info("Shutting down corporate ordering API")
    await dispose_engine()


app = FastAPI(
    title="B2B Portal API",
    description="Corporate ordering, payment reconciliation and quotes",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.client_url.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(catalog_router)
app.include_router(orders_router)
app.include_router(quotes_router)


# ============================================================================
# Exception Handlers
# ============================================================================


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render domain errors with the status their class declares."""
    log = logger.error if exc.http_status >= 500 else logger.info
    log(
        "Request failed",
        error_code=exc.error_code,
        status_code=exc.http_status,
        path=request.url.path,
        error=exc.message,
    )
    return error_response(request, exc.http_status, exc.error_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed requests as 422 with the field errors as details."""
    return error_response(
        request,
        422,
        "VALIDATION_ERROR",
        "Request validation failed",
        jsonable_encoder(exc.errors()),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTP exceptions, honouring a structured ``detail``."""
    detail = exc.detail
    if isinstance(detail, dict):
        return error_response(
            request,
            exc.status_code,
            detail.get("error_code", "ERROR"),
            detail.get("message", str(detail)),
            detail.get("details", {}),
            headers=exc.headers,
        )
    return error_response(request, exc.status_code, "ERROR", str(detail), headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Hide unexpected failures behind a generic 500."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return error_response(request, 500, "INTERNAL_ERROR", "An internal error occurred")
