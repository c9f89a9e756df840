# backend/app/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application (tables are created on startup)
- Registers global exception handlers
- Registers all routers
- Defines global endpoints (health checks)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException

from app.config import settings
from app.database import engine, get_db
from app.dependencies import close_providers
from app.middleware import (
    CorrelationIdMiddleware,
    limiter,
    rate_limit_exceeded_handler,
    SlowAPIMiddleware,
    RATE_LIMIT_HEALTH,
)
from app.models import Base
from app.routers import users_router
from app.schemas.errors import ErrorDetail, ValidationErrorDetail
from app.services.exceptions import (
    ServiceError,
    ValidationError,
    NotFoundError,
    ExternalServiceError,
    ProviderUnavailableError,
    RateLimitError,
    MalformedResponseError,
    CurrencyRateUnavailableError,
    PriceFetchIncompleteError,
    PersistenceError,
)
from app.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.app_name} started (environment={settings.environment})")
    yield
    close_providers()


app = FastAPI(
    title=settings.app_name,
    description="Tracks the market value of Steam inventories over time",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Service exceptions carry no HTTP knowledge; the mapping lives here.
# Handlers are resolved along the exception MRO, so a handler for a base
# class covers every subclass without its own handler.
# =============================================================================

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def _error_response(
        status_code: int,
        exc: ServiceError,
        details: dict | None = None,
        headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=details,
        ).model_dump(),
        headers=headers,
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle unknown names, profiles and users (404)."""
    logger.warning(f"Not found: {exc}")
    return _error_response(
        404,
        exc,
        details={"resource_type": exc.resource_type, "resource_id": exc.resource_id},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle business rule violations such as an empty inventory (400)."""
    logger.warning(f"Validation error: {exc}")
    return _error_response(400, exc, details={"field": exc.field} if exc.field else None)


@app.exception_handler(PriceFetchIncompleteError)
async def price_fetch_incomplete_handler(
    request: Request, exc: PriceFetchIncompleteError
) -> JSONResponse:
    """Handle an aborted sync due to failed price lookups (429)."""
    logger.warning(f"Sync aborted: {exc}")
    return _error_response(
        429,
        exc,
        details={"failed_item_ids": exc.failed_item_ids, "total": exc.total},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Handle a rolled back snapshot write (500)."""
    logger.error(f"Persistence failure: {exc}")
    return _error_response(500, exc, details={"user_id": exc.user_id})


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    """Handle upstream rate limiting (429)."""
    logger.warning(f"Rate limit exceeded: {exc}")
    return _error_response(
        429,
        exc,
        details={"provider": exc.provider, "retry_after": exc.retry_after},
        headers={"Retry-After": str(exc.retry_after)} if exc.retry_after else None,
    )


@app.exception_handler(ProviderUnavailableError)
async def provider_unavailable_handler(
    request: Request, exc: ProviderUnavailableError
) -> JSONResponse:
    """Handle an unreachable provider (503)."""
    logger.error(f"Provider unavailable: {exc}")
    return _error_response(503, exc, details={"provider": exc.provider})


@app.exception_handler(CurrencyRateUnavailableError)
async def currency_rate_unavailable_handler(
    request: Request, exc: CurrencyRateUnavailableError
) -> JSONResponse:
    """Handle missing tracked currency rates (503)."""
    logger.error(f"Currency rates unavailable: {exc}")
    return _error_response(503, exc, details={"provider": exc.provider, "missing": exc.missing})


@app.exception_handler(MalformedResponseError)
async def malformed_response_handler(
    request: Request, exc: MalformedResponseError
) -> JSONResponse:
    """Handle an uninterpretable provider payload (502)."""
    logger.error(f"Malformed provider response: {exc}")
    return _error_response(502, exc, details={"provider": exc.provider})


@app.exception_handler(ExternalServiceError)
async def external_service_error_handler(
    request: Request, exc: ExternalServiceError
) -> JSONResponse:
    """Handle other provider failures, e.g. a private inventory (502)."""
    logger.error(f"External service error: {exc}")
    return _error_response(502, exc, details={"provider": exc.provider})


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return _error_response(500, exc)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle all HTTPExceptions with consistent error format.

    Registered for Starlette's HTTPException so unknown routes (404) and
    wrong methods (405) get the ErrorDetail format too.
    """
    error_types = {
        400: "BadRequestError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        422: "ValidationError",
        429: "RateLimitError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_types.get(exc.status_code, "HTTPError"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            details=None,
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert request validation errors to the ValidationErrorDetail format (422)."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(details=errors).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(users_router)  # /users/{name}/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def root(request: Request):
    """API root - returns basic application info."""
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Health of the service and its dependencies.

    **Response Status Codes:**
    - 200: Database reachable
    - 503: Database unreachable - do not route traffic here

    External providers are not probed: a health poll must not spend the
    Steam rate limit budget.
    """
    checks = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy", "critical": True}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = {"status": "unhealthy", "critical": True, "error": str(e)}
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "checks": checks},
        )

    checks["steam_api_key"] = {
        "status": "configured" if settings.steam_api_key else "missing",
        "critical": False,
    }
    overall = "healthy" if settings.steam_api_key else "degraded"
    return {"status": overall, "checks": checks}


@app.get("/health/live", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def liveness_check(request: Request):
    """Liveness probe: 200 whenever the process is running."""
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def readiness_check(request: Request, db: Session = Depends(get_db)):
    """Readiness probe: 503 while the database is unreachable."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready"}
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "error": "Database unavailable"},
        )
