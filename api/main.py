"""
HOUSECALL API - FastAPI backend for house-call and phone visit bookings.

Answers whether a location is served (zone coverage), takes bookings
stamped with their matched zone, manages patients per account, and gives
administrators zone, booking and audit tooling.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
import uvicorn

from api.config import settings
from api.database import init_db
from api.health import API_VERSION
from api.middleware import setup_middleware, get_request_id
from api.rate_limit import limiter
from api.routers import admin, bookings, coverage, dashboard, family_members, system, zones
from src.coverage.errors import (
    CoverageError,
    GeocodingError,
    MatchingError,
    NotFoundError,
    ValidationError,
)

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(message)s',  # JSON logs are self-contained
)
logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (ValidationError, 400, "Validation error"),
    (NotFoundError, 404, "Not found"),
    (GeocodingError, 422, "Geocoding error"),
    (MatchingError, 503, "Zone matching unavailable"),
)


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": detail,
            "request_id": get_request_id(),
        },
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Application factory for HOUSECALL API.

    Returns:
        FastAPI: Configured application instance
    """
    application = FastAPI(
        title="HOUSECALL API",
        description="""
## House-call booking API

### Features
- Service-area coverage checks by address or coordinates
- Bookings stamped with the matched service zone
- Patient (family member) records per account
- Zone, booking and audit administration

### Authentication
API key authentication in the `X-API-Key` header for everything except
coverage checks and health. Administrator keys are required under
`/api/admin`.
        """,
        version=API_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    setup_middleware(application, debug=settings.is_development)

    # CORS - configured origins only
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    application.state.limiter = limiter

    @application.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={
                "error": "Rate limit exceeded",
                "detail": str(exc.detail),
                "retry_after": getattr(exc, 'retry_after', 60),
            },
            headers={"Retry-After": str(getattr(exc, 'retry_after', 60))},
        )

    @application.exception_handler(CoverageError)
    async def coverage_error_handler(request: Request, exc: CoverageError):
        for error_type, status_code, label in ERROR_STATUS:
            if isinstance(exc, error_type):
                if status_code >= 500:
                    logger.error(f"{label} on {request.method} {request.url.path}: {exc}")
                return _error_response(status_code, label, str(exc))
        logger.error(f"Unmapped domain error on {request.url.path}: {exc}")
        return _error_response(500, "Internal Server Error", str(exc))

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})

    application.include_router(system.router)
    application.include_router(coverage.router)
    application.include_router(bookings.router)
    application.include_router(family_members.router)
    application.include_router(zones.router)
    application.include_router(admin.router)
    application.include_router(dashboard.router)

    @application.on_event("startup")
    async def startup_event():
        """Create tables if they don't exist yet."""
        init_db()
        logger.info(
            f"HOUSECALL API started ({settings.environment}); "
            f"zone restriction {'enforced' if settings.enforce_zone_restriction else 'not enforced'}"
        )

    return application


def jsonable_errors(exc: RequestValidationError):
    """Validation errors without the raw input (it can hold patient data)."""
    return [
        {k: v for k, v in error.items() if k not in ("input", "ctx", "url")}
        for error in exc.errors()
    ]


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
