"""
fairquote - Main Application

FastAPI application serving the vehicle-service price-fairness engine:
- Rate lookup across crowd quotes, curated baselines and heuristics
- AI-backed quote comparison and single-price assessment
- Crowd learning from submitted quotes
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fairquote.api.routes import catalog, quotes, rates
from fairquote.config.settings import Settings, get_settings
from fairquote.database.base import close_db, create_engine, create_session_factory, init_db
from fairquote.services.pricing.catalog_store import InMemoryCatalogStore
from fairquote.services.pricing.errors import (
    ProviderResponseInvalid,
    ProviderUnavailable,
    StorageUnavailable,
    ValidationError,
)
from fairquote.utils.logging import RequestLogger, get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings

    # Startup
    setup_logging(settings)
    logger.info(
        "Starting fairquote",
        version=settings.app_version,
        catalog_backend=settings.pricing.catalog_backend,
        ai_configured=settings.ai.configured,
    )

    engine = None
    if settings.pricing.catalog_backend == "memory":
        app.state.catalog_store = InMemoryCatalogStore(
            default_region=settings.pricing.default_region,
            default_currency=settings.pricing.default_currency,
        )
    else:
        engine = create_engine(settings.database, echo=settings.debug)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        await init_db(engine)
        logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down fairquote")
    if engine is not None:
        await close_db(engine)


def _error(status_code: int, detail: str, code: str | None = None, **extra) -> JSONResponse:
    content = {"success": False, "detail": detail}
    if code:
        content["code"] = code
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to run with; defaults to the cached environment settings
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="""
## fairquote API

Decides whether a shop's quoted price for vehicle maintenance is fair,
overpriced or indeterminate, and learns from every quote users submit.

### Services

- **Rates**: best available price estimate per service
- **Quotes**: AI comparison, heuristic fallback, single assessments, crowd learning
- **Catalog**: resolved rate and raw rollups per service key

### Users

Authentication is handled upstream. Pass the opaque user reference in the
`X-User-Id` header to attach it to learned quotes.
        """,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    request_logger = RequestLogger()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing."""
        start_time = time.time()
        user_id = request.headers.get("x-user-id")

        request_logger.log_request(
            method=request.method,
            path=request.url.path,
            user_id=user_id,
        )

        response = await call_next(request)

        request_logger.log_response(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
            user_id=user_id,
        )

        return response

    # Exception handlers
    @app.exception_handler(ProviderUnavailable)
    async def provider_unavailable_handler(request: Request, exc: ProviderUnavailable):
        """Distinct retry-later signal; never replaced with heuristic data here."""
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), code="ai_not_configured")

    @app.exception_handler(ProviderResponseInvalid)
    async def provider_response_invalid_handler(request: Request, exc: ProviderResponseInvalid):
        logger.warning("AI response invalid", reason=exc.reason, path=request.url.path)
        return _error(status.HTTP_502_BAD_GATEWAY, str(exc), code="ai_response_invalid")

    @app.exception_handler(ValidationError)
    async def pricing_validation_handler(request: Request, exc: ValidationError):
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            exc.message,
            code="validation_error",
            field=exc.field,
        )

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
        logger.error("Catalog storage unavailable", error_message=str(exc), path=request.url.path)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Catalog storage unavailable", code="storage_unavailable")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors with detailed messages."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "success": False,
                "detail": "Validation error",
                "errors": jsonable_errors(exc),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors."""
        logger.error(
            "Unhandled exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred")

    # Include routers
    app.include_router(rates.router, prefix=f"{settings.api_prefix}/rates", tags=["Rates"])
    app.include_router(quotes.router, prefix=f"{settings.api_prefix}/quotes", tags=["Quotes"])
    app.include_router(catalog.router, prefix=f"{settings.api_prefix}/catalog", tags=["Catalog"])

    # Health check endpoint
    @app.get("/health", tags=["System"])
    async def health_check():
        """System health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "ai_configured": settings.ai.configured,
            "catalog_backend": settings.pricing.catalog_backend,
        }

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/api/docs" if settings.debug else "Disabled in production",
            "services": ["Rates", "Quotes", "Catalog"],
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the non-serializable `ctx`/`input` payloads."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "fairquote.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=settings.workers if not settings.debug else 1,
    )


if __name__ == "__main__":
    run()
