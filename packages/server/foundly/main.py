"""
Foundly API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from foundly.core.config import get_settings
from foundly.core.errors import FoundlyError, StoreError
from foundly.core.logging import configure_logging
from foundly.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from foundly.api.v1 import router as api_v1_router
from foundly_shared.schemas.common import APIError, ErrorDetail

settings = get_settings()
log = structlog.get_logger()


async def foundly_error_handler(request: Request, exc: FoundlyError) -> JSONResponse:
    """Translate domain errors into ``{"error": {...}}`` responses."""
    if exc.expose:
        message = exc.message
    else:
        log.error("request.internal_error", code=exc.code, error=exc.message)
        message = "Internal server error"
    if isinstance(exc, StoreError):
        message = f"{message}. Please retry."

    return JSONResponse(
        status_code=exc.status_code,
        content=APIError(error=ErrorDetail(code=exc.code, message=message)).model_dump(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Foundly",
        description="Community organizations: join codes, members and membership upkeep.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware, outermost first
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(FoundlyError, foundly_error_handler)

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Foundly starting", debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Foundly shutting down")

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("foundly.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
