"""FastAPI application for the nesting engine."""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from slabnest import __version__
from slabnest.api.routes import router as nesting_router
from slabnest.config import get_settings
from slabnest.nesting.errors import EngineFault, InvalidRequest
from slabnest.observability.logging import setup_logging
from slabnest.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from slabnest.utils import get_logger

logger = get_logger("api")

API_TITLE = "SlabNest API"
API_DESCRIPTION = """
SlabNest - stone slab nesting engine

## Features
- **Optimize**: lay out parts on slabs, honoring kerf and locked parts
- **Placement edits**: move one part and re-flow its slab
"""


def create_app(configure_logging: bool = True) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    if configure_logging:
        setup_logging()

    app = FastAPI(
        title=API_TITLE,
        version=__version__,
        description=API_DESCRIPTION,
        docs_url="/api/v1/docs",
        openapi_url="/api/v1/openapi.json",
    )

    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)

    app.include_router(nesting_router, prefix="/api/v1/nesting", tags=["Nesting"])

    @app.exception_handler(InvalidRequest)
    async def invalid_request_handler(request: Request, exc: InvalidRequest):
        logger.info(f"Rejected request to {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(EngineFault)
    async def engine_fault_handler(request: Request, exc: EngineFault):
        logger.error(f"Nesting engine fault: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Optimization failed", "details": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "healthy", "version": __version__}

    @app.get("/metrics", tags=["Health"])
    async def metrics():
        return Response(content=get_metrics(), media_type=get_metrics_content_type())

    return app
