"""Omnia FastAPI Application Entry Point."""

import logging
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .logger import setup_logging
from .pipeline import ErrorKind, PipelineError, redact
from .routers import (
    stats_router,
    seo_router,
    blog_router,
    products_router,
    billing_router,
    dashboard_router,
    orders_router,
)

logger = logging.getLogger(__name__)


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    """Render categorised failures as a JSON result."""
    message = redact(exc.message, get_settings().secrets())
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.kind.value, "message": message},
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": ErrorKind.UNEXPECTED.value,
            "message": "An unexpected error occurred",
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Omnia API",
        description="Catalog SEO content generation, Shopify sync and subscription billing",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # Include routers with /api prefix
    app.include_router(stats_router, prefix="/api")
    app.include_router(seo_router, prefix="/api")
    app.include_router(blog_router, prefix="/api")
    app.include_router(products_router, prefix="/api")
    app.include_router(billing_router, prefix="/api")
    app.include_router(dashboard_router, prefix="/api")
    app.include_router(orders_router, prefix="/api")

    return app


app = create_app()


def run():
    """Run the server."""
    settings = get_settings()
    logger.info("Omnia API running at http://localhost:%s", settings.port)
    uvicorn.run(
        "omnia.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
