"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gov_ai import __version__
from gov_ai.config import get_settings
from gov_ai.models.api import ErrorResponse
from gov_ai.pipeline.job_queue import JobQueue

logger = structlog.get_logger(__name__)


def create_app(job_queue: JobQueue | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        # Startup
        logger.info("application_starting")
        queue = job_queue or JobQueue()
        app.state.job_queue = queue
        await queue.start()
        logger.info(
            "configuration_loaded",
            debug=settings.debug,
            reports_dir=str(queue.store.directory),
            concurrency=queue.max_concurrent,
        )

        yield

        # Shutdown
        logger.info("application_shutting_down")
        await queue.stop()

    app = FastAPI(
        title="gov-ai API",
        description="Queue governance proposals for LLM risk analysis",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        if exc.status_code in (404, 405):
            return JSONResponse(status_code=404, content=ErrorResponse(error="Not found").model_dump())
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(status_code=500, content=ErrorResponse(error=str(exc)).model_dump())

    # Include routers
    from gov_ai.api.routes import jobs

    app.include_router(jobs.router, tags=["jobs"])

    # Health check
    @app.get("/health")
    async def health_check(request: Request) -> dict:
        """Health check endpoint."""
        queue: JobQueue = request.app.state.job_queue
        return {
            "status": "healthy",
            "queue": {
                "running": queue.running,
                "pending": queue.pending,
                "concurrency": queue.max_concurrent,
            },
            "llm_configured": bool(settings.ambient_api_key),
        }

    return app


# Create default app instance
app = create_app()
