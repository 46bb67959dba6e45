"""
FastAPI application for the Job Engine.

This module provides:
- FastAPI application with CORS, lifespan management
- REST endpoints for job submission, status and deletion
- Download endpoints for result files and ZIP archives

Usage:
    # Start server
    uvicorn api.app:app --host 0.0.0.0 --port 8000 --reload

    # Or programmatically
    import uvicorn
    from api.app import app
    uvicorn.run(app, host="0.0.0.0", port=8000)
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from api.routes.jobs import router as jobs_router
from api.routes.results import router as results_router
from api.schemas import success_response, error_response
from core.config import load_session_config
from core.logger import log_config, setup_from_config
from job_engine.errors import (
    AggregateJobError,
    DuplicateIdError,
    IdParseError,
    JobEngineError,
    JobInitError,
    JobNotCompletedError,
    JobNotFoundError,
    ResultNotFoundError,
    StatusError,
)
from job_engine.session import session_from_config

logger = logging.getLogger(__name__)

# Engine error -> HTTP status code (first match wins, default 500)
ERROR_STATUS_CODES = (
    (JobNotFoundError, 404),
    (ResultNotFoundError, 404),
    (DuplicateIdError, 409),
    (JobNotCompletedError, 409),
    (StatusError, 409),
    (IdParseError, 400),
    (JobInitError, 400),
    (AggregateJobError, 500),
)


def status_code_for(exc: JobEngineError) -> int:
    for error_cls, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_cls):
            return code
    return 500


def create_app(config: Optional[Dict[str, Any]] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Resolved configuration (see core.config.load_session_config).
            Loaded from configs/defaults/session.yaml and the environment
            at startup if omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Handles startup and shutdown:
        - Startup: Resolve config, set up logging, create the JobSession
        - Shutdown: Report jobs still running (they finish on their own)
        """
        # Startup
        app_config = config if config is not None else load_session_config()
        setup_from_config(app_config)
        logger.info("Starting Job Engine API...")
        log_config(logger, app_config, title="Job Engine Configuration")

        try:
            app.state.session = session_from_config(app_config)
        except (OSError, ValueError) as e:
            logger.error("Failed to create job session: %s", e)
            raise

        yield

        # Shutdown
        logger.info("Shutting down Job Engine API...")
        running = app.state.session.executor.active_count()
        if running > 0:
            logger.warning("%d job(s) still running, waiting for them to finish", running)
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Job Engine API",
        description="""
API for submitting long-running jobs and fetching their results.

Every job lives in its own directory under the session root; status is
derived from the begin/end/error marker files in that directory.

## Endpoints

### Jobs
- `POST /api/jobs` - Submit new job
- `PUT /api/jobs/{id}` - Submit new job with the given id
- `GET /api/jobs/count` - Number of jobs
- `GET /api/jobs/ids` - All job ids
- `GET /api/jobs/ids/{state}` - Ids of running, completed or failed jobs
- `GET /api/jobs/status` - Status of all jobs
- `GET /api/jobs/{id}/status` - Status of a job
- `DELETE /api/jobs/{id}` - Delete a completed job
- `DELETE /api/jobs` - Delete all jobs

### Results
- `GET /api/jobs/{id}/files/{name}` - Download a file
- `GET /api/jobs/{id}/files/{name}/text` - Read a file as text
- `GET /api/jobs/{id}/zip` - Download selected files as ZIP
- `GET /api/jobs/{id}/zip-all` - Download all result files as ZIP
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Configure CORS
    # In production, replace "*" with specific origins
    default_origins = str(((config or {}).get("api") or {}).get("cors_origins", "*"))
    cors_origins = os.environ.get("CORS_ORIGINS", default_origins).split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(jobs_router)
    app.include_router(results_router)

    register_exception_handlers(app)
    register_info_routes(app)
    return app


# =============================================================================
# Exception Handlers - Wrap all errors in unified response format
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(JobEngineError)
    async def job_engine_exception_handler(request: Request, exc: JobEngineError):
        """Map job engine errors to HTTP status codes."""
        code = status_code_for(exc)
        if code >= 500:
            logger.error("Job engine error: %s", exc)
        else:
            logger.warning("Request failed: %s", exc)
        return JSONResponse(
            status_code=code,
            content=error_response(error=str(exc), code=code)
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Invalid job types, file names and ids."""
        return JSONResponse(
            status_code=400,
            content=error_response(error=str(exc), code=400)
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with unified response format."""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(
                error=str(exc.detail),
                code=exc.status_code
            )
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors with unified response format."""
        errors = exc.errors()
        error_messages = []
        for error in errors:
            loc = " -> ".join(str(x) for x in error["loc"])
            error_messages.append(f"{loc}: {error['msg']}")

        error_msg = "Validation failed: " + "; ".join(error_messages)

        return JSONResponse(
            status_code=422,
            content=error_response(
                error=error_msg,
                code=422
            )
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions with unified response format."""
        logger.error("Unexpected error: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_response(
                error=f"Internal server error: {str(exc)}",
                code=500
            )
        )


# =============================================================================
# Health and Root Endpoints
# =============================================================================

def register_info_routes(app: FastAPI) -> None:

    @app.get("/health", tags=["health"])
    async def health_check(request: Request):
        """
        Health check endpoint.

        Returns:
            {"code": 200, "status": "succeed", "data": {"health": "ok", "root": "..."}}
        """
        session = request.app.state.session
        if not session.root_directory.is_dir():
            return JSONResponse(
                status_code=503,
                content=error_response(
                    error=f"Service unhealthy: root directory missing - {session.root_directory}",
                    code=503
                )
            )
        return JSONResponse(
            status_code=200,
            content=success_response(
                data={
                    "health": "ok",
                    "root": str(session.root_directory),
                    "running_threads": session.executor.active_count(),
                }
            )
        )

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API info."""
        return JSONResponse(
            status_code=200,
            content=success_response(
                data={
                    "name": "Job Engine API",
                    "version": "1.0.0",
                    "docs": "/docs",
                    "health": "/health"
                }
            )
        )


app = create_app()


# Entry point for running directly
if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "8000"))

    uvicorn.run(
        "api.app:app",
        host=host,
        port=port,
        reload=True,
        log_level="info"
    )
