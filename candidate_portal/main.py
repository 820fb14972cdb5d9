"""
FastAPI application entry point.

This module creates and configures the FastAPI application. The
application factory (create_app) takes an optional Settings instance, so
tests can build an app with their own configuration.

For local development:
    uvicorn candidate_portal.main:app --reload --port 5000

Or, honoring the PORT setting:
    python -m candidate_portal.main
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.middleware import UploadCeilingMiddleware
from .api.routes import candidates, health
from .config.settings import Settings, get_settings
from .core.submission.errors import CandidatePortalError, InfrastructureError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/api/candidates/submit"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup configuration problems and shutdown."""
    settings: Settings = app.state.settings

    logger.info(
        "Candidate Portal API starting",
        extra={
            "version": __version__,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "r2": settings.r2_mock_mode,
                "video_probe": settings.video_probe_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Candidate Portal API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    When settings are passed in, they replace get_settings for every
    dependency in this app instance.
    """
    if settings is None:
        settings = get_settings()

    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Backend for the candidate application portal.

        1. **Submit**: `POST /api/candidates/submit` with the form fields,
           a PDF resume and an introduction video
        2. **Review**: `GET /api/candidates/{id}`
        3. **Download**: `GET /api/candidates/files/resume/{fileId}` and
           `GET /api/candidates/files/video/{fileId}`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        UploadCeilingMiddleware,
        path=SUBMIT_PATH,
        max_bytes=settings.max_upload_bytes,
        max_mb=settings.max_upload_mb,
    )

    # Added last so CORS headers also reach the 413 responses
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_origins_list != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        candidates.router,
        prefix="/api/candidates",
        tags=["Candidates"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Candidate Portal Backend running",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(CandidatePortalError)
    async def candidate_portal_error_handler(request: Request, exc: CandidatePortalError):
        """
        Map domain errors to responses.

        Client errors carry their own message. Infrastructure errors were
        already logged where they happened; the client gets the generic
        message and a short error code.
        """
        if isinstance(exc, InfrastructureError):
            logger.error(
                "Request failed",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "error": str(exc),
                    "code": exc.code,
                },
            )
            return JSONResponse(
                status_code=exc.status_code,
                content={"message": exc.message, "error": exc.code},
            )

        logger.info(
            "Request rejected",
            extra={
                "path": request.url.path,
                "status": exc.status_code,
                "reason": exc.message,
            },
        )
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(
            "Malformed request",
            extra={"path": request.url.path, "errors": exc.errors()},
        )
        return JSONResponse(status_code=400, content={"message": "Invalid request."})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Keeps stack traces out of client responses. The full error is
        logged server-side.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"message": "Server error"},
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": __version__,
        }
    )

    return app


# Create the application instance
# This is what uvicorn imports
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "candidate_portal.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
