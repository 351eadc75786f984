"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Each app instance owns its own session table and storage client

For local development:
    uvicorn filedrop.main:app --reload

For production:
    gunicorn filedrop.main:app -w 1 -k uvicorn.workers.UvicornWorker

Sessions live in process memory, so run a single worker process: a
session created in one worker is unknown to the others.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.dependencies import build_storage_config
from .api.routes import auth, files, health, upload
from .config.settings import Settings, get_settings
from .core.auth.sessions import SessionManager
from .infrastructure.storage.client import create_storage_client

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs on startup and shutdown. Sessions need no cleanup: they are
    in-memory and simply disappear with the process.
    """
    settings: Settings = app.state.settings

    logger.info(
        "filedrop API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {"r2": settings.r2_mock_mode},
        }
    )

    # Validate configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
        # Not fatal: logins fail closed and /health/ready reports not_ready.
        # File endpoints answer 500 until R2 is configured.

    yield

    logger.info("filedrop API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application. Tests pass their own
    Settings; in production they come from the environment.
    """
    settings = settings or get_settings()

    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Password-gated media file dashboard backed by Cloudflare R2.

        ## Authentication

        `POST /api/auth` with the shared password sets an http-only
        session cookie. Every file endpoint requires that cookie.

        ## Workflow

        1. **Upload**: `POST /api/upload` (multipart `file`, optional `customName`)
        2. **Browse**: `GET /api/files` (newest first, filter by `media_type`)
        3. **Share**: use the returned `url` (direct) or `embed_url` (view page)
        4. **Delete**: `DELETE /api/files/{key}`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Application-scoped state, injected into routes via dependencies
    app.state.settings = settings
    app.state.session_manager = SessionManager(
        admin_password=settings.admin_password,
        ttl_seconds=settings.session_ttl_seconds,
    )
    app.state.storage_client = create_storage_client(
        config=build_storage_config(settings),
        mock_mode=settings.r2_mock_mode,
    )

    # CORS middleware
    # Credentials are allowed so the dashboard can send its session cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        auth.router,
        prefix="/api/auth",
        tags=["Auth"],
    )

    app.include_router(
        files.router,
        prefix="/api/files",
        tags=["Files"],
    )

    app.include_router(
        upload.router,
        prefix="/api",
        tags=["Upload"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "filedrop API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Render errors as {"error": message}, the shape the dashboard reads.

        A dict detail is sent as-is so endpoints can add fields (the
        quota error carries remaining_bytes).
        """
        content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(
            "Rejected malformed request",
            extra={"path": request.url.path, "errors": len(exc.errors())}
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body"},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces and credentials from leaking to clients.
        We log the full error server-side but return a generic message.
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
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "filedrop.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
