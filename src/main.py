"""Main FastAPI application for the social OAuth broker."""

import logging
import re
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from src.api_v1.actions import router as actions_router
from src.api_v1.oauth import register_callback_aliases
from src.api_v1.oauth import router as oauth_router
from src.api_v1.pages import router as pages_router
from src.core.config import get_settings
from src.core.errors import ActionError
from src.core.logging_config import configure_logging, trace_id_ctx
from src.core.middleware.session import SessionMiddleware
from src.core.services.providers import build_providers
from src.core.services.session_store import build_session_store

# Configure logging based on environment settings early during startup
settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

TRACE_ID_PATTERN = re.compile(r"[A-Za-z0-9-]{1,64}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events for the application.
    """
    # Startup
    logger.info("Starting %s...", settings.app_name)

    missing = settings.missing_credentials()
    if missing:
        logger.warning("Missing provider configuration: %s", ", ".join(missing))

    logger.info(
        "%s started on %s:%s (session backend: %s)",
        settings.app_name,
        settings.host,
        settings.port,
        settings.session.backend,
    )

    yield

    # Shutdown
    logger.info("Shutting down %s...", settings.app_name)
    await app.state.session_store.close()
    logger.info("%s shut down complete", settings.app_name)


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Connects Facebook, Instagram and TikTok accounts over OAuth 2.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.session_store = build_session_store(settings)

    # ========================================
    # Middleware
    # ========================================

    app.add_middleware(
        SessionMiddleware,
        cookie_name=settings.session.cookie_name,
        max_age=settings.session.max_age,
        secure=settings.session.cookie_secure,
    )

    @app.middleware("http")
    async def bind_trace_id(request: Request, call_next):
        trace_id = request.headers.get("X-Trace-Id", "")
        if not TRACE_ID_PATTERN.fullmatch(trace_id):
            trace_id = str(uuid.uuid4())
        request.state.trace_id = trace_id
        token = trace_id_ctx.set(trace_id)
        try:
            response = await call_next(request)
        finally:
            trace_id_ctx.reset(token)
        response.headers["X-Trace-Id"] = trace_id
        return response

    # ========================================
    # Routers
    # ========================================

    app.include_router(oauth_router)
    app.include_router(actions_router)
    app.include_router(pages_router)
    register_callback_aliases(app, build_providers(settings))

    # ========================================
    # Root Endpoints
    # ========================================

    @app.get("/health")
    async def health():
        """
        Health check endpoint.

        Returns:
            Status of the application and its configured providers
        """
        missing = settings.missing_credentials()
        return {
            "status": "healthy" if not missing else "degraded",
            "session_backend": settings.session.backend,
            "missing_configuration": missing,
        }

    # ========================================
    # Exception Handlers
    # ========================================

    @app.exception_handler(ActionError)
    async def action_error_handler(request: Request, exc: ActionError):
        """Action failures answer with their status and a plain-text message."""
        logger.warning("%s %s failed (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors."""
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "type": "internal_error",
            },
        )

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    """
    Run the application using uvicorn.

    For development: python -m src.main
    For production: use uvicorn directly (uvicorn src.main:app)
    """
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
