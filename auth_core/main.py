"""
FastAPI application entry point for the auth core.
Builds the app from an explicit Settings instance; nothing reads configuration globally.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog
import uvicorn

from .api.auth import router as auth_router
from .container.container import Container
from .core.config import Settings, get_settings
from .core.exceptions import AuthServiceError, ValidationFailed
from .core.middleware import RequestTrackingMiddleware, SecurityHeadersMiddleware
from .interfaces.email_interface import IEmailTransport

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    """Configure structured logging."""
    level = logging.DEBUG if settings.DEBUG else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Translate errors into the ``{success, message}`` envelope."""

    @app.exception_handler(AuthServiceError)
    async def auth_error_handler(request: Request, exc: AuthServiceError):
        logger.info(
            "Request rejected",
            error_code=exc.error_code,
            status_code=exc.status_code,
            path=request.url.path
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors."""
        logger.warning("Validation error", path=request.url.path, error_count=len(exc.errors()))

        error = ValidationFailed()
        content = error.to_response()
        # Input values are dropped so passwords never echo back
        content["errors"] = jsonable_encoder(
            [{"loc": e.get("loc"), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
        )
        return JSONResponse(status_code=error.status_code, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "message": exc.detail,
                "error_code": f"HTTP_{exc.status_code}"
            },
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "Unexpected error in request",
            request_id=request_id,
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
            exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "Internal server error",
                "error_code": "INTERNAL_ERROR",
                "request_id": request_id
            }
        )


def create_app(
    settings: Optional[Settings] = None,
    email_transport: Optional[IEmailTransport] = None
) -> FastAPI:
    """Factory function to create the FastAPI app."""
    settings = settings or get_settings()
    configure_logging(settings)

    container = Container(settings, email_transport=email_transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan context manager.
        Handles startup and shutdown events.
        """
        logger.info("Starting auth core", version=settings.VERSION, environment=settings.ENVIRONMENT)
        await container.initialize()
        try:
            yield
        finally:
            logger.info("Shutting down auth core")
            await container.cleanup()
            logger.info("Auth core shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        description="User registration, email verification and token-based authentication",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.container = container
    app.state.database = container.database

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS handling; credentials are needed for the refresh cookie
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.BACKEND_CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        )

    # Request tracking (outermost so every log line carries the request ID)
    app.add_middleware(RequestTrackingMiddleware)

    register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    async def health_check():
        """Basic health check endpoint."""
        database_ok = await container.database.check_connection()
        return JSONResponse(
            status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "healthy" if database_ok else "degraded",
                "checks": {"database": database_ok},
                "version": settings.VERSION
            }
        )

    app.include_router(auth_router, prefix=settings.API_V1_STR)

    return app


def run() -> None:
    """Run the server."""
    settings = get_settings()
    uvicorn.run(
        "auth_core.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
        access_log=False  # Use structured logging instead
    )


if __name__ == "__main__":
    run()
