import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings, get_settings
from .routes.health import router as health_router
from .routes.mcp import router as mcp_router
from .routes.providers import passthrough_router
from .routes.providers import router as providers_router
from .services.dispatcher import Dispatcher, build_dispatcher
from .utils.errors import ToolError, tool_error_response
from .utils.http_client import HttpClient
from .utils.logging_middleware import LoggingMiddleware

logger = logging.getLogger("toolhub.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(f"toolhub {__version__} starting | project root: {settings.resolved_project_root}")
    for name, healthy in app.state.dispatcher.health().items():
        logger.info(f"  provider {name}: {'ready' if healthy else 'not configured'}")
    yield
    await HttpClient.close_all()
    logger.info("toolhub stopped")


def create_app(settings: Optional[Settings] = None, dispatcher: Optional[Dispatcher] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title="toolhub",
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.dispatcher = dispatcher or build_dispatcher(settings)

    @app.exception_handler(ToolError)
    async def tool_exception_handler(request: Request, exc: ToolError):
        logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
        http_exc = tool_error_response(exc)
        return JSONResponse(status_code=http_exc.status_code, content=http_exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Request validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": {"code": "validation_error", "message": "Invalid request body"},
                "detail": exc.errors(),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.detail,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global Unhandled Exception on {request.url.path}: {exc}")
        logger.error(traceback.format_exc())

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "internal_error",
                    "message": "An unexpected error occurred."
                }
            }
        )

    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(LoggingMiddleware)

    app.include_router(health_router, tags=["Monitoring"])
    app.include_router(providers_router, prefix="/v1", tags=["Providers"])
    app.include_router(mcp_router, prefix="/v1", tags=["MCP"])
    # Catch-all provider passthrough, must stay last
    app.include_router(passthrough_router, tags=["Passthrough"])

    return app
