# src/chat_relay/main.py
"""Main entry point for the chat relay application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from chat_relay.api.v1 import (
    default_users_router,
    messages_router,
    push_router,
    slack_events_router,
    system_router,
    user_channels_router,
)
from chat_relay.api.v1.endpoints.push import push_socket
from chat_relay.core.log_config import configure_logging
from chat_relay.core.settings import Settings
from chat_relay.core.settings import settings as default_settings
from chat_relay.services.relay import Relay, build_relay

logger = logging.getLogger(__name__)

DESCRIPTION = "Relay between a browser chat, a WebSocket push channel and Slack"


def _error_body(message: str) -> dict[str, object]:
    return {"success": False, "message": message}


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(f"Invalid request: {', '.join(fields)}"),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal server error"),
    )


def create_app(config: Settings | None = None, relay: Relay | None = None) -> FastAPI:
    """Build the FastAPI application around one relay instance.

    Args:
        config: Settings to use; defaults to the process-wide settings.
        relay: Pre-built relay, e.g. one wired to fakes in tests.
    """
    config = config or default_settings
    relay = relay or build_relay(config)

    app = FastAPI(
        title=config.app_name,
        description=DESCRIPTION,
        version=config.app_version,
    )
    app.state.relay = relay

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=config.cors_allow_methods,
        allow_headers=config.cors_allow_headers,
    )

    # Add GZip middleware for compression
    app.add_middleware(GZipMiddleware)

    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    # Include API routers
    app.include_router(messages_router)
    app.include_router(user_channels_router)
    app.include_router(slack_events_router)
    app.include_router(default_users_router)
    app.include_router(push_router)
    app.include_router(system_router)
    app.add_api_websocket_route(config.push_path, push_socket)

    @app.on_event("startup")
    async def on_startup() -> None:
        configure_logging(config.log_level)
        relay.start()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await relay.stop()

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic information about the API."""
        return {
            "name": config.app_name,
            "version": config.app_version,
            "description": DESCRIPTION,
            "push": config.push_path,
            "docs": "/docs",
            "redoc": "/redoc",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chat_relay.main:app", host="0.0.0.0", port=8000, reload=default_settings.debug)
