"""FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from common.logging import setup_cloudwatch_logging

from presence.config import AppConfig, load_config
from presence.errors import ValidationError
from presence.models import ClientConfigResponse, ErrorResponse, HealthResponse, RootResponse
from presence.routers import configure_session_limits, session_limiter, session_router
from presence.service import PresenceService
from presence.websockets import websocket_presence

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    logger.info("Presence relay starting")
    yield
    # State is transient: a restart starts from an empty directory.
    app.state.presence.reset()
    logger.info("Presence relay stopped")


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
    body = ErrorResponse(error=exc.code, detail=exc.message)
    return JSONResponse(status_code=400, content=body.model_dump())


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    config = config or load_config()

    app = FastAPI(
        title="Presence Relay",
        description="Presence and call-signaling relay",
        lifespan=_lifespan,
    )
    app.state.config = config
    app.state.presence = PresenceService(config.presence)

    # Configure CORS (from config)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors.origins,
        allow_credentials=config.cors.allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    configure_session_limits(config.limits)
    app.state.limiter = session_limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ValidationError, _validation_error_handler)

    app.include_router(session_router)
    app.add_api_websocket_route("/", websocket_presence)

    @app.get("/config.json", response_model=ClientConfigResponse, response_model_by_alias=True)
    async def client_config() -> ClientConfigResponse:
        """Settings the client worker loads before signing in."""
        return ClientConfigResponse(
            ws_url=config.presence.ws_url,
            root_url=config.presence.root_url,
            debug=config.presence.debug,
        )

    @app.get("/", response_model=RootResponse)
    async def root() -> RootResponse:
        """Root endpoint with service info and available endpoints."""
        return RootResponse(
            service="presence-relay",
            status="running",
            endpoints={
                "health": "/health",
                "config": "/config.json",
                "signin": "/signin",
                "signout": "/signout",
                "push_ws": "/?nick={nick}",
            },
        )

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """Health check endpoint."""
        presence = request.app.state.presence
        return HealthResponse(
            status="ok",
            users=len(presence.directory),
            connected=len(presence.channels.online_nicks()),
        )

    return app


app = create_app()


def main() -> None:
    setup_cloudwatch_logging("presence-relay")
    config = app.state.config
    logger.info("Listening on %s:%d", config.server.host, config.server.port)
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
