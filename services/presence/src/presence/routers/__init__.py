"""Presence routers for REST endpoints."""

from presence.routers.session import configure_limits as configure_session_limits
from presence.routers.session import limiter as session_limiter
from presence.routers.session import router as session_router

__all__ = ["session_router", "session_limiter", "configure_session_limits"]
