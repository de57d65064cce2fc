"""Presence WebSocket handlers."""

from presence.websockets.presence import websocket_presence

__all__ = ["websocket_presence"]
