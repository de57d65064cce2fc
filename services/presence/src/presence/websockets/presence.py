"""WebSocket handler for a user's push channel."""

import logging

from fastapi import Query, WebSocket, status

from presence.channel import PushChannel

logger = logging.getLogger(__name__)


async def websocket_presence(websocket: WebSocket, nick: str = Query("")):
    """Push channel for a signed-in user.

    The client connects with ``?nick=<resolved nick>`` after signing in and
    immediately receives ``{"users": [...]}`` with the other online users.

    Client frames (one or more keys per JSON object):
      {"call_offer": {"callee": "bob", "offer": {...}}}
      {"call_accepted": {"caller": "alice", "answer": {...}}}
      {"call_hangup": {"other": "bob"}}

    Server frames: ``users``, ``incoming_call``, ``call_accepted``,
    ``call_hangup`` and ``error``.
    """
    service = websocket.app.state.presence
    await websocket.accept()

    channel = PushChannel(websocket, nick, service)
    if not nick or not service.connect(channel):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Not signed in")
        return

    logger.info("Push channel open for %s", nick)
    await channel.run()
