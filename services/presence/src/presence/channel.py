"""Push channel: one per connected user WebSocket.

Owns the outbound queue and the read/write loops. Inbound frames are
handed to the service dispatcher; sends never wait for the socket.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from fastapi import WebSocket, WebSocketDisconnect

if TYPE_CHECKING:
    from presence.events import Event
    from presence.service import PresenceService

logger = logging.getLogger(__name__)


class PushChannel:
    def __init__(self, websocket: WebSocket, nick: str, service: PresenceService) -> None:
        self._websocket = websocket
        self._nick = nick
        self._service = service
        self._outbound: asyncio.Queue[Optional[Event]] = asyncio.Queue()
        self._open = True

    @property
    def nick(self) -> str:
        return self._nick

    @property
    def is_open(self) -> bool:
        return self._open

    def enqueue(self, event: Event) -> None:
        if self._open:
            self._outbound.put_nowait(event)

    def close(self) -> None:
        """Stop accepting events and close the socket once the queue drains."""
        if self._open:
            self._open = False
            self._outbound.put_nowait(None)

    async def run(self) -> None:
        """Main loop: read from the client and flush the outbound queue concurrently."""
        read_task = asyncio.create_task(self._read_loop())
        write_task = asyncio.create_task(self._write_loop())
        try:
            await asyncio.wait([read_task, write_task], return_when=asyncio.FIRST_COMPLETED)
        finally:
            read_task.cancel()
            write_task.cancel()
            self._open = False
            self._service.channel_lost(self)

    async def _read_loop(self) -> None:
        try:
            while True:
                raw = await self._websocket.receive_text()
                self._service.handle_frame(self, raw)
        except WebSocketDisconnect as e:
            logger.info("Push channel for %s closed by client (%s)", self._nick, e.code)
        except (ConnectionResetError, BrokenPipeError) as e:
            logger.debug("Push channel for %s reset: %s", self._nick, e)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Unexpected error reading push channel for %s", self._nick)

    async def _write_loop(self) -> None:
        try:
            while True:
                event = await self._outbound.get()
                if event is None:
                    await self._websocket.close()
                    return
                await self._websocket.send_json(event.to_wire())
        except asyncio.CancelledError:
            raise
        except (WebSocketDisconnect, RuntimeError, ConnectionResetError, BrokenPipeError) as e:
            logger.debug("Push channel for %s lost while sending: %s", self._nick, e)
