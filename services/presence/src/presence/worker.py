"""Client worker: bridges local UI ports and the presence relay.

Ports (sidebar, chat windows) talk to the worker with ``{topic, data}``
envelopes. The worker signs in over HTTP, keeps one push socket open to the
relay and translates between port topics and relay wire keys.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from presence.events import CALL_ACCEPTED, CALL_HANGUP, CALL_OFFER, INCOMING_CALL, USERS

logger = logging.getLogger(__name__)

NAMESPACE = "talkilla"
CHAT_WINDOW = "chat.html"
ABNORMAL_CLOSURE = 1006


def topic(name: str) -> str:
    return f"{NAMESPACE}.{name}"


class Port:
    def __init__(self, port_id: Any, post_message: Optional[Callable[[dict], Any]] = None) -> None:
        self.id = port_id
        self._post_message = post_message

    def post_event(self, topic: str, data: Any = None) -> None:
        if self._post_message is not None:
            self._post_message({"topic": topic, "data": data})

    def error(self, data: Any) -> None:
        self.post_event(topic("error"), data)


class PortCollection:
    def __init__(self) -> None:
        self.ports: dict[Any, Port] = {}

    def add(self, port: Port) -> None:
        self.ports.setdefault(port.id, port)

    def remove(self, port: Port) -> None:
        if self.ports.get(port.id) is port:
            del self.ports[port.id]

    def find(self, port_id: Any) -> Optional[Port]:
        return self.ports.get(port_id)

    def broadcast_event(self, topic: str, data: Any = None) -> None:
        for port in list(self.ports.values()):
            port.post_event(topic, data)

    def broadcast_error(self, data: Any) -> None:
        for port in list(self.ports.values()):
            port.error(data)


@dataclass
class UserData:
    user_name: Optional[str] = None
    display_name: Optional[str] = None
    root_url: str = ""

    @property
    def icon_url(self) -> str:
        return f"{self.root_url}/talkilla16.png"

    @property
    def profile_url(self) -> str:
        return f"{self.root_url}/user.html"

    def reset(self) -> None:
        self.user_name = None
        self.display_name = None

    def to_profile(self) -> dict[str, Any]:
        return {
            "userName": self.user_name,
            "displayName": self.display_name,
            "iconURL": self.icon_url,
            "portrait": self.icon_url,
            "profileURL": self.profile_url,
        }


@dataclass
class CurrentCall:
    port: Optional[Port] = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_incoming(self) -> bool:
        return "offer" in self.data


PortHandler = Callable[[Port, Any], Awaitable[None]]


class Worker:
    """Client-side state and topic dispatch for one signed-in user."""

    def __init__(
        self,
        base_url: str,
        *,
        http: Optional[httpx.AsyncClient] = None,
        connect: Callable[..., Any] = websockets.connect,
        browser_port: Optional[Port] = None,
    ) -> None:
        self.config: dict[str, Any] = {}
        self.ports = PortCollection()
        self.browser_port = browser_port
        self.user = UserData()
        self.current_call: Optional[CurrentCall] = None
        self.current_users: list[str] = []
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=10)
        self._connect = connect
        self._socket = None
        self._socket_task: Optional[asyncio.Task] = None

        self.handlers: dict[str, PortHandler] = {
            "social.port-closing": self._on_port_closing,
            topic("login"): self._on_login,
            topic("logout"): self._on_logout,
            topic("sidebar-ready"): self._on_sidebar_ready,
            topic("call-start"): self._on_call_start,
            topic("chat-window-ready"): self._on_chat_window_ready,
            topic("call-offer"): self._on_call_offer,
            topic("call-answer"): self._on_call_answer,
            topic("call-hangup"): self._on_call_hangup,
        }
        self.server_handlers: dict[str, Callable[[Any], None]] = {
            USERS: self._on_server_users,
            INCOMING_CALL: self._on_incoming_call,
            CALL_ACCEPTED: self._on_call_accepted,
            CALL_HANGUP: self._on_server_hangup,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load_config(self) -> dict[str, Any]:
        resp = await self._http.get("/config.json")
        resp.raise_for_status()
        self.config = resp.json()
        self.user.root_url = self.config.get("ROOTURL", "")
        return self.config

    async def aclose(self) -> None:
        await self.close_presence_socket()
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Port messages
    # ------------------------------------------------------------------

    async def handle(self, port: Port, message: Any) -> None:
        """Dispatch one ``{topic, data}`` envelope received from ``port``."""
        if not isinstance(message, dict) or not isinstance(message.get("topic"), str):
            logger.warning("Dropping malformed port message: %r", message)
            return
        handler = self.handlers.get(message["topic"])
        if handler is None:
            logger.debug("No handler for %s", message["topic"])
            return
        await handler(port, message.get("data"))

    async def _on_port_closing(self, port: Port, data: Any) -> None:
        self.ports.remove(port)

    async def _on_login(self, port: Port, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("username"):
            port.post_event(topic("login-failure"))
            return

        port.post_event(topic("login-pending"))
        try:
            resp = await self._http.post("/signin", json={"nick": data["username"]})
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Sign-in rejected: %s", e.response.status_code)
            port.post_event(topic("login-failure"), e.response.text)
            return
        except (httpx.RequestError, ValueError) as e:
            logger.warning("Sign-in failed: %s", e)
            port.post_event(topic("login-failure"), str(e))
            return

        nick = body.get("nick") if isinstance(body, dict) else None
        if not nick:
            port.post_event(topic("login-failure"))
            return

        self.user.user_name = nick
        self.current_users = list(body.get("users") or [])
        self._post_profile()
        self.ports.broadcast_event(topic("login-success"), {"username": nick})
        await self.create_presence_socket(nick)

    async def _on_logout(self, port: Port, data: Any) -> None:
        if not self.user.user_name:
            port.post_event(topic("error"), "Not logged in")
            return

        await self.close_presence_socket()
        try:
            resp = await self._http.post("/signout", json={"nick": self.user.user_name})
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Sign-out rejected: %s", e.response.status_code)
            port.post_event(topic("error"), e.response.text)
            return
        except httpx.RequestError as e:
            logger.warning("Sign-out failed: %s", e)
            port.post_event(topic("error"), str(e))
            return

        self.user.reset()
        self.current_users = []
        self._post_profile()
        self.ports.broadcast_event(topic("logout-success"), {})

    async def _on_sidebar_ready(self, port: Port, data: Any) -> None:
        if not self.user.user_name:
            return
        port.post_event(topic("login-success"), {"username": self.user.user_name})
        port.post_event(topic("users"), self.current_users)

    async def _on_call_start(self, port: Port, data: Any) -> None:
        self.current_call = CurrentCall(port=None, data=data)
        self._request_chat_window()

    async def _on_chat_window_ready(self, port: Port, data: Any) -> None:
        if self.current_call is None:
            return
        self.current_call.port = port
        if self.current_call.is_incoming:
            port.post_event(topic("call-incoming"), self.current_call.data)
        else:
            port.post_event(topic("call-start"), self.current_call.data)

    async def _on_call_offer(self, port: Port, data: Any) -> None:
        await self.send_message(port, CALL_OFFER, data)

    async def _on_call_answer(self, port: Port, data: Any) -> None:
        await self.send_message(port, CALL_ACCEPTED, data)

    async def _on_call_hangup(self, port: Port, data: Any) -> None:
        await self.send_message(port, CALL_HANGUP, data)
        self.current_call = None

    # ------------------------------------------------------------------
    # Presence socket
    # ------------------------------------------------------------------

    async def create_presence_socket(self, nick: str) -> None:
        await self.close_presence_socket()
        url = f"{self.config.get('WSURL', '')}?nick={quote(nick)}"
        self.ports.broadcast_event(topic("presence-pending"), {})
        self._socket_task = asyncio.create_task(self._run_presence_socket(url))

    async def close_presence_socket(self) -> None:
        task, self._socket_task = self._socket_task, None
        if self._socket is not None:
            await self._socket.close()
        if task is not None:
            try:
                await asyncio.wait_for(task, timeout=5)
            except asyncio.TimeoutError:
                logger.warning("Presence socket did not close in time")

    async def send_message(self, port: Port, key: str, data: Any) -> None:
        if self._socket is None:
            port.error(f"Cannot send {key}: presence socket is not connected")
            return
        await self._socket.send(json.dumps({key: data}))

    async def _run_presence_socket(self, url: str) -> None:
        code = ABNORMAL_CLOSURE
        try:
            async with self._connect(url) as ws:
                self._socket = ws
                self.ports.broadcast_event(topic("presence-open"), {"url": url})
                try:
                    async for raw in ws:
                        self.on_presence_message(raw)
                finally:
                    code = ws.close_code or code
        except ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else code
        except (OSError, WebSocketException) as e:
            logger.warning("Presence socket error: %s", e)
            self.ports.broadcast_event(topic("websocket-error"), str(e))
        finally:
            self._socket = None
            self.ports.broadcast_event(topic("presence-unavailable"), code)

    def on_presence_message(self, raw: str | bytes) -> None:
        """Route one relay frame to a server handler or straight to the ports."""
        try:
            message = json.loads(raw)
        except ValueError as e:
            logger.warning("Dropping malformed relay frame: %s", e)
            return
        if not isinstance(message, dict):
            logger.warning("Dropping relay frame that is not an object")
            return

        for key, data in message.items():
            handler = self.server_handlers.get(key)
            if handler is None:
                self.ports.broadcast_event(topic(key), data)
                continue
            try:
                handler(data)
            except (TypeError, ValueError) as e:
                logger.warning("Dropping %s relay message: %s", key, e)

    # ------------------------------------------------------------------
    # Relay messages
    # ------------------------------------------------------------------

    def _on_server_users(self, data: Any) -> None:
        if not isinstance(data, list):
            raise TypeError("users payload must be a list")
        self.current_users = [u for u in data if u != self.user.user_name]
        self.ports.broadcast_event(topic("users"), self.current_users)

    def _on_incoming_call(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise TypeError("incoming_call payload must be an object")
        self.current_call = CurrentCall(port=None, data=data)
        self._request_chat_window()

    def _on_call_accepted(self, data: Any) -> None:
        if self.current_call is None or self.current_call.port is None:
            logger.warning("Call accepted with no open chat window")
            return
        self.current_call.port.post_event(topic("call-establishment"), data)

    def _on_server_hangup(self, data: Any) -> None:
        if self.current_call is not None and self.current_call.port is not None:
            self.current_call.port.post_event(topic("call-hangup"), data)
        self.current_call = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _post_profile(self) -> None:
        if self.browser_port is not None:
            self.browser_port.post_event("social.user-profile", self.user.to_profile())

    def _request_chat_window(self) -> None:
        if self.browser_port is not None:
            self.browser_port.post_event("social.request-chat", CHAT_WINDOW)
