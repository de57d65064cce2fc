"""Presence service: the single owner of directory, channel and call state.

Every public method is synchronous so that, on one event loop, each
operation completes before the next one is dispatched. Cross-component
cleanup (a user disappearing) therefore never interleaves with another
operation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from presence.config import PresenceConfig
from presence.directory import UserDirectory
from presence.errors import ProtocolError, UnreachableUserError, ValidationError
from presence.events import (
    CALL_ACCEPTED,
    CALL_HANGUP,
    CALL_OFFER,
    error_event,
    parse_frame,
    require_fields,
    require_names,
    users_event,
)
from presence.registry import PushChannelRegistry
from presence.relay import CallRelay

if TYPE_CHECKING:
    from presence.channel import PushChannel

logger = logging.getLogger(__name__)

_FORBIDDEN_NICK_CHARS = ("\n", "\r", "\x00")


def _clean_nick(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError("Nick must be a string")
    nick = value.strip()
    if not nick:
        raise ValidationError("Nick must not be empty")
    if any(c in nick for c in _FORBIDDEN_NICK_CHARS):
        raise ValidationError("Nick contains forbidden characters")
    return nick


class PresenceService:
    def __init__(self, config: PresenceConfig | None = None) -> None:
        self._config = config or PresenceConfig()
        self.directory = UserDirectory()
        self.channels = PushChannelRegistry()
        self.relay = CallRelay(self.channels)
        self._handlers: dict[str, Callable[[str, Any], None]] = {
            CALL_OFFER: self._handle_call_offer,
            CALL_ACCEPTED: self._handle_call_accepted,
            CALL_HANGUP: self._handle_call_hangup,
        }

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def validate_nick(self, value: Any) -> str:
        """Check a requested nick. The length limit applies to the request,
        so a collision suffix may take the resolved nick past it."""
        nick = _clean_nick(value)
        if len(nick) > self._config.nick_max_chars:
            raise ValidationError(
                f"Nick must be at most {self._config.nick_max_chars} characters"
            )
        return nick

    def sign_in(self, nick: Any) -> tuple[str, list[str]]:
        """Admit a user. Returns the resolved nick and the other online users."""
        resolved = self.directory.sign_in(self.validate_nick(nick))
        self._broadcast_users(excluding=resolved)
        return resolved, self.directory.list_users(excluding=resolved)

    def sign_out(self, nick: Any) -> None:
        """Remove a user and unwind its channel and calls. Unknown nicks are a no-op."""
        nick = _clean_nick(nick)
        channel = self.channels.get(nick)
        if channel is not None and self.channels.unregister(channel):
            channel.close()
        self._drop_user(nick)

    def reset(self) -> None:
        self.relay.clear()
        self.channels.clear()
        self.directory.clear()

    # ------------------------------------------------------------------
    # Push channels
    # ------------------------------------------------------------------

    def connect(self, channel: PushChannel) -> bool:
        """Bind a freshly opened channel. False if its nick is not signed in."""
        if not self.directory.is_signed_in(channel.nick):
            logger.warning("Refusing push channel for unknown nick %s", channel.nick)
            return False
        self.channels.register(channel.nick, channel)
        channel.enqueue(users_event(self.directory.list_users(excluding=channel.nick)))
        return True

    def channel_lost(self, channel: PushChannel) -> None:
        if self.channels.unregister(channel):
            self._drop_user(channel.nick)

    def handle_frame(self, channel: PushChannel, raw: str | bytes) -> None:
        """Dispatch one inbound frame from ``channel``."""
        try:
            events = parse_frame(raw)
        except ProtocolError as e:
            logger.warning("Dropping frame from %s: %s", channel.nick, e)
            return

        for event in events:
            handler = self._handlers.get(event.topic)
            try:
                if handler is None:
                    raise ProtocolError(f"Unknown topic {event.topic!r}")
                handler(channel.nick, event.data)
            except ProtocolError as e:
                logger.warning("Dropping %s from %s: %s", event.topic, channel.nick, e)
            except UnreachableUserError as e:
                logger.info("%s from %s not delivered: %s", event.topic, channel.nick, e)
                channel.enqueue(error_event(e))

    # ------------------------------------------------------------------
    # Call signaling handlers
    # ------------------------------------------------------------------

    def _handle_call_offer(self, nick: str, data: Any) -> None:
        data = require_fields(CALL_OFFER, data, "callee", "offer")
        require_names(CALL_OFFER, data, "caller", "callee")
        caller = data.get("caller") or nick
        if caller != nick:
            raise ProtocolError(f"{nick} cannot offer a call as {caller}")
        if data["callee"] == nick:
            raise ProtocolError(f"{nick} cannot call itself")
        self.relay.offer(caller, data["callee"], data["offer"])

    def _handle_call_accepted(self, nick: str, data: Any) -> None:
        data = require_fields(CALL_ACCEPTED, data, "caller", "answer")
        require_names(CALL_ACCEPTED, data, "caller", "callee")
        callee = data.get("callee") or nick
        if callee != nick:
            raise ProtocolError(f"{nick} cannot answer a call as {callee}")
        self.relay.answer(data["caller"], callee, data["answer"])

    def _handle_call_hangup(self, nick: str, data: Any) -> None:
        data = require_fields(CALL_HANGUP, data, "other")
        require_names(CALL_HANGUP, data, "other")
        self.relay.hangup(nick, data["other"])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _drop_user(self, nick: str) -> None:
        self.relay.drop_user(nick)
        if self.directory.sign_out(nick):
            self._broadcast_users()

    def _broadcast_users(self, excluding: str | None = None) -> None:
        self.channels.broadcast(users_event(self.directory.list_users()), excluding=excluding)
