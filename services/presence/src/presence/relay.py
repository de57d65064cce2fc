"""Call signaling relay.

Tracks one negotiation per unordered pair of nicks and forwards offers,
answers and hangups over the push channel registry. SDP payloads are
opaque and relayed verbatim.

    IDLE -> OFFERED -> ESTABLISHED / REJECTED -> IDLE

IDLE is the absence of a session. ESTABLISHED and REJECTED are terminal
and the session is dropped as soon as the transition is forwarded.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from presence.errors import ProtocolError, UnreachableUserError
from presence.events import CALL_ACCEPTED, CALL_HANGUP, INCOMING_CALL, Event

if TYPE_CHECKING:
    from presence.registry import PushChannelRegistry

logger = logging.getLogger(__name__)


class CallState(str, enum.Enum):
    IDLE = "idle"
    OFFERED = "offered"
    ESTABLISHED = "established"
    REJECTED = "rejected"


@dataclass
class CallSession:
    caller: str
    callee: str
    payload: Any
    created_at: datetime
    state: CallState = CallState.OFFERED

    def names(self, nick: str) -> bool:
        return nick in (self.caller, self.callee)


def _pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


class CallRelay:
    def __init__(self, channels: PushChannelRegistry) -> None:
        self._channels = channels
        self._sessions: dict[tuple[str, str], CallSession] = {}

    def state(self, a: str, b: str) -> CallState:
        session = self._sessions.get(_pair(a, b))
        return session.state if session else CallState.IDLE

    def get(self, a: str, b: str) -> CallSession | None:
        return self._sessions.get(_pair(a, b))

    def offer(self, caller: str, callee: str, payload: Any) -> CallSession:
        """Open (or supersede) a negotiation and ring the callee."""
        key = _pair(caller, callee)
        if key in self._sessions:
            logger.info("Offer %s -> %s supersedes pending negotiation", caller, callee)

        session = CallSession(
            caller=caller,
            callee=callee,
            payload=payload,
            created_at=datetime.now(timezone.utc),
        )
        self._sessions[key] = session

        delivered = self._channels.send(
            callee,
            Event(INCOMING_CALL, {"caller": caller, "callee": callee, "offer": payload}),
        )
        if not delivered:
            del self._sessions[key]
            raise UnreachableUserError(callee, INCOMING_CALL)

        logger.info("Call offered %s -> %s", caller, callee)
        return session

    def answer(self, caller: str, callee: str, payload: Any) -> None:
        """Accept the caller's pending offer and forward the answer."""
        key = _pair(caller, callee)
        session = self._sessions.get(key)
        if (
            session is None
            or session.state is not CallState.OFFERED
            or session.caller != caller
            or session.callee != callee
        ):
            raise ProtocolError(f"No pending offer from {caller} to {callee}")

        session.state = CallState.ESTABLISHED
        session.payload = payload
        del self._sessions[key]

        delivered = self._channels.send(
            caller,
            Event(CALL_ACCEPTED, {"caller": caller, "callee": callee, "answer": payload}),
        )
        if not delivered:
            raise UnreachableUserError(caller, CALL_ACCEPTED)
        logger.info("Call established %s -> %s", caller, callee)

    def hangup(self, initiator: str, other: str) -> None:
        """End any negotiation between the two and tell ``other``.

        Idempotent. The hangup is forwarded even with no session, which
        covers established calls (those are not tracked here).
        """
        session = self._sessions.pop(_pair(initiator, other), None)
        if session is not None and session.callee == initiator:
            session.state = CallState.REJECTED
            logger.info("Call %s -> %s rejected", session.caller, session.callee)

        if not self._channels.send(other, Event(CALL_HANGUP, {"other": initiator})):
            raise UnreachableUserError(other, CALL_HANGUP)
        logger.info("Call hangup %s -> %s", initiator, other)

    def drop_user(self, nick: str) -> list[str]:
        """Hang up every negotiation naming ``nick``. Returns the peers told."""
        notified = []
        for key, session in list(self._sessions.items()):
            if not session.names(nick):
                continue
            del self._sessions[key]
            peer = session.callee if session.caller == nick else session.caller
            if self._channels.send(peer, Event(CALL_HANGUP, {"other": nick})):
                notified.append(peer)
        if notified:
            logger.info("Hung up calls of %s with %s", nick, ", ".join(notified))
        return notified

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
