"""Relay error taxonomy.

- ValidationError: malformed sign-in/sign-out input (HTTP 400).
- UnreachableUserError: call target has no open push channel; reported
  back to the initiating party as an ``error`` frame.
- ProtocolError: malformed inbound frame; logged and dropped, the
  connection stays up.
"""

from __future__ import annotations

from typing import Any


class PresenceError(Exception):
    code = "presence_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_json(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(PresenceError):
    code = "invalid_nick"


class ProtocolError(PresenceError):
    code = "protocol_error"


class UnreachableUserError(PresenceError):
    code = "unreachable"

    def __init__(self, nick: str, topic: str) -> None:
        super().__init__(f"User {nick} is not connected")
        self.nick = nick
        self.topic = topic

    def to_json(self) -> dict[str, Any]:
        data = super().to_json()
        data["nick"] = self.nick
        data["topic"] = self.topic
        return data
