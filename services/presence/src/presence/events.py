"""Push channel events and wire framing.

On the relay socket every frame is a JSON object whose keys are wire
topics, e.g. ``{"incoming_call": {...}}``. Internally an event is a
``(topic, data)`` pair; framing is the only thing the transport does with
it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from presence.errors import ProtocolError

# Client -> server
CALL_OFFER = "call_offer"
CALL_ACCEPTED = "call_accepted"
CALL_HANGUP = "call_hangup"

# Server -> client
USERS = "users"
INCOMING_CALL = "incoming_call"
ERROR = "error"


@dataclass(frozen=True)
class Event:
    topic: str
    data: Any = None

    def to_wire(self) -> dict[str, Any]:
        return {self.topic: self.data}


def users_event(users: list[str]) -> Event:
    return Event(USERS, list(users))


def error_event(error) -> Event:
    return Event(ERROR, error.to_json())


def parse_frame(raw: str | bytes) -> list[Event]:
    """Decode one inbound frame into events, in key order."""
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(decoded, dict) or not decoded:
        raise ProtocolError("Frame must be a non-empty JSON object")

    return [Event(topic, data) for topic, data in decoded.items()]


def require_fields(topic: str, data: Any, *fields: str) -> dict[str, Any]:
    """Check that ``data`` is an object carrying every named field."""
    if not isinstance(data, dict):
        raise ProtocolError(f"{topic} payload must be an object")
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ProtocolError(f"{topic} payload missing {', '.join(missing)}")
    return data


def require_names(topic: str, data: dict[str, Any], *fields: str) -> None:
    """Check that the named fields, where present, hold nicks (strings)."""
    for field in fields:
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            raise ProtocolError(f"{topic} field {field} must be a string")
