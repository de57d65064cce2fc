"""In-memory directory of signed-in users.

All data lives in a dict keyed by nickname and is lost on restart.
Insertion order is sign-in order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from presence.nicks import resolve_nick

logger = logging.getLogger(__name__)


@dataclass
class StoredUser:
    nick: str
    signed_in_at: datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserDirectory:
    def __init__(self) -> None:
        self._users: dict[str, StoredUser] = {}

    def sign_in(self, nick: str) -> str:
        """Admit ``nick``, renaming it if taken. Returns the admitted name."""
        resolved = resolve_nick(nick, self._users)
        self._users[resolved] = StoredUser(nick=resolved, signed_in_at=_now())
        if resolved != nick:
            logger.info("Nick %s taken, signed in as %s", nick, resolved)
        else:
            logger.info("Signed in %s", resolved)
        return resolved

    def sign_out(self, nick: str) -> bool:
        """Remove ``nick``. Returns False if it was not signed in."""
        if self._users.pop(nick, None) is None:
            return False
        logger.info("Signed out %s", nick)
        return True

    def list_users(self, excluding: Optional[str] = None) -> list[str]:
        return [nick for nick in self._users if nick != excluding]

    def is_signed_in(self, nick: str) -> bool:
        return nick in self._users

    def get(self, nick: str) -> Optional[StoredUser]:
        return self._users.get(nick)

    def clear(self) -> None:
        self._users.clear()

    def __len__(self) -> int:
        return len(self._users)
