"""Push channel registry: maps nick → its single live push channel."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from presence.channel import PushChannel
    from presence.events import Event

logger = logging.getLogger(__name__)


class PushChannelRegistry:
    def __init__(self) -> None:
        self._channels: dict[str, PushChannel] = {}

    def register(self, nick: str, channel: PushChannel) -> None:
        previous = self._channels.get(nick)
        self._channels[nick] = channel
        if previous is not None and previous is not channel:
            logger.info("Replacing push channel for %s", nick)
            previous.close()
        logger.info(
            "Registered push channel for %s (total: %d)",
            nick,
            len(self._channels),
        )

    def unregister(self, channel: PushChannel) -> bool:
        """Drop ``channel``. Returns True if it was its nick's current channel.

        A channel that was already replaced by a newer one is not
        authoritative for its nick and returns False.
        """
        current = self._channels.get(channel.nick)
        if current is not channel:
            return False
        del self._channels[channel.nick]
        logger.info("Unregistered push channel for %s", channel.nick)
        return True

    def get(self, nick: str) -> Optional[PushChannel]:
        channel = self._channels.get(nick)
        if channel is None or not channel.is_open:
            return None
        return channel

    def send(self, nick: str, event: Event) -> bool:
        """Queue ``event`` for ``nick``. False when it has no open channel."""
        channel = self.get(nick)
        if channel is None:
            logger.debug("No open channel for %s, dropping %s", nick, event.topic)
            return False
        channel.enqueue(event)
        return True

    def broadcast(self, event: Event, excluding: Optional[str] = None) -> None:
        """Send an event to every open channel except ``excluding``'s."""
        for nick, channel in list(self._channels.items()):
            if nick != excluding and channel.is_open:
                channel.enqueue(event)

    def online_nicks(self) -> set[str]:
        return {nick for nick, ch in self._channels.items() if ch.is_open}

    def clear(self) -> None:
        for channel in list(self._channels.values()):
            channel.close()
        self._channels.clear()
