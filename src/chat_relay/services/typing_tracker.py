from __future__ import annotations

from chat_relay.application.ports.bus import EventFanout
from chat_relay.domain.value_objects.enums import ServerEvent
from chat_relay.services.presence_registry import PresenceRegistry


class TypingTracker:
    """Who is typing right now. Every change re-broadcasts the full list of names."""

    def __init__(self, registry: PresenceRegistry, fanout: EventFanout) -> None:
        self._registry = registry
        self._fanout = fanout
        self._typing: dict[str, str] = {}

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._typing

    def names(self) -> list[str]:
        return list(self._typing.values())

    async def set_typing(self, connection_id: str, is_typing: bool) -> bool:
        """Record a typing change. Returns False (and broadcasts nothing) for connections that never joined."""
        username = self._registry.display_name(connection_id)
        if username is None:
            return False
        if is_typing:
            self._typing[connection_id] = username
        else:
            self._typing.pop(connection_id, None)
        await self.broadcast()
        return True

    def discard(self, connection_id: str) -> bool:
        """Drop a connection without broadcasting; the caller decides when to announce."""
        return self._typing.pop(connection_id, None) is not None

    async def broadcast(self) -> None:
        await self._fanout.publish(ServerEvent.TYPING_USERS, self.names())
