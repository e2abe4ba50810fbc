"""Join / profile / leave / logout transitions for a connection.

    Anonymous -> Joined -> [ProfileUpdated]* -> Left

Leaving happens either on transport disconnect or on explicit logout; both
remove presence and typing state and announce the new roster.
"""
from __future__ import annotations

import logging
from typing import Any

from chat_relay.application.ports.bus import EventFanout
from chat_relay.domain.entities.presence import PresenceEntry
from chat_relay.domain.value_objects.enums import ServerEvent
from chat_relay.services.presence_registry import PresenceRegistry
from chat_relay.services.typing_tracker import TypingTracker

logger = logging.getLogger(__name__)


class ConnectionLifecycle:
    def __init__(
        self,
        registry: PresenceRegistry,
        typing: TypingTracker,
        fanout: EventFanout,
    ) -> None:
        self._registry = registry
        self._typing = typing
        self._fanout = fanout

    async def join(self, connection_id: str, username: str) -> PresenceEntry:
        entry = self._registry.join(connection_id, username)
        await self._broadcast_roster()
        await self._fanout.publish(
            ServerEvent.USER_JOINED,
            {"username": entry.username, "id": connection_id},
        )
        logger.info("%s joined the chat", entry.username)
        return entry

    async def update_profile(
        self,
        connection_id: str,
        *,
        username: str | None = None,
        avatar: str | None = None,
    ) -> PresenceEntry | None:
        entry = self._registry.update_profile(connection_id, username=username, avatar=avatar)
        if entry is not None:
            await self._broadcast_roster()
        return entry

    async def leave(self, connection_id: str) -> PresenceEntry | None:
        """Transport went away. After a logout, or for a connection that never joined, this announces nothing."""
        removed = self._registry.remove(connection_id)
        was_typing = self._typing.discard(connection_id)
        if removed is None and not was_typing:
            return None
        if removed is not None:
            await self._announce_left(removed)
            logger.info("%s left the chat", removed.username)
        await self._broadcast_roster()
        await self._typing.broadcast()
        return removed

    async def logout(self, connection_id: str) -> dict[str, Any]:
        removed = self._registry.remove(connection_id)
        was_typing = self._typing.discard(connection_id)
        if removed is not None:
            await self._announce_left(removed)
            await self._broadcast_roster()
            logger.info("%s logged out", removed.username)
        if was_typing:
            await self._typing.broadcast()
        return {"ok": True}

    async def _announce_left(self, entry: PresenceEntry) -> None:
        await self._fanout.publish(
            ServerEvent.USER_LEFT,
            {"username": entry.username, "id": entry.connection_id},
        )

    async def _broadcast_roster(self) -> None:
        await self._fanout.publish(ServerEvent.USER_LIST, self._registry.roster_payload())
