"""Live roster: connection identity → display profile."""
from __future__ import annotations

from typing import Any

from chat_relay.application.exceptions import InvalidUsernameError
from chat_relay.domain.entities.presence import PresenceEntry


class PresenceRegistry:
    """Single owner of presence state for this process.

    Handlers receive the same instance by reference; nothing else writes to it.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PresenceEntry] = {}

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, connection_id: str) -> PresenceEntry | None:
        return self._entries.get(connection_id)

    def display_name(self, connection_id: str) -> str | None:
        entry = self._entries.get(connection_id)
        return entry.username if entry else None

    def join(self, connection_id: str, username: str) -> PresenceEntry:
        """Register (or re-register) a connection under a non-empty name."""
        name = (username or "").strip()
        if not name:
            raise InvalidUsernameError("Username must not be empty")
        entry = self._entries.get(connection_id)
        if entry is None:
            entry = PresenceEntry(connection_id=connection_id, username=name)
            self._entries[connection_id] = entry
        else:
            entry.username = name
        return entry

    def update_profile(
        self,
        connection_id: str,
        *,
        username: str | None = None,
        avatar: str | None = None,
    ) -> PresenceEntry | None:
        """Mutate a joined connection's profile in place. Unknown connections are ignored."""
        entry = self._entries.get(connection_id)
        if entry is None:
            return None
        if avatar:
            entry.avatar = avatar
        if username and username.strip():
            entry.username = username.strip()
        return entry

    def remove(self, connection_id: str) -> PresenceEntry | None:
        return self._entries.pop(connection_id, None)

    def roster(self) -> list[PresenceEntry]:
        return list(self._entries.values())

    def roster_payload(self) -> list[dict[str, Any]]:
        return [
            {"id": e.connection_id, "username": e.username, "avatar": e.avatar}
            for e in self._entries.values()
        ]
