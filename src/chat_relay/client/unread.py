from __future__ import annotations

from collections.abc import Collection

from chat_relay.client.timeline import Confirmed, Entry, Pending


class UnreadCounter:
    """Per-peer unread counts, local to this client."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._seen: set[int | str] = set()
        self._focus: str | None = None

    @property
    def focus(self) -> str | None:
        return self._focus

    @property
    def counts(self) -> dict[str, int]:
        return {peer: n for peer, n in self._counts.items() if n}

    def count(self, peer_id: str) -> int:
        return self._counts.get(peer_id, 0)

    def total(self) -> int:
        return sum(self._counts.values())

    def focus_on(self, peer_id: str | None) -> None:
        self._focus = peer_id
        if peer_id is not None:
            self._counts[peer_id] = 0

    def observe(self, entry: Entry, own_ids: Collection[str]) -> bool:
        """Count a newly seen message. Returns True if a counter moved."""
        if isinstance(entry, Pending):
            self._seen.add(entry.temp_id)
            return False
        if not isinstance(entry, Confirmed):
            return False
        if entry.id in self._seen:
            return False
        self._seen.add(entry.id)
        peer = entry.message.sender_id
        if entry.own or peer in own_ids:
            return False
        if peer == self._focus:
            return False
        self._counts[peer] = self._counts.get(peer, 0) + 1
        return True

    def reset(self) -> None:
        self._counts.clear()
        self._seen.clear()
        self._focus = None
