from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class PresenceEntry:
    """Display metadata for one live connection. Mutated in place on profile updates."""

    connection_id: str
    username: str
    avatar: str | None = None
