from __future__ import annotations

from typing import Protocol

from chat_relay.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_page(self, *, page: int = 1, limit: int = 50) -> list[Message]:
        """Skip/limit page of persisted messages, ascending by id."""
        ...

    async def list_before(self, *, before: int | None = None, limit: int = 50) -> list[Message]:
        """The ``limit`` newest messages with id below ``before`` (or overall), ascending by id."""
        ...

    async def get_by_id(self, message_id: int) -> Message | None: ...


class MessageWriter(Protocol):
    async def add(self, message: Message) -> None:
        """Insert a stamped message. Raises ConflictError if the id is taken."""
        ...
