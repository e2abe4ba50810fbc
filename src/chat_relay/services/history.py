from __future__ import annotations

from chat_relay.application.exceptions import NotFoundError, ValidationError
from chat_relay.application.uow import UnitOfWork
from chat_relay.domain.entities.message import Message


async def list_messages(
    page: int,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    """One page of persisted (public) messages, oldest first."""
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return await uow.messages.list_page(page=page, limit=limit)


async def list_recent(
    before: int | None,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    """The newest ``limit`` messages older than ``before``, oldest first.

    Without ``before`` this is the latest batch. Passing the smallest id
    already held walks further back one batch at a time.
    """
    if limit < 1 or (before is not None and before < 1):
        raise ValidationError("before and limit must be positive")
    return await uow.messages.list_before(before=before, limit=limit)


async def get_message(
    message_id: int,
    uow: UnitOfWork,
) -> Message:
    message = await uow.messages.get_by_id(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    return message
