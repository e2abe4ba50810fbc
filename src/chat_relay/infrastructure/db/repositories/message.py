from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.application.exceptions import ConflictError
from chat_relay.domain.entities.message import Message
from chat_relay.infrastructure.db.mappers import message as mapper
from chat_relay.infrastructure.db.models.message import MessageModel


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_page(self, *, page: int = 1, limit: int = 50) -> list[Message]:
        skip = max(0, (page - 1) * limit)
        stmt = (
            select(MessageModel)
            .order_by(MessageModel.id.asc())
            .offset(skip)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_before(self, *, before: int | None = None, limit: int = 50) -> list[Message]:
        stmt = select(MessageModel).order_by(MessageModel.id.desc()).limit(limit)
        if before is not None:
            stmt = stmt.where(MessageModel.id < before)
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in reversed(result.scalars().all())]

    async def get_by_id(self, message_id: int) -> Message | None:
        stmt = select(MessageModel).where(MessageModel.id == message_id)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, message: Message) -> None:
        self._session.add(mapper.entity_to_model(message))
        try:
            await self._session.flush()
        except IntegrityError as exc:
            await self._session.rollback()
            raise ConflictError(f"Message {message.id} already exists") from exc
