from __future__ import annotations

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.domain.entities.message import ReadReceipt
from chat_relay.infrastructure.db.models.read_receipt import ReadReceiptModel


class ReadReceiptWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_if_absent(self, message_id: int, receipt: ReadReceipt) -> bool:
        stmt = (
            pg_insert(ReadReceiptModel)
            .values(
                message_id=message_id,
                reader_id=receipt.reader_id,
                reader_name=receipt.reader_name,
                read_at=receipt.read_at,
            )
            .on_conflict_do_nothing(constraint="uq_read_receipt_reader")
            .returning(ReadReceiptModel.id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None
