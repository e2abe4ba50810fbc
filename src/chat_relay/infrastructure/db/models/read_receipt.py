from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Identity, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chat_relay.infrastructure.db.base import Base


class ReadReceiptModel(Base):
    __tablename__ = "read_receipts"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    message_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
    )
    reader_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reader_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    read_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    message = relationship("MessageModel", back_populates="read_receipts")

    __table_args__ = (
        UniqueConstraint("message_id", "reader_id", name="uq_read_receipt_reader"),
    )
