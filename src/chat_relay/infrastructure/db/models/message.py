from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, String, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chat_relay.infrastructure.db.base import Base


class MessageModel(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sender_name: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recipient_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    read_receipts = relationship(
        "ReadReceiptModel",
        back_populates="message",
        order_by="ReadReceiptModel.id",
        lazy="selectin",
    )
