"""Wire payloads as the client sees them."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ReadReceiptView(BaseModel):
    model_config = ConfigDict(frozen=True)

    reader_id: str
    reader_name: str | None = None
    read_at: datetime | None = None


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    client_temp_id: str | None = None
    sender_id: str
    sender_name: str
    body: str | None = None
    attachment: str | None = None
    created_at: datetime
    is_private: bool = False
    recipient_id: str | None = None
    read_by: tuple[ReadReceiptView, ...] = ()


class SendAck(BaseModel):
    status: str
    id: int | None = None
    created_at: datetime | None = None
    client_temp_id: str | None = None
    detail: str | None = None


class DeliveredEvent(BaseModel):
    id: int
    delivered_at: datetime


class ReadEvent(BaseModel):
    message_id: int
    reader_id: str
    reader: str | None = None


class PresenceUser(BaseModel):
    id: str
    username: str
    avatar: str | None = None
