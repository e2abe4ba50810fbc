from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ReadReceiptResponse(BaseModel):
    reader_id: str
    reader_name: str | None
    read_at: datetime

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: int
    client_temp_id: str | None = None
    sender_id: str
    sender_name: str
    body: str | None
    attachment: str | None
    created_at: datetime
    is_private: bool
    recipient_id: str | None
    read_by: list[ReadReceiptResponse]

    model_config = {"from_attributes": True}
