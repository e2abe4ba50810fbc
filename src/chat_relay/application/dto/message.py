from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from chat_relay.domain.entities.message import Message, ReadReceipt


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    client_temp_id: str | None = None
    body: str | None = None
    attachment: str | None = None
    recipient_id: str | None = None

    @property
    def is_private(self) -> bool:
        return self.recipient_id is not None

    @property
    def is_empty(self) -> bool:
        return not (self.body or "").strip() and not self.attachment


@dataclass(frozen=True, slots=True)
class SubmitResult:
    """What the sender's acknowledgement carries back."""

    id: int
    created_at: datetime
    persisted: bool


def receipt_to_wire(receipt: ReadReceipt) -> dict[str, Any]:
    return {
        "reader_id": receipt.reader_id,
        "reader_name": receipt.reader_name,
        "read_at": receipt.read_at.isoformat(),
    }


def message_to_wire(message: Message) -> dict[str, Any]:
    """JSON-ready shape shared by live events and the history endpoint."""
    return {
        "id": message.id,
        "client_temp_id": message.client_temp_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender_name,
        "body": message.body,
        "attachment": message.attachment,
        "created_at": message.created_at.isoformat(),
        "is_private": message.is_private,
        "recipient_id": message.recipient_id,
        "read_by": [receipt_to_wire(r) for r in message.read_by],
    }
