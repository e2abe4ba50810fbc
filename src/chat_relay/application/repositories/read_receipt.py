from __future__ import annotations

from typing import Protocol

from chat_relay.domain.entities.message import ReadReceipt


class ReadReceiptWriter(Protocol):
    async def add_if_absent(self, message_id: int, receipt: ReadReceipt) -> bool:
        """Append a receipt unless this reader already has one. Returns True if added."""
        ...
