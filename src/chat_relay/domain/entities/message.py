from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime


@dataclass(frozen=True, slots=True)
class ReadReceipt:
    reader_id: str
    reader_name: str | None
    read_at: datetime


@dataclass(frozen=True, slots=True)
class Message:
    """Canonical chat message.

    ``id`` is assigned once by the server. The only permitted change after
    creation is appending to ``read_by``, at most one entry per reader.
    ``client_temp_id`` travels with the live echo so the sender can
    reconcile its optimistic copy; it is never stored.
    """

    id: int
    sender_id: str
    sender_name: str
    body: str | None
    attachment: str | None
    created_at: datetime
    is_private: bool = False
    recipient_id: str | None = None
    read_by: tuple[ReadReceipt, ...] = field(default_factory=tuple)
    client_temp_id: str | None = None

    def has_reader(self, reader_id: str) -> bool:
        return any(r.reader_id == reader_id for r in self.read_by)

    def with_reader(self, receipt: ReadReceipt) -> Message:
        if self.has_reader(receipt.reader_id):
            return self
        return replace(self, read_by=(*self.read_by, receipt))
