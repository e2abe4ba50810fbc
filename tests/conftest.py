"""Shared test fixtures."""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import pytest

from chat_relay.application.exceptions import ConflictError
from chat_relay.application.ports.clock import SequentialIdSource
from chat_relay.domain.entities.message import Message, ReadReceipt
from chat_relay.services.hub import ChatHub, build_hub

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_message(
    *,
    message_id: int = 1,
    sender_id: str = "conn-a",
    sender_name: str = "alice",
    body: str | None = "hello",
    attachment: str | None = None,
    read_by: tuple[ReadReceipt, ...] = (),
) -> Message:
    return Message(
        id=message_id,
        sender_id=sender_id,
        sender_name=sender_name,
        body=body,
        attachment=attachment,
        created_at=T0 + timedelta(seconds=message_id),
        read_by=read_by,
    )


class FixedClock:
    def __init__(self, at: datetime = T0) -> None:
        self.at = at

    def now(self) -> datetime:
        return self.at


@dataclass
class FakeMessageReader:
    _messages: dict[int, Message] = field(default_factory=dict)

    async def list_page(self, *, page: int = 1, limit: int = 50) -> list[Message]:
        ordered = [self._messages[k] for k in sorted(self._messages)]
        start = (page - 1) * limit
        return ordered[start:start + limit]

    async def list_before(self, *, before: int | None = None, limit: int = 50) -> list[Message]:
        ids = sorted(k for k in self._messages if before is None or k < before)
        return [self._messages[k] for k in ids[-limit:]]

    async def get_by_id(self, message_id: int) -> Message | None:
        return self._messages.get(message_id)


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    async def add(self, message: Message) -> None:
        if message.id in self._reader._messages:
            raise ConflictError("Message id already exists")
        self._reader._messages[message.id] = replace(message, client_temp_id=None)


class FailingMessageWriter:
    """Simulates the store being down."""

    async def add(self, message: Message) -> None:
        raise ConnectionError("database unavailable")


@dataclass
class FakeReadReceiptWriter:
    _reader: FakeMessageReader

    async def add_if_absent(self, message_id: int, receipt: ReadReceipt) -> bool:
        message = self._reader._messages.get(message_id)
        if message is None or message.has_reader(receipt.reader_id):
            return False
        self._reader._messages[message_id] = message.with_reader(receipt)
        return True


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: Any = None
    receipts_w: Any = None
    commits: int = 0

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)
        if self.receipts_w is None:
            self.receipts_w = FakeReadReceiptWriter(self.messages)

    def seed(self, *messages: Message) -> None:
        for m in messages:
            self.messages._messages[m.id] = m

    def stored(self) -> list[Message]:
        return [self.messages._messages[k] for k in sorted(self.messages._messages)]

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass

    def factory(self):
        """A ``UoWFactory`` that always hands out this instance."""

        @asynccontextmanager
        async def _open() -> AsyncIterator[FakeUoW]:
            try:
                yield self
            except Exception:
                await self.rollback()
                raise

        return _open


@dataclass
class RecordingFanout:
    """Captures every published event as (event_type, data, targets)."""
    events: list[tuple[str, Any, list[str] | None]] = field(default_factory=list)

    async def publish(self, event_type: str, data: Any, *, targets=None) -> None:
        self.events.append((event_type, data, sorted(targets) if targets is not None else None))

    def of_type(self, event_type: str) -> list[tuple[str, Any, list[str] | None]]:
        return [e for e in self.events if e[0] == event_type]

    def types(self) -> list[str]:
        return [e[0] for e in self.events]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def fanout() -> RecordingFanout:
    return RecordingFanout()


@pytest.fixture
def hub(uow, fanout) -> ChatHub:
    return build_hub(fanout, uow.factory(), clock=FixedClock(), ids=SequentialIdSource(100))
