from __future__ import annotations

from datetime import timedelta

import httpx
import pytest

from chat_relay.client.history import HistoryPager
from chat_relay.client.models import ChatMessage
from chat_relay.client.timeline import Confirmed, Timeline
from tests.conftest import T0


def _wire(message_id: int) -> dict:
    return {
        "id": message_id,
        "sender_id": "conn-b",
        "sender_name": "bob",
        "body": f"m{message_id}",
        "attachment": None,
        "created_at": (T0 + timedelta(seconds=message_id)).isoformat(),
        "is_private": False,
        "recipient_id": None,
        "read_by": [],
    }


class FakeServer:
    """Serves ``total`` stored messages through both history queries; can be told to fail."""

    def __init__(self, total: int) -> None:
        self.messages = [_wire(i) for i in range(1, total + 1)]
        self.failures = 0
        self.requests: list[tuple[str, dict[str, str]]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        self.requests.append((request.url.path, params))
        if self.failures:
            self.failures -= 1
            return httpx.Response(500, json={"detail": "boom"})
        limit = int(params["limit"])
        if request.url.path == "/api/messages/recent":
            before = int(params["before"]) if "before" in params else None
            older = [m for m in self.messages if before is None or m["id"] < before]
            return httpx.Response(200, json=older[-limit:])
        start = (int(params["page"]) - 1) * limit
        return httpx.Response(200, json=self.messages[start:start + limit])


def _client(server: FakeServer) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(server.handler), base_url="http://chat.test")


def _ids(timeline: Timeline) -> list[int]:
    return [e.id for e in timeline if isinstance(e, Confirmed)]


@pytest.mark.asyncio
async def test_first_load_shows_the_newest_messages():
    server = FakeServer(total=5)
    timeline = Timeline()
    async with _client(server) as http:
        pager = HistoryPager(http, page_size=2)
        assert await pager.load_next(timeline) == 2

    assert _ids(timeline) == [4, 5]
    assert pager.cursor == 4
    assert server.requests == [("/api/messages/recent", {"limit": "2"})]


@pytest.mark.asyncio
async def test_older_batches_keep_timeline_sorted_by_id():
    server = FakeServer(total=5)
    timeline = Timeline()
    async with _client(server) as http:
        pager = HistoryPager(http, page_size=2)

        added = [await pager.load_next(timeline) for _ in range(4)]

    assert added == [2, 2, 1, 0]
    assert _ids(timeline) == [1, 2, 3, 4, 5]
    assert pager.exhausted is True
    assert [params.get("before") for _, params in server.requests] == [None, "4", "2"]


@pytest.mark.asyncio
async def test_live_message_stays_after_older_history():
    server = FakeServer(total=3)
    timeline = Timeline()
    timeline.receive(ChatMessage.model_validate(_wire(9)))
    async with _client(server) as http:
        pager = HistoryPager(http, page_size=2)
        await pager.load_next(timeline)
        await pager.load_next(timeline)

    assert _ids(timeline) == [1, 2, 3, 9]


@pytest.mark.asyncio
async def test_empty_batch_marks_exhausted():
    server = FakeServer(total=2)
    async with _client(server) as http:
        pager = HistoryPager(http, page_size=2)
        timeline = Timeline()
        await pager.load_next(timeline)
        assert pager.exhausted is False
        assert await pager.load_next(timeline) == 0

    assert pager.exhausted is True


@pytest.mark.asyncio
async def test_failure_keeps_cursor_and_retries_same_batch():
    server = FakeServer(total=5)
    timeline = Timeline()
    async with _client(server) as http:
        pager = HistoryPager(http, page_size=2)
        await pager.load_next(timeline)

        server.failures = 1
        assert await pager.load_next(timeline) == 0
        assert pager.exhausted is False
        assert pager.cursor == 4
        assert await pager.load_next(timeline) == 2

    assert [params.get("before") for _, params in server.requests] == [None, "4", "4"]
    assert _ids(timeline) == [2, 3, 4, 5]


@pytest.mark.asyncio
async def test_fetch_returns_empty_on_error():
    server = FakeServer(total=3)
    server.failures = 1
    async with _client(server) as http:
        pager = HistoryPager(http, page_size=2)
        assert await pager.fetch(1) == []
        assert [m.id for m in await pager.fetch(1)] == [1, 2]


@pytest.mark.asyncio
async def test_reset_starts_over():
    server = FakeServer(total=1)
    timeline = Timeline()
    async with _client(server) as http:
        pager = HistoryPager(http, page_size=2)
        await pager.load_next(timeline)
        assert pager.exhausted
        pager.reset()
        assert pager.cursor is None
        # same batch again, already on screen
        assert await pager.load_next(timeline) == 0
    assert len(timeline) == 1
