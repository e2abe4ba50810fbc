from __future__ import annotations

import itertools
from datetime import timedelta

import pytest

from chat_relay.client.models import ChatMessage, ReadReceiptView
from chat_relay.client.timeline import (
    EARLY_DELIVERY_CACHE_SIZE,
    Confirmed,
    Notice,
    Pending,
    Timeline,
    prepend_page,
    reconcile,
)
from tests.conftest import T0

ME = "conn-me"


def chat_message(message_id: int, *, sender_id: str = "conn-other", temp_id: str | None = None, body: str = "hi") -> ChatMessage:
    return ChatMessage(
        id=message_id,
        client_temp_id=temp_id,
        sender_id=sender_id,
        sender_name="someone",
        body=body,
        created_at=T0 + timedelta(seconds=message_id),
    )


def pending(temp_id: str = "t-1", body: str = "hi") -> Pending:
    return Pending(
        temp_id=temp_id,
        sender_id=ME,
        sender_name="me",
        body=body,
        attachment=None,
        created_at=T0,
    )


def _steps(timeline: Timeline):
    delivered_at = T0 + timedelta(minutes=1)
    return {
        "ack": lambda: timeline.acknowledge("t-1", 1, T0),
        "echo": lambda: timeline.receive(chat_message(1, sender_id=ME, temp_id="t-1")),
        "delivered": lambda: timeline.delivered(1, delivered_at),
    }


@pytest.mark.parametrize("order", list(itertools.permutations(["ack", "echo", "delivered"])))
def test_any_arrival_order_yields_one_delivered_entry(order):
    timeline = Timeline()
    timeline.add_pending(pending())
    steps = _steps(timeline)

    for name in order:
        steps[name]()

    assert len(timeline) == 1
    entry = timeline.entries[0]
    assert isinstance(entry, Confirmed)
    assert entry.id == 1
    assert entry.delivered is True
    assert entry.delivered_at == T0 + timedelta(minutes=1)
    assert entry.temp_id == "t-1"


@pytest.mark.parametrize("lost", ["ack", "echo"])
def test_one_confirmation_is_enough(lost):
    timeline = Timeline()
    timeline.add_pending(pending())
    steps = _steps(timeline)

    for name in ("ack", "echo"):
        if name != lost:
            steps[name]()

    assert len(timeline) == 1
    assert isinstance(timeline.entries[0], Confirmed)
    assert timeline.entries[0].delivered is True


def test_duplicate_echo_is_merged():
    timeline = Timeline()
    timeline.add_pending(pending())
    timeline.receive(chat_message(1, sender_id=ME, temp_id="t-1"))
    timeline.receive(chat_message(1, sender_id=ME, temp_id="t-1"))
    timeline.acknowledge("t-1", 1)

    assert len(timeline) == 1


def test_others_message_starts_undelivered():
    timeline = Timeline()
    entry = timeline.receive(chat_message(5))
    assert entry.delivered is False
    assert len(timeline) == 1


def test_refreshing_a_message_keeps_position_and_flags():
    timeline = Timeline()
    timeline.receive(chat_message(1))
    timeline.receive(chat_message(2))
    timeline.delivered(1, T0)

    timeline.receive(chat_message(1, body="edited"))

    assert [e.id for e in timeline.entries] == [1, 2]
    assert timeline.get(1).message.body == "edited"
    assert timeline.get(1).delivered is True


def test_unmatched_pending_stays_pending():
    timeline = Timeline()
    timeline.add_pending(pending("t-1"))
    timeline.add_pending(pending("t-2"))
    timeline.acknowledge("t-2", 9)

    assert timeline.get_pending("t-1") is not None
    assert timeline.get_pending("t-2") is None
    assert isinstance(timeline.entries[0], Pending)
    assert isinstance(timeline.entries[1], Confirmed)


def test_ack_for_unknown_temp_id_is_ignored():
    timeline = Timeline()
    timeline.add_pending(pending("t-1"))
    timeline.acknowledge("t-404", 3)
    assert timeline.entries == (pending("t-1"),)


def test_history_page_racing_with_echo_keeps_one_copy():
    timeline = Timeline()
    timeline.add_pending(pending())
    # the stored copy has no client temp id
    assert timeline.prepend([chat_message(1, sender_id=ME)]) == 1
    timeline.acknowledge("t-1", 1)

    assert len(timeline) == 1
    assert timeline.entries[0].delivered is True


def test_echo_after_history_copy_removes_pending():
    entries = (Confirmed(message=chat_message(1, sender_id=ME)), pending())
    entries = reconcile(entries, chat_message(1, sender_id=ME, temp_id="t-1"))
    assert len(entries) == 1
    assert entries[0].delivered is True


def test_prepend_is_idempotent_and_keeps_order():
    timeline = Timeline()
    timeline.receive(chat_message(10))
    page = [chat_message(3), chat_message(4)]

    assert timeline.prepend(page) == 2
    assert timeline.prepend(page) == 0
    assert [e.id for e in timeline.entries] == [3, 4, 10]


def test_prepend_page_skips_duplicates_within_page():
    entries, added = prepend_page((), [chat_message(1), chat_message(1)])
    assert added == 1
    assert len(entries) == 1


def test_read_receipts_dedupe_by_reader():
    timeline = Timeline()
    timeline.receive(chat_message(1))
    receipt = ReadReceiptView(reader_id="conn-b", reader_name="bob")

    timeline.read(1, receipt)
    timeline.read(1, receipt)
    timeline.read(1, ReadReceiptView(reader_id="conn-c", reader_name="carol"))
    timeline.read(99, receipt)

    assert [r.reader_id for r in timeline.get(1).message.read_by] == ["conn-b", "conn-c"]


def test_echo_keeps_readers_already_seen():
    timeline = Timeline()
    timeline.receive(chat_message(1))
    timeline.read(1, ReadReceiptView(reader_id="conn-b"))

    timeline.receive(chat_message(1))

    assert [r.reader_id for r in timeline.get(1).message.read_by] == ["conn-b"]


def test_notices_sit_in_the_timeline_but_are_not_messages():
    timeline = Timeline()
    timeline.notice("bob joined the chat", T0)
    timeline.receive(chat_message(1))

    assert isinstance(timeline.entries[0], Notice)
    assert len(timeline.messages()) == 1


def test_early_delivery_buffer_is_bounded():
    timeline = Timeline()
    for i in range(EARLY_DELIVERY_CACHE_SIZE + 10):
        timeline.delivered(i, T0)

    # the oldest notices were evicted
    timeline.receive(chat_message(0))
    timeline.receive(chat_message(EARLY_DELIVERY_CACHE_SIZE + 9))
    assert timeline.get(0).delivered is False
    assert timeline.get(EARLY_DELIVERY_CACHE_SIZE + 9).delivered is True


def test_clear():
    timeline = Timeline()
    timeline.add_pending(pending())
    timeline.delivered(1, T0)
    timeline.clear()
    timeline.receive(chat_message(1))

    assert len(timeline) == 1
    assert timeline.get(1).delivered is False


def test_own_flag_follows_every_confirmation_path():
    timeline = Timeline()
    timeline.add_pending(pending("t-1"))
    timeline.add_pending(pending("t-2"))
    timeline.acknowledge("t-1", 1)
    timeline.receive(chat_message(2, sender_id=ME, temp_id="t-2"))
    timeline.receive(chat_message(3))

    assert [e.own for e in timeline.entries] == [True, True, False]
